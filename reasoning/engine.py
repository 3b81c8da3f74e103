"""
AI insight generation for purchase orders.

Calls the Anthropic Claude API with the PO's current fields and returns free
text. The text is stored and displayed as-is; nothing downstream parses it.
"""

import json
import logging
import os
from typing import Any, Iterator

from anthropic import Anthropic

logger = logging.getLogger(__name__)

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-6")
MAX_TOKENS = int(os.getenv("INSIGHT_MAX_TOKENS", "400"))

INSIGHT_UNAVAILABLE = "Insight unavailable. Manual review required."

SYSTEM_PROMPT = """You are an AI supply chain analyst for a textile control tower. You have access to weather data (typhoons, severe weather warnings), port statistics (congestion, dwell times), factory production logs and logistics tracking.

Given a purchase order, write a 2-3 sentence, data-driven insight. Mention the data sources you rely on (e.g. "Port statistics show...") and give actionable advice about the main risks. Plain text only."""

PROMPT_FIELDS = (
    "po_number",
    "product_name",
    "status",
    "risk_score",
    "risk_level",
    "delay_probability",
    "estimated_delay_days",
    "yarn_supplier",
    "factory",
    "qa_score",
    "shipment_vessel",
)


def _build_context(po: dict[str, Any]) -> str:
    """Select the PO fields the model sees; missing ones are marked."""
    fields = {name: po.get(name) if po.get(name) is not None else "N/A" for name in PROMPT_FIELDS}
    return f"## Purchase Order\n{json.dumps(fields, indent=2, default=str)}"


def _get_client() -> Anthropic:
    if not ANTHROPIC_API_KEY:
        raise ValueError("ANTHROPIC_API_KEY is required")
    return Anthropic(api_key=ANTHROPIC_API_KEY)


def generate_po_insight(po: dict[str, Any]) -> str:
    """Return a short insight for ``po``; a fixed fallback text if the call fails."""
    client = _get_client()
    prompt = f"Analyze this purchase order and provide an insight.\n\n{_build_context(po)}"
    try:
        response = client.messages.create(
            model=MODEL,
            max_tokens=MAX_TOKENS,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
    except Exception as e:
        logger.exception("Claude insight call failed: %s", e)
        return INSIGHT_UNAVAILABLE
    text = "".join(block.text for block in response.content if hasattr(block, "text")).strip()
    logger.info(
        "Generated insight for %s (%s input / %s output tokens)",
        po.get("po_number"),
        getattr(response.usage, "input_tokens", 0),
        getattr(response.usage, "output_tokens", 0),
    )
    return text or INSIGHT_UNAVAILABLE


def stream_po_insight(po: dict[str, Any]) -> Iterator[str]:
    """Stream the insight token-by-token for live display."""
    client = _get_client()
    prompt = f"Analyze this purchase order and provide an insight.\n\n{_build_context(po)}"
    try:
        with client.messages.stream(
            model=MODEL,
            max_tokens=MAX_TOKENS,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        ) as stream:
            for text in stream.text_stream:
                yield text
    except Exception as e:
        logger.exception("Claude stream failed: %s", e)
        yield f"\n\nError: {str(e)}"
