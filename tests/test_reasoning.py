"""Tests for AI insight generation with the Anthropic client mocked."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import reasoning.engine as engine

PO = {"po_number": "PO-2026-00001", "status": "dyeing", "risk_score": 62.0, "factory": None}


def test_context_marks_missing_fields():
    context = engine._build_context(PO)
    assert '"factory": "N/A"' in context
    assert '"po_number": "PO-2026-00001"' in context


def test_generate_returns_model_text():
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(
        content=[SimpleNamespace(text="  Port statistics show congestion at Chittagong. ")],
        usage=SimpleNamespace(input_tokens=120, output_tokens=30),
    )
    with patch.object(engine, "_get_client", return_value=client):
        text = engine.generate_po_insight(PO)
    assert text == "Port statistics show congestion at Chittagong."
    assert client.messages.create.call_args.kwargs["model"] == engine.MODEL


def test_generate_falls_back_when_call_fails():
    client = MagicMock()
    client.messages.create.side_effect = RuntimeError("overloaded")
    with patch.object(engine, "_get_client", return_value=client):
        assert engine.generate_po_insight(PO) == engine.INSIGHT_UNAVAILABLE
