"""
Data quality checks over purchase orders and IoT readings.

- Great Expectations-style column checks (not-null, in-set, between, unique)
- Risk-level consistency: stored ``risk_level`` vs the level derived from
  ``risk_score``. Disagreement is reported here and never corrected silently.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import pandas as pd

from ingestion.schemas import EventStatus
from tracking.risk import RiskLevel, risk_level
from tracking.stages import STAGES

logger = logging.getLogger(__name__)

PO_COLUMNS = (
    "id",
    "po_number",
    "status",
    "risk_score",
    "risk_level",
    "delay_probability",
    "estimated_delay_days",
    "qa_score",
)
IOT_COLUMNS = ("id", "po_id", "metric_type", "metric_value", "status", "timestamp")


@dataclass
class ValidationResult:
    """Result of a single validation check."""

    rule: str
    passed: bool
    failed_count: int = 0
    total_count: int = 0
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)


def frame_from_records(records: Iterable[Any], columns: Sequence[str]) -> pd.DataFrame:
    """Build a DataFrame from ORM rows, pydantic models or dicts."""
    rows = []
    for record in records:
        if hasattr(record, "model_dump"):
            record = record.model_dump(mode="json")
        if isinstance(record, dict):
            rows.append({c: record.get(c) for c in columns})
        else:
            rows.append({c: getattr(record, c, None) for c in columns})
    return pd.DataFrame(rows, columns=list(columns))


def validate_not_null(df: pd.DataFrame, column: str) -> ValidationResult:
    """Expect column values to not be null."""
    try:
        total = len(df)
        nulls = int(df[column].isna().sum())
        passed = nulls == 0
        return ValidationResult(
            rule=f"expect_{column}_not_null",
            passed=passed,
            failed_count=nulls,
            total_count=total,
            message=f"{nulls} nulls in {column}" if not passed else "OK",
        )
    except (KeyError, TypeError) as e:
        return ValidationResult(rule=f"expect_{column}_not_null", passed=False, message=str(e))


def validate_in_set(df: pd.DataFrame, column: str, value_set: set) -> ValidationResult:
    """Expect non-null column values to be in the allowed set."""
    try:
        total = len(df)
        values = df[column]
        invalid = values.notna() & ~values.isin(value_set)
        failed = int(invalid.sum())
        passed = failed == 0
        return ValidationResult(
            rule=f"expect_{column}_in_set",
            passed=passed,
            failed_count=failed,
            total_count=total,
            message=f"{failed} invalid values" if not passed else "OK",
            details={"allowed": sorted(value_set), "invalid_sample": values[invalid].head(5).tolist()},
        )
    except (KeyError, TypeError) as e:
        return ValidationResult(rule=f"expect_{column}_in_set", passed=False, message=str(e))


def validate_between(df: pd.DataFrame, column: str, min_val: float, max_val: float) -> ValidationResult:
    """Expect non-null column values to be between min and max."""
    try:
        total = len(df)
        values = pd.to_numeric(df[column], errors="coerce")
        invalid = (values < min_val) | (values > max_val)
        failed = int(invalid.sum())
        passed = failed == 0
        return ValidationResult(
            rule=f"expect_{column}_between",
            passed=passed,
            failed_count=failed,
            total_count=total,
            message=f"{failed} out of range [{min_val}, {max_val}]" if not passed else "OK",
        )
    except (KeyError, TypeError) as e:
        return ValidationResult(rule=f"expect_{column}_between", passed=False, message=str(e))


def validate_unique(df: pd.DataFrame, column: str) -> ValidationResult:
    try:
        total = len(df)
        dupes = df[column].dropna().duplicated(keep="first")
        failed = int(dupes.sum())
        passed = failed == 0
        return ValidationResult(
            rule=f"expect_{column}_unique",
            passed=passed,
            failed_count=failed,
            total_count=total,
            message=f"{failed} duplicate values in {column}" if not passed else "OK",
        )
    except (KeyError, TypeError) as e:
        return ValidationResult(rule=f"expect_{column}_unique", passed=False, message=str(e))


def validate_risk_level_consistency(df: pd.DataFrame) -> ValidationResult:
    """Expect stored risk_level to match the level derived from risk_score.

    Rows without a stored level are not counted as mismatches.
    """
    rule = "expect_risk_level_matches_score"
    try:
        total = len(df)
        derived = df["risk_score"].map(lambda s: risk_level(s).value)
        stored = df["risk_level"].astype("string").str.lower()
        mismatched = stored.notna() & (stored != derived)
        mismatched = mismatched.fillna(False).astype(bool)
        failed = int(mismatched.sum())
        passed = failed == 0
        sample_col = "po_number" if "po_number" in df.columns else df.columns[0]
        return ValidationResult(
            rule=rule,
            passed=passed,
            failed_count=failed,
            total_count=total,
            message=f"{failed} stored risk levels disagree with risk_score" if not passed else "OK",
            details={"mismatch_sample": df.loc[mismatched, sample_col].head(5).tolist()},
        )
    except (KeyError, TypeError) as e:
        return ValidationResult(rule=rule, passed=False, message=str(e))


def run_validation_suite(df: pd.DataFrame, suite: str = "purchase_orders") -> list[ValidationResult]:
    """Run validation suite (purchase_orders or iot_events)."""
    results: list[ValidationResult] = []
    if suite == "purchase_orders":
        if "po_number" in df.columns:
            results.append(validate_not_null(df, "po_number"))
            results.append(validate_unique(df, "po_number"))
        if "status" in df.columns:
            results.append(validate_in_set(df, "status", {s.value for s in STAGES}))
        for column in ("risk_score", "delay_probability", "qa_score"):
            if column in df.columns:
                results.append(validate_between(df, column, 0, 100))
        if "estimated_delay_days" in df.columns:
            results.append(validate_between(df, "estimated_delay_days", 0, 365))
        if "risk_level" in df.columns:
            results.append(validate_in_set(df, "risk_level", {lvl.value for lvl in RiskLevel}))
        if {"risk_score", "risk_level"} <= set(df.columns):
            results.append(validate_risk_level_consistency(df))
    elif suite == "iot_events":
        for column in ("id", "metric_type", "metric_value", "timestamp"):
            if column in df.columns:
                results.append(validate_not_null(df, column))
        if "id" in df.columns:
            results.append(validate_unique(df, "id"))
        if "status" in df.columns:
            results.append(validate_in_set(df, "status", {s.value for s in EventStatus}))
    else:
        logger.warning("Unknown validation suite %r", suite)
    failed = [r.rule for r in results if not r.passed]
    if failed:
        logger.info("Validation suite %s: %d/%d checks failed: %s", suite, len(failed), len(results), failed)
    return results
