"""Uniform field access over ORM rows, pydantic models and plain dicts."""

from typing import Any


def read_field(record: Any, name: str, default: Any = None) -> Any:
    """Return ``record[name]`` for mappings, ``getattr(record, name)`` otherwise."""
    if record is None:
        return default
    if isinstance(record, dict):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def as_number(value: Any) -> float | None:
    """Coerce to float; None for missing, boolean or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number
