"""Input validation for recurrence rule payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from schedule_expansion.types import (
    RecurrencePattern,
    RecurrenceRule,
    ValidationError,
    interval_error,
)

_KNOWN_KEYS = ("pattern", "interval", "end_date")


def _parse_end_date(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str):
        return datetime.fromisoformat(raw)
    raise TypeError(f"expected ISO datetime string, got {type(raw).__name__}")


def validate_rule(data: dict[str, Any]) -> list[str]:
    """Validate a rule payload. Returns list of error messages (empty = valid).

    Checks:
    - pattern is present and names a known pattern (case-insensitive)
    - interval, when given, is an integer (non-positive values are clamped later)
    - end_date, when given, is a datetime or an ISO datetime string
    - no unknown keys
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        return [f"rule must be a mapping, got {type(data).__name__}"]

    for key in data:
        if key not in _KNOWN_KEYS:
            errors.append(f"unknown key {key!r}")

    if data.get("pattern") is None:
        errors.append("missing 'pattern'")
    else:
        try:
            RecurrencePattern.parse(data["pattern"])
        except ValidationError as e:
            errors.append(str(e))

    problem = interval_error(data.get("interval"))
    if problem:
        errors.append(problem)

    end_date = data.get("end_date")
    if end_date is not None:
        try:
            _parse_end_date(end_date)
        except (ValueError, TypeError) as e:
            errors.append(f"invalid 'end_date' {end_date!r} - {e}")

    return errors


def rule_from_dict(data: dict[str, Any] | None) -> RecurrenceRule | None:
    """Build a RecurrenceRule from a payload. None means one-shot.

    Raises ValidationError listing every problem found.
    """
    if data is None:
        return None

    errors = validate_rule(data)
    if errors:
        raise ValidationError(
            "Invalid recurrence rule:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    end_date = data.get("end_date")
    return RecurrenceRule(
        pattern=RecurrencePattern.parse(data["pattern"]),
        interval=data.get("interval"),
        end_date=_parse_end_date(end_date) if end_date is not None else None,
    )
