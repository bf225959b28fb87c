"""Data loading utilities for schedule config and rule fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from schedule_expansion.config import ScheduleConfig
from schedule_expansion.schema import rule_from_dict, validate_rule
from schedule_expansion.types import RecurrenceRule, ValidationError


def _load_mapping(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValidationError(
            f"Validation errors in {path.name}:\n"
            f"  - top level must be a mapping, got {type(data).__name__}"
        )
    return data


def load_config_json(path: str | Path) -> ScheduleConfig:
    """Load a ScheduleConfig from a JSON file.

    The settings may sit at the top level or under a "schedule" key:
    { "schedule": { "max_occurrences": 100, "horizon_years": 2 } }

    Raises ValidationError if the file or its "schedule" entry is not a mapping.
    """
    path = Path(path)
    data = _load_mapping(path)

    settings = data.get("schedule", data)
    if not isinstance(settings, dict):
        raise ValidationError(
            f"Validation errors in {path.name}:\n"
            f"  - 'schedule' must be a mapping, got {type(settings).__name__}"
        )
    return ScheduleConfig.from_dict(settings)


def load_rules_json(path: str | Path) -> dict[str, RecurrenceRule]:
    """Load named recurrence rules from a JSON file.

    The JSON must map rule names to rule payloads:
    {
        "standup": { "pattern": "DAILY", "end_date": "2024-03-01T00:00" },
        "sprint": { "pattern": "EVERY_N_WEEKS", "interval": 2 }
    }

    Raises ValidationError if the file is not a mapping or any entry is invalid.
    """
    path = Path(path)
    data = _load_mapping(path)

    errors: list[str] = []
    for name, payload in data.items():
        errors.extend(f"{name}: {e}" for e in validate_rule(payload))
    if errors:
        raise ValidationError(
            f"Validation errors in {path.name}:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    return {name: rule_from_dict(payload) for name, payload in data.items()}
