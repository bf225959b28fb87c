"""Typed configuration for expansion limits and allocation retries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 100
HORIZON_YEARS = 2
ALLOCATION_RETRIES = 5

# key -> (default, minimum)
_BOUNDS: dict[str, tuple[int, int]] = {
    "max_occurrences": (MAX_OCCURRENCES, 0),
    "horizon_years": (HORIZON_YEARS, 1),
    "allocation_retries": (ALLOCATION_RETRIES, 1),
}


@dataclass(frozen=True)
class ScheduleConfig:
    """Limits applied by the materialiser.

    Fields:
        max_occurrences: hard cap on instances produced by one expansion
        horizon_years: default end bound when a rule has no end date
        allocation_retries: claim attempts before ConcurrencyError
    """

    max_occurrences: int = MAX_OCCURRENCES
    horizon_years: int = HORIZON_YEARS
    allocation_retries: int = ALLOCATION_RETRIES

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScheduleConfig:
        """Build a config from a plain mapping, applying defaults.

        Numeric-like values are coerced to int. Values that do not coerce or
        fall below their minimum are replaced by the default with a warning.
        """
        if data is None:
            data = {}

        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning("Ignoring unknown schedule config key %r", key)

        values: dict[str, int] = {}
        for key, (default, minimum) in _BOUNDS.items():
            raw = data.get(key, default)
            if isinstance(raw, bool):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                values[key] = default
                continue
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                values[key] = default
                continue
            if value < minimum:
                logger.warning(
                    "Config %s=%d is below minimum %d; using default %d",
                    key, value, minimum, default,
                )
                value = default
            values[key] = value

        return cls(**values)


DEFAULT_CONFIG = ScheduleConfig()
