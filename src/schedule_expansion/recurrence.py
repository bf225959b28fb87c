"""Layer 1: recurrence expansion — rule + anchor to bounded occurrence times.

Pure and restartable: the same rule and anchor always yield the same
timestamps. No timezone conversion; arithmetic happens on the wall-clock
fields of the datetime as given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator

from dateutil.relativedelta import relativedelta

from schedule_expansion.config import HORIZON_YEARS, MAX_OCCURRENCES
from schedule_expansion.types import RecurrencePattern, RecurrenceRule, ValidationError

logger = logging.getLogger(__name__)


def _check_comparable(anchor: datetime, end_date: datetime | None) -> None:
    """Reject a naive/aware mix between anchor and end date."""
    if end_date is None:
        return
    if (anchor.tzinfo is None) != (end_date.tzinfo is None):
        raise ValidationError(
            f"anchor {anchor.isoformat()} and end date {end_date.isoformat()} "
            f"must both be naive or both be timezone-aware"
        )


def next_occurrence(current: datetime, rule: RecurrenceRule) -> datetime:
    """Advance one step from the previous occurrence.

    Months and years use calendar arithmetic: a day that does not exist in
    the target month clamps to that month's last day (Jan 31 -> Feb 29 in a
    leap year, Feb 29 + 1 year -> Feb 28).
    """
    pattern = rule.pattern
    if pattern is RecurrencePattern.DAILY:
        return current + relativedelta(days=1)
    if pattern is RecurrencePattern.WEEKLY:
        return current + relativedelta(weeks=1)
    if pattern is RecurrencePattern.MONTHLY:
        return current + relativedelta(months=1)
    if pattern is RecurrencePattern.YEARLY:
        return current + relativedelta(years=1)
    if pattern is RecurrencePattern.EVERY_N_DAYS:
        return current + relativedelta(days=rule.step)
    if pattern is RecurrencePattern.EVERY_N_WEEKS:
        return current + relativedelta(weeks=rule.step)
    raise ValidationError(f"unhandled recurrence pattern {pattern!r}")


@dataclass(frozen=True)
class Expansion:
    """Lazily generated occurrences after an anchor. Re-iterable.

    Each iteration restarts from the anchor, steps from the previous
    occurrence, and stops at whichever comes first: max_occurrences emitted,
    or a timestamp that is not strictly before end_bound (not emitted).
    """

    rule: RecurrenceRule
    anchor: datetime
    max_occurrences: int = MAX_OCCURRENCES
    horizon_years: int = HORIZON_YEARS

    @property
    def end_bound(self) -> datetime:
        """Explicit end date, or anchor + horizon_years calendar years."""
        if self.rule.end_date is not None:
            return self.rule.end_date
        return self.anchor + relativedelta(years=self.horizon_years)

    def __iter__(self) -> Iterator[datetime]:
        end = self.end_bound
        current = self.anchor
        produced = 0

        while produced < self.max_occurrences:
            current = next_occurrence(current, self.rule)
            if not current < end:
                logger.debug(
                    "Expansion of %s stopped at end bound %s after %d occurrences",
                    self.rule.pattern.name, end.isoformat(), produced,
                )
                return
            yield current
            produced += 1

        logger.debug(
            "Expansion of %s stopped at cap of %d occurrences",
            self.rule.pattern.name, self.max_occurrences,
        )


def expand(
    rule: RecurrenceRule,
    anchor: datetime,
    *,
    max_occurrences: int = MAX_OCCURRENCES,
    horizon_years: int = HORIZON_YEARS,
) -> Expansion:
    """Expand a rule into the occurrences strictly after the anchor.

    Args:
        rule: Recurrence rule to expand.
        anchor: The master's own occurrence time (never emitted).
        max_occurrences: Hard cap on emitted timestamps.
        horizon_years: Default end bound when the rule has no end date.

    Returns:
        A re-iterable Expansion; iterate it (or list() it) for timestamps.

    Raises:
        ValidationError: If anchor and end date mix naive and aware datetimes.
        ValueError: If max_occurrences < 0 or horizon_years < 1.
    """
    if max_occurrences < 0:
        raise ValueError(f"max_occurrences must be >= 0, got {max_occurrences}")
    if horizon_years < 1:
        raise ValueError(f"horizon_years must be >= 1, got {horizon_years}")
    _check_comparable(anchor, rule.end_date)
    return Expansion(
        rule=rule,
        anchor=anchor,
        max_occurrences=max_occurrences,
        horizon_years=horizon_years,
    )
