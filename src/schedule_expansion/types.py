"""Shared types: records, recurrence rules, and the error taxonomy."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

OwnerId = int
RecordId = int


class EntityKind(enum.Enum):
    """Namespace a display number belongs to. Unique per (owner, kind)."""

    EVENT = "event"
    TASK = "task"
    HABIT = "habit"
    NOTE = "note"
    ITEM = "item"


class RecurrencePattern(enum.Enum):
    """Closed set of recurrence patterns."""

    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    EVERY_N_DAYS = "Every N Days"
    EVERY_N_WEEKS = "Every N Weeks"

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def uses_interval(self) -> bool:
        """Only the EVERY_N_* patterns read the rule's interval."""
        return self in (RecurrencePattern.EVERY_N_DAYS, RecurrencePattern.EVERY_N_WEEKS)

    @classmethod
    def parse(cls, tag: str | RecurrencePattern) -> RecurrencePattern:
        """Resolve a pattern tag by member name, case-insensitive.

        Raises ValidationError for anything that is not a known tag.
        """
        if isinstance(tag, cls):
            return tag
        if not isinstance(tag, str):
            raise ValidationError(f"recurrence pattern must be a string, got {tag!r}")
        try:
            return cls[tag.strip().upper()]
        except KeyError:
            known = ", ".join(p.name for p in cls)
            raise ValidationError(
                f"unknown recurrence pattern {tag!r} (expected one of: {known})"
            ) from None


def interval_error(interval: object) -> str | None:
    """Problem with a rule interval, or None. Ints of any sign are accepted."""
    if interval is None:
        return None
    if isinstance(interval, bool) or not isinstance(interval, int):
        return f"'interval' must be an integer, got {interval!r}"
    return None


def end_date_error(end_date: object) -> str | None:
    """Problem with a rule end date, or None."""
    if end_date is None or isinstance(end_date, datetime):
        return None
    return f"'end_date' must be a datetime, got {end_date!r}"


@dataclass(frozen=True)
class RecurrenceRule:
    """Pattern, interval and optional end date of a repeating schedule.

    Invariants:
        - interval only matters for EVERY_N_DAYS / EVERY_N_WEEKS
        - a missing or non-positive interval behaves as 1
    """

    pattern: RecurrencePattern
    interval: int | None = None
    end_date: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", RecurrencePattern.parse(self.pattern))

        errors = [e for e in (interval_error(self.interval), end_date_error(self.end_date)) if e]
        if errors:
            raise ValidationError(
                "Invalid recurrence rule:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    @property
    def step(self) -> int:
        """Number of units advanced per occurrence."""
        if not self.pattern.uses_interval:
            return 1
        if self.interval is None or self.interval <= 0:
            return 1
        return self.interval


@dataclass(frozen=True)
class Owner:
    id: OwnerId
    display_name: str = ""


@dataclass(frozen=True)
class Category:
    id: int
    owner_id: OwnerId
    name: str
    color: str | None = None


@dataclass(frozen=True)
class ScheduledRecord:
    """One persisted occurrence: a master or a materialised instance.

    Invariants:
        - a master has master_id None
        - an instance has a master_id and no rule
        - is_recurring iff is_master and rule is not None
    """

    owner_id: OwnerId
    kind: EntityKind
    display_number: int
    occurrence_time: datetime
    title: str
    description: str | None = None
    location: str | None = None
    reminder_minutes: int | None = None
    category_id: int | None = None
    is_master: bool = True
    rule: RecurrenceRule | None = None
    master_id: RecordId | None = None
    id: RecordId | None = None

    def __post_init__(self) -> None:
        if self.is_master and self.master_id is not None:
            raise ValueError(
                f"master record cannot reference another master (master_id={self.master_id})"
            )
        if not self.is_master:
            if self.master_id is None:
                raise ValueError("instance record requires a master_id")
            if self.rule is not None:
                raise ValueError("instance record cannot carry a recurrence rule")

    @property
    def is_recurring(self) -> bool:
        return self.is_master and self.rule is not None

    def copied_fields(self) -> dict:
        """Fields duplicated verbatim from a master into each instance."""
        return {
            "owner_id": self.owner_id,
            "kind": self.kind,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "reminder_minutes": self.reminder_minutes,
            "category_id": self.category_id,
        }


@dataclass(frozen=True)
class Schedule:
    """A persisted master and the instances materialised from it."""

    master: ScheduledRecord
    instances: tuple[ScheduledRecord, ...] = ()

    @property
    def records(self) -> tuple[ScheduledRecord, ...]:
        return (self.master, *self.instances)


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------


class ScheduleError(Exception):
    """Base class for every error raised by schedule_expansion."""


class ValidationError(ScheduleError, ValueError):
    """Malformed input: blank title, missing anchor, bad recurrence rule."""


class NotFoundError(ScheduleError, LookupError):
    """A referenced owner, category or record does not exist."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key!r} not found")


class OwnershipError(ScheduleError, PermissionError):
    """Record exists but belongs to a different owner."""

    def __init__(self, record_id: RecordId, owner_id: OwnerId) -> None:
        self.record_id = record_id
        self.owner_id = owner_id
        super().__init__(f"record {record_id!r} does not belong to owner {owner_id!r}")


class ConcurrencyError(ScheduleError, RuntimeError):
    """No unique display number could be claimed within the retry budget."""

    def __init__(self, owner_id: OwnerId, kind: EntityKind, attempts: int) -> None:
        self.owner_id = owner_id
        self.kind = kind
        self.attempts = attempts
        super().__init__(
            f"could not allocate a {kind.value} number for owner {owner_id!r} "
            f"after {attempts} attempts"
        )


class PartialMaterializationError(ScheduleError):
    """Instances failed to persist after their master was saved.

    The enclosing unit of work is rolled back; master_id is the id the
    master had inside it.
    """

    def __init__(self, master_id: RecordId | None, instance_count: int) -> None:
        self.master_id = master_id
        self.instance_count = instance_count
        super().__init__(
            f"failed to persist {instance_count} instances of master {master_id!r}"
        )
