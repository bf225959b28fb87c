"""schedule-expansion: Recurring schedule expansion and per-owner display numbering."""

from schedule_expansion.config import DEFAULT_CONFIG, ScheduleConfig
from schedule_expansion.materializer import ScheduleMaterializer
from schedule_expansion.recurrence import Expansion, expand, next_occurrence
from schedule_expansion.schema import rule_from_dict, validate_rule
from schedule_expansion.sequence import SequenceAllocator
from schedule_expansion.store import InMemoryRecordStore, RecordStore
from schedule_expansion.types import (
    Category,
    ConcurrencyError,
    EntityKind,
    NotFoundError,
    Owner,
    OwnershipError,
    PartialMaterializationError,
    RecurrencePattern,
    RecurrenceRule,
    Schedule,
    ScheduledRecord,
    ScheduleError,
    ValidationError,
)

__all__ = [
    "Category",
    "ConcurrencyError",
    "DEFAULT_CONFIG",
    "EntityKind",
    "Expansion",
    "InMemoryRecordStore",
    "NotFoundError",
    "Owner",
    "OwnershipError",
    "PartialMaterializationError",
    "RecordStore",
    "RecurrencePattern",
    "RecurrenceRule",
    "Schedule",
    "ScheduleConfig",
    "ScheduleError",
    "ScheduleMaterializer",
    "ScheduledRecord",
    "SequenceAllocator",
    "ValidationError",
    "expand",
    "next_occurrence",
    "rule_from_dict",
    "validate_rule",
]
