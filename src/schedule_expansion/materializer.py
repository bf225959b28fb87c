"""Layer 2: ScheduleMaterializer — master + instances as one unit of work.

create_schedule numbers and saves the master, expands its rule, numbers
and bulk-saves one instance per occurrence. delete_schedule removes a
recurring master together with every instance pointing at it. Both run
inside a single store transaction so partial states are never visible.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from schedule_expansion.config import DEFAULT_CONFIG, ScheduleConfig
from schedule_expansion.recurrence import expand
from schedule_expansion.schema import rule_from_dict
from schedule_expansion.sequence import SequenceAllocator
from schedule_expansion.types import (
    EntityKind,
    NotFoundError,
    OwnerId,
    OwnershipError,
    PartialMaterializationError,
    RecordId,
    RecurrenceRule,
    Schedule,
    ScheduledRecord,
    ValidationError,
)

if TYPE_CHECKING:
    from schedule_expansion.store import RecordStore

logger = logging.getLogger(__name__)


def _coerce_rule(rule: RecurrenceRule | dict[str, Any] | None) -> RecurrenceRule | None:
    if rule is None or isinstance(rule, RecurrenceRule):
        return rule
    return rule_from_dict(rule)


class ScheduleMaterializer:
    """Creates, reads and deletes schedules of one entity kind."""

    def __init__(
        self,
        store: RecordStore,
        allocator: SequenceAllocator | None = None,
        config: ScheduleConfig | None = None,
        kind: EntityKind = EntityKind.EVENT,
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG
        self.kind = kind
        self._store = store
        if allocator is None:
            allocator = SequenceAllocator(store, max_retries=self.config.allocation_retries)
        self._allocator = allocator

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_schedule(
        self,
        owner_id: OwnerId,
        title: str,
        anchor_time: datetime,
        *,
        description: str | None = None,
        location: str | None = None,
        reminder_minutes: int | None = None,
        category_id: int | None = None,
        rule: RecurrenceRule | dict[str, Any] | None = None,
    ) -> Schedule:
        """Persist a master record and, for a recurring rule, its instances.

        Args:
            owner_id: Owner of every created record.
            title: Required; surrounding whitespace is stripped.
            anchor_time: The master's occurrence time.
            description, location, reminder_minutes, category_id: Copied
                verbatim into every instance.
            rule: RecurrenceRule, rule payload dict, or None for a one-shot.

        Returns:
            Schedule with the saved master and its saved instances in
            occurrence order.

        Raises:
            ValidationError: Blank or non-string title, missing or non-datetime
                anchor, malformed rule.
            NotFoundError: Unknown owner or category.
            ConcurrencyError: Display number allocation exhausted its retries.
            PartialMaterializationError: Instances failed to persist; nothing
                from this call is committed.
        """
        if title is None or (isinstance(title, str) and not title.strip()):
            raise ValidationError("title is required")
        if not isinstance(title, str):
            raise ValidationError(f"title must be a string, got {type(title).__name__}")
        if anchor_time is None:
            raise ValidationError("anchor time is required")
        if not isinstance(anchor_time, datetime):
            raise ValidationError(
                f"anchor time must be a datetime, got {type(anchor_time).__name__}"
            )
        rule = _coerce_rule(rule)

        if self._store.find_owner_by_id(owner_id) is None:
            raise NotFoundError("owner", owner_id)
        if category_id is not None and self._store.find_category_by_id(category_id) is None:
            raise NotFoundError("category", category_id)

        # Validates the rule against the anchor before anything is written.
        occurrences = None
        if rule is not None:
            occurrences = expand(
                rule,
                anchor_time,
                max_occurrences=self.config.max_occurrences,
                horizon_years=self.config.horizon_years,
            )

        with self._store.transaction():
            master = self._store.save(
                ScheduledRecord(
                    owner_id=owner_id,
                    kind=self.kind,
                    display_number=self._allocator.next_number(owner_id, self.kind),
                    occurrence_time=anchor_time,
                    title=title.strip(),
                    description=description,
                    location=location,
                    reminder_minutes=reminder_minutes,
                    category_id=category_id,
                    is_master=True,
                    rule=rule,
                )
            )

            instances: list[ScheduledRecord] = []
            if occurrences is not None:
                instances = [self._build_instance(master, when) for when in occurrences]

            if instances:
                try:
                    instances = self._store.save_all(instances)
                except Exception as exc:
                    raise PartialMaterializationError(master.id, len(instances)) from exc

        logger.info(
            "Created %s schedule %r (#%d) for owner %r with %d instances",
            self.kind.value, master.id, master.display_number, owner_id, len(instances),
        )
        return Schedule(master=master, instances=tuple(instances))

    def _build_instance(self, master: ScheduledRecord, when: datetime) -> ScheduledRecord:
        """Copy the master's non-recurrence fields onto a new occurrence."""
        return ScheduledRecord(
            **master.copied_fields(),
            display_number=self._allocator.next_number(master.owner_id, master.kind),
            occurrence_time=when,
            is_master=False,
            rule=None,
            master_id=master.id,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_schedule(self, owner_id: OwnerId, record_id: RecordId) -> int:
        """Delete a record; a recurring master takes all its instances with it.

        Returns the number of records removed.

        Raises:
            NotFoundError: No record with that id.
            OwnershipError: The record belongs to another owner.
        """
        with self._store.transaction():
            record = self._load_owned(owner_id, record_id)

            removed = 0
            if record.is_recurring:
                instances = self._store.find_instances_by_master_id(record.id)
                if instances:
                    self._store.delete_all(instances)
                    removed += len(instances)

            self._store.delete(record)
            removed += 1

        logger.info(
            "Deleted %s record %r for owner %r (%d records removed)",
            self.kind.value, record_id, owner_id, removed,
        )
        return removed

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _load_owned(self, owner_id: OwnerId, record_id: RecordId) -> ScheduledRecord:
        record = self._store.find_by_id(record_id)
        if record is None:
            raise NotFoundError("record", record_id)
        if record.owner_id != owner_id:
            raise OwnershipError(record_id, owner_id)
        return record

    def get_record(self, owner_id: OwnerId, record_id: RecordId) -> ScheduledRecord:
        """Fetch one record, checking that the caller owns it."""
        return self._load_owned(owner_id, record_id)

    def get_by_display_number(self, owner_id: OwnerId, display_number: int) -> ScheduledRecord:
        """Fetch a record by its user-facing number within this kind."""
        record = self._store.find_by_display_number(owner_id, self.kind, display_number)
        if record is None:
            raise NotFoundError(f"{self.kind.value} number", display_number)
        return record

    def get_occurrences_in_range(
        self, owner_id: OwnerId, start: datetime, end: datetime
    ) -> list[ScheduledRecord]:
        """Records of this kind with start <= occurrence_time <= end."""
        if self._store.find_owner_by_id(owner_id) is None:
            raise NotFoundError("owner", owner_id)
        if start > end:
            return []
        return self._store.find_in_range(owner_id, self.kind, start, end)
