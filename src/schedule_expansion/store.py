"""Persistence port and the in-memory record store.

The materialiser and allocator only talk to a RecordStore. The in-memory
store keeps records in an arena keyed by id; instances point at their
master through master_id rather than holding a reference to it.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import ContextManager, Iterable, Iterator, Protocol

from schedule_expansion.types import (
    Category,
    EntityKind,
    Owner,
    OwnerId,
    RecordId,
    ScheduledRecord,
)


class RecordStore(Protocol):
    """Operations the core consumes from a persistence layer."""

    def transaction(self) -> ContextManager[None]:
        """One atomic unit of work. Nested calls join the open one."""
        ...

    def find_max_display_number(self, owner_id: OwnerId, kind: EntityKind) -> int:
        """Highest number saved or claimed for (owner, kind); 0 if none."""
        ...

    def claim_display_number(self, owner_id: OwnerId, kind: EntityKind, number: int) -> bool:
        """Atomically reserve a number. False if someone already holds it."""
        ...

    def save(self, record: ScheduledRecord) -> ScheduledRecord: ...

    def save_all(self, records: Iterable[ScheduledRecord]) -> list[ScheduledRecord]: ...

    def find_by_id(self, record_id: RecordId) -> ScheduledRecord | None: ...

    def find_instances_by_master_id(self, master_id: RecordId) -> list[ScheduledRecord]: ...

    def find_by_display_number(
        self, owner_id: OwnerId, kind: EntityKind, number: int
    ) -> ScheduledRecord | None: ...

    def find_in_range(
        self, owner_id: OwnerId, kind: EntityKind, start: datetime, end: datetime
    ) -> list[ScheduledRecord]: ...

    def delete(self, record: ScheduledRecord) -> None: ...

    def delete_all(self, records: Iterable[ScheduledRecord]) -> None: ...

    def find_owner_by_id(self, owner_id: OwnerId) -> Owner | None: ...

    def find_category_by_id(self, category_id: int) -> Category | None: ...


def _sort_key(record: ScheduledRecord) -> tuple[datetime, int]:
    return (record.occurrence_time, record.display_number)


class InMemoryRecordStore:
    """Thread-safe RecordStore backed by dictionaries.

    transaction() holds the store lock for the whole unit of work, so units
    of work are serialised. On error the record arena is restored to the
    snapshot taken on entry. Display number claims keep one high-water mark
    per (owner, kind) outside the snapshot: like a database sequence they are
    never handed back.
    """

    def __init__(
        self,
        owners: Iterable[Owner] = (),
        categories: Iterable[Category] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._records: dict[RecordId, ScheduledRecord] = {}
        self._next_id: RecordId = 1
        # Highest number claimed per (owner, kind)
        self._claimed: dict[tuple[OwnerId, EntityKind], int] = {}
        self._owners: dict[OwnerId, Owner] = {o.id: o for o in owners}
        self._categories: dict[int, Category] = {c.id: c for c in categories}

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_owner(self, owner: Owner) -> Owner:
        with self._lock:
            self._owners[owner.id] = owner
        return owner

    def add_category(self, category: Category) -> Category:
        with self._lock:
            self._categories[category.id] = category
        return category

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def checkpoint(self) -> tuple[dict[RecordId, ScheduledRecord], RecordId]:
        """Snapshot of the record arena. Records are frozen, a shallow copy suffices."""
        with self._lock:
            return dict(self._records), self._next_id

    def restore(self, snap: tuple[dict[RecordId, ScheduledRecord], RecordId]) -> None:
        """Restore the record arena to a snapshot. Mutates in place."""
        records, next_id = snap
        with self._lock:
            self._records = dict(records)
            self._next_id = next_id

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snap = self.checkpoint()
            self._depth = 1
            try:
                yield
            except BaseException:
                self.restore(snap)
                raise
            finally:
                self._depth = 0

    # ------------------------------------------------------------------
    # Display numbers
    # ------------------------------------------------------------------

    def find_max_display_number(self, owner_id: OwnerId, kind: EntityKind) -> int:
        with self._lock:
            saved = (
                r.display_number
                for r in self._records.values()
                if r.owner_id == owner_id and r.kind is kind
            )
            return max(max(saved, default=0), self._claimed.get((owner_id, kind), 0))

    def claim_display_number(self, owner_id: OwnerId, kind: EntityKind, number: int) -> bool:
        """Succeeds only above the current maximum, which then moves to number."""
        with self._lock:
            if number <= self.find_max_display_number(owner_id, kind):
                return False
            self._claimed[(owner_id, kind)] = number
            return True

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def save(self, record: ScheduledRecord) -> ScheduledRecord:
        with self._lock:
            if record.id is None:
                record = replace(record, id=self._next_id)
                self._next_id += 1
            else:
                self._next_id = max(self._next_id, record.id + 1)
            self._records[record.id] = record
            return record

    def save_all(self, records: Iterable[ScheduledRecord]) -> list[ScheduledRecord]:
        with self.transaction():
            return [self.save(r) for r in records]

    def find_by_id(self, record_id: RecordId) -> ScheduledRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def find_instances_by_master_id(self, master_id: RecordId) -> list[ScheduledRecord]:
        with self._lock:
            instances = [r for r in self._records.values() if r.master_id == master_id]
        return sorted(instances, key=_sort_key)

    def find_by_display_number(
        self, owner_id: OwnerId, kind: EntityKind, number: int
    ) -> ScheduledRecord | None:
        with self._lock:
            for record in self._records.values():
                if (
                    record.owner_id == owner_id
                    and record.kind is kind
                    and record.display_number == number
                ):
                    return record
        return None

    def find_in_range(
        self, owner_id: OwnerId, kind: EntityKind, start: datetime, end: datetime
    ) -> list[ScheduledRecord]:
        """Records with start <= occurrence_time <= end, in time order."""
        with self._lock:
            matches = [
                r for r in self._records.values()
                if r.owner_id == owner_id
                and r.kind is kind
                and start <= r.occurrence_time <= end
            ]
        return sorted(matches, key=_sort_key)

    def delete(self, record: ScheduledRecord) -> None:
        with self._lock:
            self._records.pop(record.id, None)

    def delete_all(self, records: Iterable[ScheduledRecord]) -> None:
        with self.transaction():
            for record in records:
                self.delete(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ------------------------------------------------------------------
    # Collaborator lookups
    # ------------------------------------------------------------------

    def find_owner_by_id(self, owner_id: OwnerId) -> Owner | None:
        with self._lock:
            return self._owners.get(owner_id)

    def find_category_by_id(self, category_id: int) -> Category | None:
        with self._lock:
            return self._categories.get(category_id)
