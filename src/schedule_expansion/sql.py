"""RecordStore over a relational database (SQLAlchemy 2.x).

Display numbers are claimed by inserting into display_number_claims, whose
primary key is (owner_id, kind, number). The insert either lands or is
skipped by the database, which makes the claim a single atomic step even
across processes.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from schedule_expansion.types import (
    Category,
    EntityKind,
    Owner,
    OwnerId,
    RecordId,
    RecurrencePattern,
    RecurrenceRule,
    ScheduledRecord,
    ValidationError,
)

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class OwnerRow(Base):
    __tablename__ = "owners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), default="")


class CategoryRow(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("owners.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class ScheduledRecordRow(Base):
    __tablename__ = "scheduled_records"
    __table_args__ = (
        UniqueConstraint("owner_id", "kind", "display_number", name="uq_record_display_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("owners.id"), nullable=False, index=True)
    kind: Mapped[EntityKind] = mapped_column(Enum(EntityKind, native_enum=False), nullable=False)
    display_number: Mapped[int] = mapped_column(Integer, nullable=False)
    occurrence_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    reminder_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"), nullable=True)
    is_master: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Recurrence (all null for one-shot records and instances)
    recurrence_pattern: Mapped[Optional[RecurrencePattern]] = mapped_column(
        Enum(RecurrencePattern, native_enum=False), nullable=True
    )
    recurrence_interval: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    recurrence_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    master_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("scheduled_records.id"), nullable=True, index=True
    )


class DisplayNumberClaimRow(Base):
    __tablename__ = "display_number_claims"

    owner_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[EntityKind] = mapped_column(Enum(EntityKind, native_enum=False), primary_key=True)
    number: Mapped[int] = mapped_column(Integer, primary_key=True)


def _to_record(row: ScheduledRecordRow) -> ScheduledRecord:
    rule = None
    if row.recurrence_pattern is not None:
        rule = RecurrenceRule(
            pattern=row.recurrence_pattern,
            interval=row.recurrence_interval,
            end_date=row.recurrence_end_date,
        )
    return ScheduledRecord(
        id=row.id,
        owner_id=row.owner_id,
        kind=row.kind,
        display_number=row.display_number,
        occurrence_time=row.occurrence_time,
        title=row.title,
        description=row.description,
        location=row.location,
        reminder_minutes=row.reminder_minutes,
        category_id=row.category_id,
        is_master=row.is_master,
        rule=rule,
        master_id=row.master_id,
    )


def _require_naive(value: datetime | None, field: str) -> None:
    """DateTime columns hold wall-clock values; an offset would be dropped."""
    if value is not None and value.tzinfo is not None:
        raise ValidationError(
            f"{field} {value.isoformat()} is timezone-aware; "
            f"SqlAlchemyRecordStore stores naive wall-clock datetimes"
        )


def _to_row(record: ScheduledRecord) -> ScheduledRecordRow:
    rule = record.rule
    _require_naive(record.occurrence_time, "occurrence_time")
    if rule is not None:
        _require_naive(rule.end_date, "recurrence end_date")
    return ScheduledRecordRow(
        id=record.id,
        owner_id=record.owner_id,
        kind=record.kind,
        display_number=record.display_number,
        occurrence_time=record.occurrence_time,
        title=record.title,
        description=record.description,
        location=record.location,
        reminder_minutes=record.reminder_minutes,
        category_id=record.category_id,
        is_master=record.is_master,
        recurrence_pattern=rule.pattern if rule is not None else None,
        recurrence_interval=rule.interval if rule is not None else None,
        recurrence_end_date=rule.end_date if rule is not None else None,
        master_id=record.master_id,
    )


class SqlAlchemyRecordStore:
    """RecordStore backed by a SQLAlchemy engine.

    While transaction() is open, every port call made on the same thread
    shares its Session. Outside a transaction each call commits on its own.

    Datetimes are stored as naive wall-clock values. Saving a timezone-aware
    occurrence time or end date, or querying with aware range bounds, raises
    ValidationError.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        self._local = threading.local()

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _current(self) -> Session | None:
        return getattr(self._local, "session", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._current() is not None:
            yield
            return

        with self._session_factory() as session, session.begin():
            self._local.session = session
            try:
                yield
            finally:
                self._local.session = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._current()
        if session is not None:
            yield session
            return
        with self._session_factory.begin() as session:
            yield session

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_owner(self, owner: Owner) -> Owner:
        with self._session() as session:
            session.add(OwnerRow(id=owner.id, display_name=owner.display_name))
        return owner

    def add_category(self, category: Category) -> Category:
        with self._session() as session:
            session.add(
                CategoryRow(
                    id=category.id,
                    owner_id=category.owner_id,
                    name=category.name,
                    color=category.color,
                )
            )
        return category

    # ------------------------------------------------------------------
    # Display numbers
    # ------------------------------------------------------------------

    def find_max_display_number(self, owner_id: OwnerId, kind: EntityKind) -> int:
        with self._session() as session:
            saved = session.scalar(
                select(func.coalesce(func.max(ScheduledRecordRow.display_number), 0)).where(
                    ScheduledRecordRow.owner_id == owner_id,
                    ScheduledRecordRow.kind == kind,
                )
            )
            claimed = session.scalar(
                select(func.coalesce(func.max(DisplayNumberClaimRow.number), 0)).where(
                    DisplayNumberClaimRow.owner_id == owner_id,
                    DisplayNumberClaimRow.kind == kind,
                )
            )
        return max(saved or 0, claimed or 0)

    def claim_display_number(self, owner_id: OwnerId, kind: EntityKind, number: int) -> bool:
        values = {"owner_id": owner_id, "kind": kind, "number": number}
        with self._session() as session:
            dialect = session.get_bind().dialect.name
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert as dialect_insert
            elif dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert as dialect_insert
            else:
                return self._claim_with_savepoint(session, values)

            stmt = dialect_insert(DisplayNumberClaimRow.__table__).values(**values)
            result = session.execute(stmt.on_conflict_do_nothing())
            return result.rowcount == 1

    def _claim_with_savepoint(self, session: Session, values: dict) -> bool:
        """Plain insert; a unique violation rolls back only the savepoint."""
        try:
            with session.begin_nested():
                session.execute(insert(DisplayNumberClaimRow.__table__).values(**values))
        except IntegrityError:
            logger.debug("Display number claim %r already taken", values)
            return False
        return True

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def save(self, record: ScheduledRecord) -> ScheduledRecord:
        with self._session() as session:
            row = _to_row(record)
            session.add(row)
            session.flush()
            return _to_record(row)

    def save_all(self, records: Iterable[ScheduledRecord]) -> list[ScheduledRecord]:
        with self._session() as session:
            rows = [_to_row(r) for r in records]
            session.add_all(rows)
            session.flush()
            return [_to_record(row) for row in rows]

    def find_by_id(self, record_id: RecordId) -> ScheduledRecord | None:
        with self._session() as session:
            row = session.get(ScheduledRecordRow, record_id)
            return _to_record(row) if row is not None else None

    def find_instances_by_master_id(self, master_id: RecordId) -> list[ScheduledRecord]:
        with self._session() as session:
            rows = session.scalars(
                select(ScheduledRecordRow)
                .where(ScheduledRecordRow.master_id == master_id)
                .order_by(ScheduledRecordRow.occurrence_time, ScheduledRecordRow.display_number)
            ).all()
            return [_to_record(row) for row in rows]

    def find_by_display_number(
        self, owner_id: OwnerId, kind: EntityKind, number: int
    ) -> ScheduledRecord | None:
        with self._session() as session:
            row = session.scalars(
                select(ScheduledRecordRow).where(
                    ScheduledRecordRow.owner_id == owner_id,
                    ScheduledRecordRow.kind == kind,
                    ScheduledRecordRow.display_number == number,
                )
            ).first()
            return _to_record(row) if row is not None else None

    def find_in_range(
        self, owner_id: OwnerId, kind: EntityKind, start: datetime, end: datetime
    ) -> list[ScheduledRecord]:
        _require_naive(start, "range start")
        _require_naive(end, "range end")
        with self._session() as session:
            rows = session.scalars(
                select(ScheduledRecordRow)
                .where(
                    ScheduledRecordRow.owner_id == owner_id,
                    ScheduledRecordRow.kind == kind,
                    ScheduledRecordRow.occurrence_time.between(start, end),
                )
                .order_by(ScheduledRecordRow.occurrence_time, ScheduledRecordRow.display_number)
            ).all()
            return [_to_record(row) for row in rows]

    def delete(self, record: ScheduledRecord) -> None:
        self.delete_all([record])

    def delete_all(self, records: Iterable[ScheduledRecord]) -> None:
        ids = [r.id for r in records if r.id is not None]
        if not ids:
            return
        with self._session() as session:
            session.execute(delete(ScheduledRecordRow).where(ScheduledRecordRow.id.in_(ids)))

    # ------------------------------------------------------------------
    # Collaborator lookups
    # ------------------------------------------------------------------

    def find_owner_by_id(self, owner_id: OwnerId) -> Owner | None:
        with self._session() as session:
            row = session.get(OwnerRow, owner_id)
            return Owner(id=row.id, display_name=row.display_name) if row is not None else None

    def find_category_by_id(self, category_id: int) -> Category | None:
        with self._session() as session:
            row = session.get(CategoryRow, category_id)
            if row is None:
                return None
            return Category(id=row.id, owner_id=row.owner_id, name=row.name, color=row.color)
