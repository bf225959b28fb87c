"""Shared test fixtures and data loading for schedule-expansion.

Scenario data lives in data/fixtures/scenarios/ as JSON files.  This module
loads that data and exposes helper functions + pytest fixtures for the tests.

Reference owners: 1 ("ada") and 2 ("grace"). Category 10 belongs to owner 1.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
FIXTURES_DIR = Path(__file__).resolve().parent.parent / "data" / "fixtures"
SCENARIOS_DIR = FIXTURES_DIR / "scenarios"

OWNER_ID = 1
OTHER_OWNER_ID = 2
CATEGORY_ID = 10


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------
def _load_json(path: Path):
    with open(path) as f:
        return json.load(f)


def load_scenarios(name: str):
    """Load a scenario file from data/fixtures/scenarios/{name}.json."""
    return _load_json(SCENARIOS_DIR / f"{name}.json")


# ---------------------------------------------------------------------------
# Convenience helpers (importable by test modules)
# ---------------------------------------------------------------------------
def dt(iso: str | None) -> datetime | None:
    """Parse an ISO datetime string; None passes through.

    >>> dt("2024-01-31T10:00")
    datetime(2024, 1, 31, 10, 0)
    """
    return datetime.fromisoformat(iso) if iso is not None else None


def make_rule(spec: dict):
    """Build a RecurrenceRule from a scenario spec dict."""
    from schedule_expansion.types import RecurrenceRule

    return RecurrenceRule(
        pattern=spec["pattern"],
        interval=spec.get("interval"),
        end_date=dt(spec.get("end_date")),
    )


def seed(store):
    """Register the reference owners and category on any RecordStore."""
    from schedule_expansion.types import Category, Owner

    store.add_owner(Owner(id=OWNER_ID, display_name="ada"))
    store.add_owner(Owner(id=OTHER_OWNER_ID, display_name="grace"))
    store.add_category(Category(id=CATEGORY_ID, owner_id=OWNER_ID, name="Work", color="#3366ff"))
    return store


def make_sql_store(path: Path | None = None):
    """SqlAlchemyRecordStore over SQLite.

    Without a path the database is private and in-memory, shared through one
    connection. With a path every thread gets its own connection to the file,
    so writers really contend for the database lock.
    """
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool

    from schedule_expansion.sql import SqlAlchemyRecordStore

    if path is None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            f"sqlite:///{path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    store = SqlAlchemyRecordStore(engine)
    store.create_schema()
    return store


# ---------------------------------------------------------------------------
# pytest fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def memory_store():
    """Seeded in-memory store."""
    from schedule_expansion.store import InMemoryRecordStore

    return seed(InMemoryRecordStore())


@pytest.fixture
def sql_store():
    """Seeded SQLite-backed store."""
    return seed(make_sql_store())


@pytest.fixture
def file_sql_store(tmp_path):
    """Seeded SQLite store on a file, one connection per thread."""
    return seed(make_sql_store(tmp_path / "schedules.db"))


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each seeded RecordStore implementation in turn."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sql_store")


@pytest.fixture
def materializer(store):
    from schedule_expansion.materializer import ScheduleMaterializer

    return ScheduleMaterializer(store)
