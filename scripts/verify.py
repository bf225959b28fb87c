#!/usr/bin/env python
"""Visual verification report for schedule-expansion.

Run:  python scripts/verify.py

Produces a formatted report showing:
  1. Configuration and named rules loaded from data/fixtures/
  2. Expansion scenarios  -- expected vs actual occurrence tables
  3. Bounded expansions  -- count and last occurrence against the cap/horizon
  4. Materialisation demo  -- master + instances with display numbers, then delete
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths and data loading
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
FIXTURES = ROOT / "data" / "fixtures"
SCENARIOS = FIXTURES / "scenarios"

sys.path.insert(0, str(ROOT / "src"))

from schedule_expansion.debug import show_expansion, show_schedule
from schedule_expansion.loaders import load_config_json, load_rules_json
from schedule_expansion.materializer import ScheduleMaterializer
from schedule_expansion.recurrence import expand
from schedule_expansion.store import InMemoryRecordStore
from schedule_expansion.types import Category, EntityKind, Owner, RecurrenceRule


def _load(path: Path):
    with open(path) as f:
        return json.load(f)


def _dt(iso: str | None) -> datetime | None:
    return datetime.fromisoformat(iso) if iso is not None else None


def _rule(spec: dict) -> RecurrenceRule:
    return RecurrenceRule(
        pattern=spec["pattern"],
        interval=spec.get("interval"),
        end_date=_dt(spec.get("end_date")),
    )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------
WIDTH = 90


def banner(title: str):
    print()
    print("=" * WIDTH)
    print(f"  {title}")
    print("=" * WIDTH)


def heading(title: str):
    print()
    print(f"  {title}")
    print(f"  {'-' * (len(title) + 2)}")


def table(headers: list[str], rows: list[list[str]], indent: int = 4):
    """Print a formatted table with auto-sized columns."""
    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            col_widths[i] = max(col_widths[i], len(cell))

    pad = " " * indent
    fmt = pad + "  ".join(f"{{:<{w}}}" for w in col_widths)
    sep = pad + "  ".join("-" * w for w in col_widths)

    print(fmt.format(*headers))
    print(sep)
    for row in rows:
        padded = row + [""] * (len(headers) - len(row))
        print(fmt.format(*padded))


def _fmt_dt(value: datetime | None) -> str:
    """Format a datetime as 'Wed 31 Jan 2024 09:00'; None as '-'."""
    if value is None:
        return "-"
    return value.strftime("%a %d %b %Y %H:%M")


# ---------------------------------------------------------------------------
# Section 1: Configuration
# ---------------------------------------------------------------------------
def section_config():
    banner("CONFIGURATION")

    config = load_config_json(FIXTURES / "config.json")
    heading("config.json")
    table(
        ["Setting", "Value"],
        [
            ["max_occurrences", str(config.max_occurrences)],
            ["horizon_years", str(config.horizon_years)],
            ["allocation_retries", str(config.allocation_retries)],
        ],
    )

    heading("rules.json")
    rows = []
    for name, rule in load_rules_json(FIXTURES / "rules.json").items():
        rows.append([
            name,
            rule.pattern.display_name,
            str(rule.step),
            _fmt_dt(rule.end_date),
        ])
    table(["Name", "Pattern", "Step", "End date"], rows)


# ---------------------------------------------------------------------------
# Section 2: Exact expansions
# ---------------------------------------------------------------------------
def section_exact():
    banner("LAYER 1: EXPANSION (EXACT)")

    data = _load(SCENARIOS / "expansion.json")

    heading("Function: expand(rule, anchor) -> occurrences strictly after anchor")
    print("    Stops before the end bound; months and years clamp to month end.\n")

    rows = []
    for s in data["exact"]:
        anchor = _dt(s["anchor"])
        actual = [t.isoformat() for t in expand(_rule(s), anchor)]
        expected = [_dt(e).isoformat() for e in s["expected"]]
        match = "OK" if actual == expected else "FAIL"
        rows.append([
            s["id"],
            s["pattern"],
            _fmt_dt(anchor),
            _fmt_dt(_dt(s.get("end_date"))),
            str(len(actual)),
            match,
            s.get("notes", ""),
        ])
    table(["ID", "Pattern", "Anchor", "End", "Count", "", "Notes"], rows)

    heading("Leap-year rollover, step by step")
    spec = next(s for s in data["exact"] if s["id"] == "monthly_leap_rollover")
    print()
    show_expansion(expand(_rule(spec), _dt(spec["anchor"])))


# ---------------------------------------------------------------------------
# Section 3: Bounded expansions
# ---------------------------------------------------------------------------
def section_bounded():
    banner("LAYER 1: EXPANSION (CAP AND HORIZON)")

    data = _load(SCENARIOS / "expansion.json")

    rows = []
    for s in data["bounded"]:
        expansion = expand(_rule(s), _dt(s["anchor"]))
        times = list(expansion)
        last = times[-1] if times else None
        ok = len(times) == s["expected_count"] and last == _dt(s["expected_last"])
        rows.append([
            s["id"],
            _fmt_dt(expansion.end_bound),
            str(len(times)),
            _fmt_dt(last),
            "OK" if ok else "FAIL",
            s.get("notes", ""),
        ])
    table(["ID", "End bound", "Count", "Last", "", "Notes"], rows)

    heading("Cap demo (every 3 days, first 5 shown)")
    spec = next(s for s in data["bounded"] if s["id"] == "every_3_days_capped")
    print()
    show_expansion(expand(_rule(spec), _dt(spec["anchor"])), limit=5)


# ---------------------------------------------------------------------------
# Section 4: Materialisation
# ---------------------------------------------------------------------------
def section_materialize():
    banner("LAYER 2: MATERIALISE + DELETE")

    store = InMemoryRecordStore(
        owners=[Owner(id=1, display_name="ada")],
        categories=[Category(id=10, owner_id=1, name="Work")],
    )
    materializer = ScheduleMaterializer(store)

    heading("create_schedule: one-shot, then a weekly series")
    print("    Master and instances share one display-number space.\n")

    materializer.create_schedule(1, "Dentist", datetime(2024, 1, 30, 15, 0))
    weekly = materializer.create_schedule(
        1,
        "Planning",
        datetime(2024, 1, 31, 9, 0),
        location="Room 4",
        category_id=10,
        rule={"pattern": "WEEKLY", "end_date": "2024-03-01T00:00:00"},
    )
    show_schedule(weekly)

    follow_up = materializer.create_schedule(1, "Retro", datetime(2024, 3, 1, 16, 0))
    print(f"\n    Next one-shot receives #{follow_up.master.display_number}")

    heading("delete_schedule: master cascades to instances")
    removed = materializer.delete_schedule(1, weekly.master.id)
    remaining = store.find_in_range(
        1, EntityKind.EVENT, datetime(2024, 1, 1), datetime(2024, 12, 31)
    )
    table(
        ["Removed", "Remaining", "Remaining numbers"],
        [[str(removed), str(len(remaining)),
          ", ".join(str(r.display_number) for r in remaining)]],
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main():
    banner("SCHEDULE-EXPANSION   --  VISUAL VERIFICATION REPORT")
    print(f"    Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print(f"    Fixture data: {FIXTURES.relative_to(ROOT)}/")

    section_config()
    section_exact()
    section_bounded()
    section_materialize()

    banner("END OF REPORT")
    print()


if __name__ == "__main__":
    main()
