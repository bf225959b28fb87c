"""ASCII visualisation for development-time verification.

This module is dev-only and not imported by production code.
"""

from __future__ import annotations

from schedule_expansion.recurrence import Expansion
from schedule_expansion.types import Schedule


def _fmt(dt) -> str:
    """Format a datetime as 'Wed 31 Jan 2024 09:00'."""
    return dt.strftime("%a %d %b %Y %H:%M")


def show_expansion(expansion: Expansion, limit: int | None = None) -> str:
    """Print the occurrences of an expansion, one per line.

    Returns the string and also prints to stdout.

    Args:
        expansion: Expansion to render.
        limit: Show at most this many occurrences, then a summary line.
    """
    rule = expansion.rule
    lines = [
        f"{rule.pattern.display_name} (step {rule.step})  "
        f"anchor {_fmt(expansion.anchor)}  end {_fmt(expansion.end_bound)}"
    ]

    count = 0
    for when in expansion:
        count += 1
        if limit is None or count <= limit:
            lines.append(f"  {count:>3d}  {_fmt(when)}")
    if limit is not None and count > limit:
        lines.append(f"  ... {count - limit} more")
    lines.append(f"  {count} occurrences (cap {expansion.max_occurrences})")

    output = "\n".join(lines)
    print(output)
    return output


def show_schedule(schedule: Schedule) -> str:
    """Print a master and its instances as a table.

    Columns: display number, record id, occurrence time, role.
    Returns the string and also prints to stdout.
    """
    master = schedule.master
    lines = [
        f"{master.title!r}  owner {master.owner_id}  {master.kind.value}",
        f"  {'#':>5s}  {'id':>5s}  {'when':<22s}  role",
    ]
    for record in schedule.records:
        role = "master" if record.is_master else f"-> {record.master_id}"
        lines.append(
            f"  {record.display_number:>5d}  {record.id!s:>5s}  "
            f"{_fmt(record.occurrence_time):<22s}  {role}"
        )

    output = "\n".join(lines)
    print(output)
    return output
