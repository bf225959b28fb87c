"""Tests for the development-time ASCII views."""

from __future__ import annotations

from datetime import datetime

from conftest import CATEGORY_ID, OWNER_ID


class TestShowExpansion:

    def test_lists_every_occurrence(self, capsys):
        from schedule_expansion.debug import show_expansion
        from schedule_expansion.recurrence import expand
        from schedule_expansion.types import RecurrenceRule

        rule = RecurrenceRule("MONTHLY", end_date=datetime(2024, 4, 1))
        output = show_expansion(expand(rule, datetime(2024, 1, 31, 9, 0)))

        assert output.splitlines()[0].startswith("Monthly (step 1)")
        assert "Thu 29 Feb 2024 09:00" in output
        assert "Fri 29 Mar 2024 09:00" in output
        assert output.endswith("2 occurrences (cap 100)")
        assert capsys.readouterr().out.strip() == output

    def test_limit_summarises_the_rest(self):
        from schedule_expansion.debug import show_expansion
        from schedule_expansion.recurrence import expand
        from schedule_expansion.types import RecurrenceRule

        rule = RecurrenceRule("EVERY_N_DAYS", interval=3)
        output = show_expansion(expand(rule, datetime(2024, 1, 1)), limit=5)

        assert "... 95 more" in output
        assert "100 occurrences" in output
        assert len(output.splitlines()) == 1 + 5 + 1 + 1


class TestShowSchedule:

    def test_master_then_instances(self, materializer):
        from schedule_expansion.debug import show_schedule
        from schedule_expansion.types import RecurrenceRule

        schedule = materializer.create_schedule(
            OWNER_ID,
            "Standup",
            datetime(2024, 2, 5, 9, 30),
            category_id=CATEGORY_ID,
            rule=RecurrenceRule("DAILY", end_date=datetime(2024, 2, 8)),
        )
        lines = show_schedule(schedule).splitlines()

        assert lines[0] == "'Standup'  owner 1  event"
        assert lines[2].rstrip().endswith("master")
        assert len(lines) == 2 + 3
        assert lines[-1].rstrip().endswith(f"-> {schedule.master.id}")
