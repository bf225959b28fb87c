"""Tests for ScheduleConfig and the JSON loaders."""

from __future__ import annotations

import json
import logging

import pytest

from conftest import FIXTURES_DIR


class TestScheduleConfig:

    def test_defaults(self):
        from schedule_expansion.config import DEFAULT_CONFIG, ScheduleConfig

        assert ScheduleConfig() == DEFAULT_CONFIG
        assert DEFAULT_CONFIG.max_occurrences == 100
        assert DEFAULT_CONFIG.horizon_years == 2
        assert DEFAULT_CONFIG.allocation_retries == 5

    def test_from_dict(self):
        from schedule_expansion.config import ScheduleConfig

        config = ScheduleConfig.from_dict(
            {"max_occurrences": 20, "horizon_years": 3, "allocation_retries": 8}
        )
        assert config == ScheduleConfig(20, 3, 8)

    def test_from_none(self):
        from schedule_expansion.config import DEFAULT_CONFIG, ScheduleConfig

        assert ScheduleConfig.from_dict(None) == DEFAULT_CONFIG

    def test_numeric_strings_coerced(self):
        from schedule_expansion.config import ScheduleConfig

        assert ScheduleConfig.from_dict({"max_occurrences": "50"}).max_occurrences == 50

    @pytest.mark.parametrize(
        "key, raw",
        [
            ("max_occurrences", "lots"),
            ("max_occurrences", -1),
            ("horizon_years", 0),
            ("allocation_retries", 0),
            ("allocation_retries", None),
            ("horizon_years", True),
        ],
    )
    def test_bad_values_fall_back(self, key, raw, caplog):
        from schedule_expansion.config import DEFAULT_CONFIG, ScheduleConfig

        with caplog.at_level(logging.WARNING, logger="schedule_expansion.config"):
            config = ScheduleConfig.from_dict({key: raw})
        assert getattr(config, key) == getattr(DEFAULT_CONFIG, key)
        assert key in caplog.text

    def test_zero_cap_allowed(self):
        from schedule_expansion.config import ScheduleConfig

        assert ScheduleConfig.from_dict({"max_occurrences": 0}).max_occurrences == 0

    def test_unknown_key_warns(self, caplog):
        from schedule_expansion.config import DEFAULT_CONFIG, ScheduleConfig

        with caplog.at_level(logging.WARNING, logger="schedule_expansion.config"):
            config = ScheduleConfig.from_dict({"max_instances": 5})
        assert config == DEFAULT_CONFIG
        assert "max_instances" in caplog.text


class TestLoaders:

    def test_load_config_json(self):
        from schedule_expansion.config import ScheduleConfig
        from schedule_expansion.loaders import load_config_json

        config = load_config_json(FIXTURES_DIR / "config.json")
        assert config == ScheduleConfig(max_occurrences=10, horizon_years=1, allocation_retries=3)

    def test_load_config_json_top_level(self, tmp_path):
        from schedule_expansion.loaders import load_config_json

        path = tmp_path / "flat.json"
        path.write_text(json.dumps({"max_occurrences": 7}))
        assert load_config_json(path).max_occurrences == 7

    def test_load_rules_json(self):
        from schedule_expansion.loaders import load_rules_json
        from schedule_expansion.types import RecurrencePattern

        rules = load_rules_json(FIXTURES_DIR / "rules.json")
        assert set(rules) == {"standup", "sprint_review", "rent", "anniversary"}
        assert rules["sprint_review"].pattern is RecurrencePattern.EVERY_N_WEEKS
        assert rules["sprint_review"].step == 2
        assert rules["anniversary"].pattern is RecurrencePattern.YEARLY
        assert rules["standup"].end_date is not None

    def test_load_rules_json_reports_every_bad_entry(self, tmp_path):
        from schedule_expansion.loaders import load_rules_json
        from schedule_expansion.types import ValidationError

        path = tmp_path / "bad_rules.json"
        path.write_text(json.dumps({
            "ok": {"pattern": "DAILY"},
            "typo": {"pattern": "DIALY"},
            "no_pattern": {"interval": 2},
        }))
        with pytest.raises(ValidationError) as exc_info:
            load_rules_json(path)
        message = str(exc_info.value)
        assert "bad_rules.json" in message
        assert "typo:" in message
        assert "no_pattern:" in message
        assert "ok:" not in message

    @pytest.mark.parametrize("content", [[1, 2], "DAILY", 3, None], ids=["list", "str", "int", "null"])
    def test_load_rules_json_top_level_must_be_mapping(self, tmp_path, content):
        from schedule_expansion.loaders import load_rules_json
        from schedule_expansion.types import ValidationError

        path = tmp_path / "rules_list.json"
        path.write_text(json.dumps(content))
        with pytest.raises(ValidationError, match="rules_list.json") as exc_info:
            load_rules_json(path)
        assert "must be a mapping" in str(exc_info.value)

    def test_load_config_json_top_level_must_be_mapping(self, tmp_path):
        from schedule_expansion.loaders import load_config_json
        from schedule_expansion.types import ValidationError

        path = tmp_path / "config_list.json"
        path.write_text(json.dumps([{"max_occurrences": 7}]))
        with pytest.raises(ValidationError, match="config_list.json"):
            load_config_json(path)

    def test_load_config_json_schedule_must_be_mapping(self, tmp_path):
        from schedule_expansion.loaders import load_config_json
        from schedule_expansion.types import ValidationError

        path = tmp_path / "config_nested.json"
        path.write_text(json.dumps({"schedule": 100}))
        with pytest.raises(ValidationError, match="'schedule' must be a mapping"):
            load_config_json(path)
