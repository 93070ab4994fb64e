"""
🧪 Unit Tests for the Configuration Manager
File: tests/unit/test_config.py

Run with: pytest tests/unit/test_config.py -v
"""

import pytest

from config import ConfigManager

pytestmark = pytest.mark.unit


class TestConfigManager:
    def test_defaults(self):
        cfg = ConfigManager()
        assert cfg.get("analysis.confidence_level") == 0.95
        assert cfg.get("table.missing_text") == "-"
        assert cfg.get("table.footnote_marks") == "numeric"
        assert cfg.get("no.such.key", "fallback") == "fallback"

    def test_update_existing_only(self):
        cfg = ConfigManager()
        cfg.update("table.missing_text", "NE")
        assert cfg.get("table.missing_text") == "NE"
        with pytest.raises(KeyError):
            cfg.update("table.no_such_key", 1)

    def test_section_is_copy(self):
        cfg = ConfigManager()
        section = cfg.get_section("table")
        section["missing_text"] = "changed"
        assert cfg.get("table.missing_text") == "-"

    def test_validate(self):
        cfg = ConfigManager()
        assert cfg.validate() == (True, [])
        cfg.update("analysis.confidence_level", 1.2)
        cfg.update("table.footnote_marks", "roman")
        cfg.update("table.pct_decimals", -1)
        ok, errors = cfg.validate()
        assert not ok
        assert len(errors) == 3


class TestEnvOverrides:
    @pytest.mark.parametrize(
        "var,raw,key,expected",
        [
            ("SUMTAB_TABLE_MISSING_TEXT", "NE", "table.missing_text", "NE"),
            ("SUMTAB_TABLE_PCT_DECIMALS", "2", "table.pct_decimals", 2),
            ("SUMTAB_ANALYSIS_CONFIDENCE_LEVEL", "0.9", "analysis.confidence_level", 0.9),
            ("SUMTAB_LOGGING_FILE_ENABLED", "yes", "logging.file_enabled", True),
            ("SUMTAB_ANALYSIS_EVENT_VALUES", '["CR", "PR"]', "analysis.event_values", ["CR", "PR"]),
        ],
    )
    def test_values_coerced_to_default_type(self, monkeypatch, var, raw, key, expected):
        monkeypatch.setenv(var, raw)
        assert ConfigManager().get(key) == expected

    def test_bad_override_warns_and_keeps_default(self, monkeypatch):
        monkeypatch.setenv("SUMTAB_TABLE_PCT_DECIMALS", "two")
        with pytest.warns(UserWarning):
            cfg = ConfigManager()
        assert cfg.get("table.pct_decimals") == 1

    def test_unknown_key_warns(self, monkeypatch):
        monkeypatch.setenv("SUMTAB_TABLE_COLOUR", "red")
        with pytest.warns(UserWarning):
            ConfigManager()

    def test_out_of_range_override_warns(self, monkeypatch):
        monkeypatch.setenv("SUMTAB_ANALYSIS_CONFIDENCE_LEVEL", "95")
        with pytest.warns(UserWarning, match="confidence_level"):
            cfg = ConfigManager()
        assert cfg.get("analysis.confidence_level") == 95.0
