"""
🧪 Unit Tests for the Logging Framework
File: tests/unit/test_logger.py

Run with: pytest tests/unit/test_logger.py -v
"""

import logging

import pytest

from config import CONFIG
from logger import LoggerFactory, PerformanceLogger, get_logger

pytestmark = pytest.mark.unit


class TestLogger:
    def test_names_nested_under_package(self):
        assert get_logger("tests.demo").name == "summary_tables.tests.demo"
        assert get_logger("summary_tables.renderer").name == "summary_tables.renderer"

    def test_loggers_cached(self):
        assert get_logger("tests.cache") is LoggerFactory.get_logger("tests.cache")

    def test_log_operation_levels(self, caplog):
        log = get_logger("tests.ops")
        with caplog.at_level(logging.INFO, logger="summary_tables"):
            log.log_operation("aggregate", "started", rows=3)
            log.log_operation("aggregate", "failed", error="boom")
        messages = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert (logging.INFO, "[aggregate] STARTED rows=3") in messages
        assert (logging.ERROR, "[aggregate] FAILED error=boom") in messages

    def test_data_summary_respects_config(self, caplog):
        log = get_logger("tests.data")
        CONFIG.update("logging.log_data_operations", False)
        with caplog.at_level(logging.INFO, logger="summary_tables"):
            log.log_data_summary("records", (2, 2), {"a": "int64", "b": "object"})
        assert not caplog.records


class TestPerformanceLogger:
    def test_track_time_records(self):
        perf = PerformanceLogger(logging.getLogger("summary_tables.tests.perf"))
        with perf.track_time("step"):
            pass
        timings = perf.get_timings("step")
        assert len(timings["step"]) == 1
        assert timings["step"][0] >= 0

    def test_track_time_disabled(self):
        CONFIG.update("logging.log_performance", False)
        perf = PerformanceLogger(logging.getLogger("summary_tables.tests.perf"))
        with perf.track_time("step"):
            pass
        assert perf.get_timings() == {}

    def test_track_time_records_on_error(self):
        perf = PerformanceLogger(logging.getLogger("summary_tables.tests.perf"))
        with pytest.raises(RuntimeError), perf.track_time("fails"):
            raise RuntimeError("x")
        assert len(perf.get_timings("fails")["fails"]) == 1
