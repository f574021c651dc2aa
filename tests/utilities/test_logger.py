"""
Test cases for logging setup.
"""

import logging

import structlog

from utilities.logger import TickLogger, get_logger, setup_logging


class TestSetupLogging:
    """Test cases for setup_logging."""

    def test_creates_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "tracker.log"
        root = logging.getLogger()
        handlers_before = list(root.handlers)
        level_before = root.level

        try:
            setup_logging(log_level="DEBUG", log_format="json", log_file=str(log_file))
            get_logger("tests").info("hello from test")
        finally:
            for handler in root.handlers:
                if handler not in handlers_before:
                    handler.close()
                    root.removeHandler(handler)
            root.setLevel(level_before)
            structlog.reset_defaults()

        assert log_file.exists()
        assert "hello from test" in log_file.read_text()


class TestTickLogger:
    """Test cases for TickLogger."""

    def test_binds_tick_id(self):
        with structlog.testing.capture_logs() as captured:
            tick_logger = TickLogger("tick-42")
            tick_logger.log_failure("NO_VALUES", "sent")
            tick_logger.log_tick_complete("failed", 0.12345)

        assert [entry["tick_id"] for entry in captured] == ["tick-42", "tick-42"]
        assert captured[0]["reason"] == "NO_VALUES"
        assert captured[1]["duration_seconds"] == 0.123
