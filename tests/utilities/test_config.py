"""
Test cases for environment configuration.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from utilities.config import TrackerConfig, is_valid_cron


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Run with no tracker variables set and no .env file in reach."""
    for name in list(TrackerConfig.model_fields):
        monkeypatch.delenv(name.upper(), raising=False)
    monkeypatch.chdir(tmp_path)


class TestTrackerConfig:
    """Test cases for TrackerConfig."""

    def test_defaults(self, clean_env):
        settings = TrackerConfig()

        assert settings.get_data_dir() == Path("data")
        assert settings.get_screenshot_dir() == Path("logs")
        assert settings.get_chat_ids() == []
        assert settings.get_log_file_path() is None
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"

    def test_reads_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "main-token")
        monkeypatch.setenv("TELEGRAM_CHAT_IDS", "111, 222,,333")
        monkeypatch.setenv("DATA_DIR", "/var/lib/tracker")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = TrackerConfig()

        assert settings.get_chat_ids() == ["111", "222", "333"]
        assert settings.get_data_dir() == Path("/var/lib/tracker")
        assert settings.log_level == "DEBUG"

    def test_error_token_falls_back_to_main_token(self, clean_env):
        settings = TrackerConfig(telegram_bot_token="main", telegram_error_chat_ids="9")

        assert settings.get_error_bot_token() == "main"
        assert settings.get_error_chat_ids() == ["9"]

    def test_explicit_error_token(self, clean_env):
        settings = TrackerConfig(telegram_bot_token="main", telegram_error_bot_token="errors")

        assert settings.get_error_bot_token() == "errors"

    def test_invalid_log_level(self, clean_env):
        with pytest.raises(ValidationError):
            TrackerConfig(log_level="LOUD")

    def test_invalid_log_format(self, clean_env):
        with pytest.raises(ValidationError):
            TrackerConfig(log_format="xml")

    def test_invalid_timeout(self, clean_env):
        with pytest.raises(ValidationError):
            TrackerConfig(request_timeout=1)

    def test_invalid_interval(self, clean_env):
        with pytest.raises(ValidationError):
            TrackerConfig(cron_interval_in_minutes=0)


class TestCronResolution:
    """Test cases for schedule resolution."""

    def test_is_valid_cron(self):
        assert is_valid_cron("*/5 * * * *") is True
        assert is_valid_cron("not a cron") is False
        assert is_valid_cron(None) is False

    def test_expression_wins(self, clean_env):
        settings = TrackerConfig(cron_expression="0 * * * *", cron_interval_in_minutes=5)

        assert settings.get_cron_expression() == "0 * * * *"

    def test_interval_fallback(self, clean_env):
        settings = TrackerConfig(cron_expression="bogus", cron_interval_in_minutes=15)

        assert settings.get_cron_expression() == "*/15 * * * *"

    def test_no_schedule(self, clean_env):
        with pytest.raises(ValueError):
            TrackerConfig().get_cron_expression()
