"""
Configuration management using environment variables.
Handles all tracker settings with proper validation and defaults.
"""

from pathlib import Path
from typing import List, Optional

from apscheduler.triggers.cron import CronTrigger
from pydantic import Field, validator
from pydantic_settings import BaseSettings


def _split_ids(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def is_valid_cron(expression: Optional[str]) -> bool:
    """Check whether a 5-field crontab expression can be scheduled."""
    if not expression:
        return False
    try:
        CronTrigger.from_crontab(expression)
    except ValueError:
        return False
    return True


class TrackerConfig(BaseSettings):
    """
    Configuration class for tracker settings.
    Uses pydantic BaseSettings for environment variable management.
    Every field maps to the environment variable of the same name.
    """

    # Storage
    data_dir: str = Field(default="data")
    screenshot_dir: str = Field(default="logs")
    screenshot_url: Optional[str] = Field(default=None)

    # Telegram
    telegram_api_url: str = Field(default="https://api.telegram.org")
    telegram_bot_token: Optional[str] = Field(default=None)
    telegram_chat_ids: Optional[str] = Field(default=None)
    telegram_error_bot_token: Optional[str] = Field(default=None)
    telegram_error_chat_ids: Optional[str] = Field(default=None)
    request_timeout: int = Field(default=30)

    # Scheduling
    cron_expression: Optional[str] = Field(default=None)
    cron_interval_in_minutes: Optional[int] = Field(default=None)
    timezone: str = Field(default="UTC")

    # Observation source factory ("module:callable")
    source: Optional[str] = Field(default=None)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    debug: bool = Field(default=False)

    @validator('request_timeout')
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 5 or v > 300:
            raise ValueError('request_timeout must be between 5 and 300 seconds')
        return v

    @validator('cron_interval_in_minutes')
    def validate_interval(cls, v):
        """Ensure the fallback interval fits in a crontab minute field."""
        if v is not None and (v < 1 or v > 59):
            raise ValueError('cron_interval_in_minutes must be between 1 and 59')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_data_dir(self) -> Path:
        return Path(self.data_dir)

    def get_screenshot_dir(self) -> Path:
        return Path(self.screenshot_dir)

    def get_chat_ids(self) -> List[str]:
        """Chats receiving value notifications."""
        return _split_ids(self.telegram_chat_ids)

    def get_error_chat_ids(self) -> List[str]:
        """Chats receiving diagnostic screenshots."""
        return _split_ids(self.telegram_error_chat_ids)

    def get_error_bot_token(self) -> Optional[str]:
        return self.telegram_error_bot_token or self.telegram_bot_token

    def get_cron_expression(self) -> str:
        """
        Resolve the tick schedule.

        The explicit cron expression wins; the minute interval is the fallback.

        Raises:
            ValueError: if neither yields a valid crontab expression
        """
        if is_valid_cron(self.cron_expression):
            return self.cron_expression
        if self.cron_interval_in_minutes:
            interval_expression = f"*/{self.cron_interval_in_minutes} * * * *"
            if is_valid_cron(interval_expression):
                return interval_expression
        raise ValueError(
            'A valid cron_expression or cron_interval_in_minutes is required'
        )


# Global configuration instance
config = TrackerConfig()
