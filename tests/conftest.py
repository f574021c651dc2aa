"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import pytest
from unittest.mock import AsyncMock

from tracker.models import CounterRecord, Observation
from tracker.sources import ObservationError, ObservationSource


class FakeSource(ObservationSource):
    """Source returning queued observations, or raising queued exceptions."""

    def __init__(self, results: Optional[List[Union[Observation, Exception]]] = None):
        self.results = list(results or [])
        self.screenshots: List[Path] = []
        self.closed = False

    def queue(self, *results: Union[Observation, Exception]) -> None:
        self.results.extend(results)

    async def fetch(self) -> Observation:
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def take_screenshot(self, path: Path) -> None:
        path.write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Settable clock for the snapshot store."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def set(self, moment: datetime) -> None:
        self.moment = moment


def record(streams: int, listeners: int, saves: int) -> CounterRecord:
    return CounterRecord(streams=streams, listeners=listeners, saves=saves)


@pytest.fixture
def known_values():
    """Baseline with two songs."""
    return {
        "Song A": record(100, 50, 10),
        "Song B": record(2000, 300, 40),
    }


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 14, 9, 26, 53, 589000, tzinfo=timezone.utc))


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def mock_report_action():
    return AsyncMock(return_value=None)


@pytest.fixture
def mock_telegram_client():
    """Telegram client double; broadcast reports every chat as delivered."""
    from notifications.telegram_client import TelegramClient

    client = AsyncMock(spec=TelegramClient)
    client.broadcast.return_value = 1
    return client


@pytest.fixture
def observation_error():
    return ObservationError("ERROR_GETTING_VALUES", "table not found")
