"""
Test cases for diagnostic screenshot capture and forwarding.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from unittest.mock import AsyncMock

from notifications.diagnostics import (
    DiagnosticCapture,
    screenshot_caption,
    screenshot_file_name,
)
from notifications.telegram_client import TelegramClient, TelegramError


@pytest.fixture
def error_client():
    return AsyncMock(spec=TelegramClient)


@pytest.fixture
def screenshot_dir(tmp_path):
    return tmp_path / "logs"


class TestNaming:
    """Test cases for file name and caption helpers."""

    def test_file_name_replaces_colons(self):
        moment = datetime(2025, 3, 14, 9, 26, 53, 589000, tzinfo=timezone.utc)

        assert screenshot_file_name(moment) == "2025-03-14T09_26_53.589Z_screenshot.png"

    def test_caption_replaces_underscores(self):
        assert screenshot_caption("MISSING_VALUES") == "Bot Error: MISSING VALUES"


class TestDiagnosticCapture:
    """Test cases for DiagnosticCapture."""

    @pytest.mark.asyncio
    async def test_capture_without_chats_only_saves(self, fake_source, screenshot_dir, clock, error_client):
        capture = DiagnosticCapture(fake_source, screenshot_dir, client=error_client, clock=clock)

        path = await capture.capture("NO_VALUES")

        assert path == screenshot_dir / "2025-03-14T09_26_53.589Z_screenshot.png"
        assert path.exists()
        assert capture.last_file_name == path.name
        error_client.send_photo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_url_when_configured(self, fake_source, screenshot_dir, clock, error_client):
        capture = DiagnosticCapture(
            fake_source, screenshot_dir,
            client=error_client,
            chat_ids=["1", "2"],
            screenshot_url="https://files.test/",
            clock=clock,
        )

        await capture("NO_VALUES")

        assert error_client.send_photo.await_count == 2
        error_client.send_photo.assert_any_await(
            "1",
            "https://files.test/2025-03-14T09_26_53.589Z_screenshot.png",
            caption="Bot Error: NO VALUES",
        )

    @pytest.mark.asyncio
    async def test_uploads_file_without_url(self, fake_source, screenshot_dir, clock, error_client):
        capture = DiagnosticCapture(fake_source, screenshot_dir, client=error_client, chat_ids=["1"], clock=clock)

        path = await capture.capture("NO_VALUES")

        error_client.send_photo.assert_awaited_once_with("1", path, caption="Bot Error: NO VALUES")
        assert isinstance(error_client.send_photo.call_args[0][1], Path)

    @pytest.mark.asyncio
    async def test_unreachable_url_falls_back_to_text(self, fake_source, screenshot_dir, clock, error_client):
        error_client.send_photo.side_effect = TelegramError(
            "Bad Request: wrong file identifier/HTTP URL specified: failed to get HTTP URL content", 400
        )
        capture = DiagnosticCapture(
            fake_source, screenshot_dir,
            client=error_client,
            chat_ids=["1"],
            screenshot_url="https://files.test/",
            clock=clock,
        )

        await capture.capture("MISSING_VALUES")

        error_client.send_message.assert_awaited_once_with(
            "1",
            "Bot Error: MISSING VALUES\nSee screenshot named 2025-03-14T09_26_53.589Z_screenshot.png",
        )

    @pytest.mark.asyncio
    async def test_other_send_errors_are_logged(self, fake_source, screenshot_dir, clock, error_client):
        error_client.send_photo.side_effect = TelegramError("Forbidden: bot was blocked", 403)
        capture = DiagnosticCapture(fake_source, screenshot_dir, client=error_client, chat_ids=["1", "2"], clock=clock)

        await capture.capture("NO_VALUES")

        assert error_client.send_photo.await_count == 2
        error_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_screenshot_failure_propagates(self, fake_source, screenshot_dir, clock, error_client):
        fake_source.take_screenshot = AsyncMock(side_effect=RuntimeError("page closed"))
        capture = DiagnosticCapture(fake_source, screenshot_dir, client=error_client, chat_ids=["1"], clock=clock)

        with pytest.raises(RuntimeError):
            await capture.capture("NO_VALUES")

        error_client.send_photo.assert_not_awaited()
