"""
Diagnostic screenshots for failed ticks.

The image is stored under the screenshot directory with a timestamped name
and forwarded to the error chats, by public URL when one is configured and
as an upload otherwise.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from notifications.telegram_client import TelegramClient, TelegramError
from tracker.snapshot_store import format_timestamp
from tracker.sources import ObservationSource

logger = structlog.get_logger(__name__)

URL_CONTENT_ERROR = "failed to get HTTP URL content"


def screenshot_file_name(moment: datetime) -> str:
    """'2024-05-01T12_00_00.000Z_screenshot.png' style name."""
    return f"{format_timestamp(moment).replace(':', '_')}_screenshot.png"


def screenshot_caption(reason: str) -> str:
    return f"Bot Error: {reason}".replace("_", " ")


class DiagnosticCapture:
    """Captures a screenshot from the source and sends it to the error chats."""

    def __init__(
        self,
        source: ObservationSource,
        screenshot_dir: Path,
        client: Optional[TelegramClient] = None,
        chat_ids: Optional[List[str]] = None,
        screenshot_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.source = source
        self.screenshot_dir = Path(screenshot_dir)
        self.client = client
        self.chat_ids = chat_ids or []
        self.screenshot_url = screenshot_url
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_file_name: Optional[str] = None
        self.logger = logger.bind(component="diagnostics")

    async def __call__(self, reason: str) -> None:
        await self.capture(reason)

    async def capture(self, reason: str) -> Path:
        """Take the screenshot, then forward it; returns the image path."""
        file_name = screenshot_file_name(self.clock())
        path = self.screenshot_dir / file_name
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)

        self.logger.debug("Taking a screenshot", path=str(path), reason=reason)
        await self.source.take_screenshot(path)
        self.last_file_name = file_name

        await self.send(reason, path)
        return path

    async def send(self, reason: str, path: Path) -> None:
        if not self.client or not self.chat_ids:
            return

        caption = screenshot_caption(reason)
        photo = f"{self.screenshot_url}{path.name}" if self.screenshot_url else path
        self.logger.info("Sending screenshot", chats=len(self.chat_ids), reason=reason)

        for chat_id in self.chat_ids:
            try:
                await self.client.send_photo(chat_id, photo, caption=caption)
            except TelegramError as e:
                if URL_CONTENT_ERROR in e.description:
                    self.logger.warning("Failed to get HTTP URL content", url=str(photo))
                    await self._send_fallback(chat_id, caption, path.name)
                else:
                    self.logger.error("Failed sending screenshot", chat_id=chat_id, error=e.description)
            except OSError as e:
                self.logger.error("Failed reading screenshot", path=str(path), error=str(e))

    async def _send_fallback(self, chat_id: str, caption: str, file_name: str) -> None:
        try:
            await self.client.send_message(chat_id, f"{caption}\nSee screenshot named {file_name}")
        except TelegramError as e:
            self.logger.error("Failed sending screenshot notice", chat_id=chat_id, error=e.description)
