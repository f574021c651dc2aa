"""
Minimal async Telegram Bot API client built on httpx.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import httpx
import structlog

logger = structlog.get_logger(__name__)


class TelegramError(Exception):
    """Raised when the Bot API rejects a call or cannot be reached."""

    def __init__(self, description: str, status_code: Optional[int] = None):
        self.description = description
        self.status_code = status_code
        super().__init__(description)


class TelegramClient:
    """Sends messages and photos through one bot."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 30,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            token: Bot token
            api_url: Bot API base URL
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (tests pass one with a mock transport)
        """
        self.base_url = f"{api_url.rstrip('/')}/bot{token}"
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.logger = logger.bind(component="telegram_client")

    async def close(self) -> None:
        await self.client.aclose()

    async def _call(
        self,
        method: str,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None
    ) -> Any:
        try:
            response = await self.client.post(
                f"{self.base_url}/{method}", json=json, data=data, files=files
            )
        except httpx.HTTPError as e:
            raise TelegramError(f"{method} request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            raise TelegramError(
                f"{method} returned a non-JSON response", response.status_code
            )

        if not body.get("ok"):
            raise TelegramError(
                body.get("description", f"{method} failed"), response.status_code
            )
        return body.get("result")

    async def send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: Optional[str] = None
    ) -> Any:
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._call("sendMessage", json=payload)

    async def send_photo(
        self,
        chat_id: str,
        photo: Union[str, Path],
        caption: Optional[str] = None
    ) -> Any:
        """
        Send a photo by URL (``str``) or upload a local file (``Path``).
        """
        if isinstance(photo, Path):
            data = {"chat_id": chat_id}
            if caption:
                data["caption"] = caption
            with open(photo, "rb") as f:
                files = {"photo": (photo.name, f.read(), "image/png")}
            return await self._call("sendPhoto", data=data, files=files)

        payload = {"chat_id": chat_id, "photo": photo}
        if caption:
            payload["caption"] = caption
        return await self._call("sendPhoto", json=payload)

    async def broadcast(
        self,
        chat_ids: Iterable[str],
        text: str,
        parse_mode: Optional[str] = None
    ) -> int:
        """
        Send the same message to every chat, logging failures instead of raising.

        Returns:
            Number of chats the message was delivered to
        """
        delivered = 0
        for chat_id in chat_ids:
            try:
                await self.send_message(chat_id, text, parse_mode=parse_mode)
                delivered += 1
            except TelegramError as e:
                self.logger.error(
                    "Failed sending Telegram message",
                    chat_id=chat_id,
                    error=e.description,
                    status_code=e.status_code
                )
        return delivered
