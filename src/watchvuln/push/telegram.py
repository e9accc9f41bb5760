"""Telegram bot channel.

Sends messages through the Bot API ``sendMessage`` method with MarkdownV2
parsing. The message body is escaped as a whole, so markdown renders
literally rather than being interpreted.
"""

from __future__ import annotations

from typing import Callable, Optional

import httpx
import structlog

from watchvuln.core.exceptions import ChannelDeliveryError
from watchvuln.push.base import NotificationChannel
from watchvuln.push.template import escape_markdown_v2

log = structlog.get_logger()

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramChannel(NotificationChannel):
    """Push to a Telegram chat via a bot token."""

    def __init__(
        self,
        token: str,
        chat_id: int,
        timeout: float = 10.0,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        super().__init__(name="telegram", timeout=timeout)
        self._token = token
        self._chat_id = chat_id
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(timeout=self.timeout)
        )

    @property
    def url(self) -> str:
        return f"{TELEGRAM_API_URL}/bot{self._token}/sendMessage"

    async def push(self, title: str, body: str) -> None:
        payload = {
            "chat_id": self._chat_id,
            "text": escape_markdown_v2(body),
            "parse_mode": "MarkdownV2",
        }
        try:
            async with self._http_client_factory() as client:
                response = await client.post(self.url, json=payload)
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChannelDeliveryError(channel=self.name, reason=str(e)) from e

        if not data.get("ok"):
            raise ChannelDeliveryError(
                channel=self.name,
                reason=data.get("description", "unknown error"),
                status_code=response.status_code,
            )
        log.debug("telegram_push_complete", chat_id=self._chat_id)
