"""Lark (Feishu) custom bot channel.

Messages are sent as interactive cards. The signature is the base64
HMAC-SHA256 digest of an empty message keyed with ``"{timestamp}\\n{secret}"``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Any, Callable, Dict, Optional

import httpx
import structlog

from watchvuln.core.exceptions import ChannelDeliveryError
from watchvuln.push.base import NotificationChannel

log = structlog.get_logger()

LARK_HOOK_URL = "https://open.feishu.cn/open-apis/bot/v2/hook"


def lark_sign(secret: str, timestamp: int) -> str:
    key = f"{timestamp}\n{secret}".encode("utf-8")
    digest = hmac.new(key, b"", hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


class LarkChannel(NotificationChannel):
    """Push interactive cards to a Lark group bot."""

    def __init__(
        self,
        access_token: str,
        secret_token: str,
        timeout: float = 10.0,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(name="lark", timeout=timeout)
        self._access_token = access_token
        self._secret_token = secret_token
        self._clock = clock
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept-Charset": "utf8"},
            )
        )

    @property
    def url(self) -> str:
        return f"{LARK_HOOK_URL}/{self._access_token}"

    def build_card(self, title: str, body: str) -> Dict[str, Any]:
        timestamp = int(self._clock())
        return {
            "msg_type": "interactive",
            "card": {
                "elements": [
                    {
                        "tag": "div",
                        "text": {"content": body.replace("&nbsp;", ""), "tag": "lark_md"},
                    },
                ],
                "header": {
                    "title": {"content": title, "tag": "plain_text"},
                },
            },
            "timestamp": str(timestamp),
            "sign": lark_sign(self._secret_token, timestamp),
        }

    async def push(self, title: str, body: str) -> None:
        try:
            async with self._http_client_factory() as client:
                response = await client.post(self.url, json=self.build_card(title, body))
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChannelDeliveryError(channel=self.name, reason=str(e)) from e

        code = data.get("code")
        if code != 0:
            raise ChannelDeliveryError(
                channel=self.name,
                reason=f"code {code}: {data.get('msg', '')}",
                status_code=response.status_code,
            )
        log.debug("lark_push_complete", title=title)
