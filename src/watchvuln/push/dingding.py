"""DingTalk robot channel.

Requests are signed with HMAC-SHA256: the key is the robot secret, the
message is ``"{timestamp_ms}\\n{secret}"``, and the base64 digest travels
as the ``sign`` query parameter next to ``access_token`` and ``timestamp``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Callable, Dict, Optional

import httpx
import structlog

from watchvuln.core.exceptions import ChannelDeliveryError
from watchvuln.push.base import NotificationChannel

log = structlog.get_logger()

DING_API_URL = "https://oapi.dingtalk.com/robot/send"


def dingding_sign(secret: str, timestamp_ms: int) -> str:
    """Base64 HMAC-SHA256 signature of ``"{timestamp_ms}\\n{secret}"``."""
    message = f"{timestamp_ms}\n{secret}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


class DingDingChannel(NotificationChannel):
    """Push markdown messages to a DingTalk group robot."""

    def __init__(
        self,
        access_token: str,
        secret_token: str,
        timeout: float = 10.0,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(name="dingding", timeout=timeout)
        self._access_token = access_token
        self._secret_token = secret_token
        self._clock = clock
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept-Charset": "utf8"},
            )
        )

    def sign_params(self) -> Dict[str, str]:
        timestamp = int(self._clock() * 1000)
        return {
            "access_token": self._access_token,
            "timestamp": str(timestamp),
            "sign": dingding_sign(self._secret_token, timestamp),
        }

    async def push(self, title: str, body: str) -> None:
        # DingTalk collapses blank lines; a non-breaking space keeps paragraphs apart.
        text = body.replace("\n\n", "\n\n&nbsp;\n")
        message = {
            "msgtype": "markdown",
            "markdown": {"title": title, "text": text},
        }
        try:
            async with self._http_client_factory() as client:
                response = await client.post(DING_API_URL, params=self.sign_params(), json=message)
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChannelDeliveryError(channel=self.name, reason=str(e)) from e

        errcode = data.get("errcode")
        if errcode != 0:
            raise ChannelDeliveryError(
                channel=self.name,
                reason=f"errcode {errcode}: {data.get('errmsg', '')}",
                status_code=response.status_code,
            )
        log.debug("dingding_push_complete", title=title)
