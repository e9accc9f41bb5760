"""Notification Channel Interface.

Classes:
    NotificationChannel: Abstract base class for notification endpoints.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class NotificationChannel(ABC):
    """Abstract base class for notification channels (chat bots, webhooks).

    Subclasses MUST implement:
        - push(title, body): Deliver one markdown message.

    Attributes:
        name: Registry name of the channel (e.g. "dingding").
        timeout: Per-call timeout in seconds.
    """

    def __init__(self, name: str, timeout: float = 10.0) -> None:
        self._name = name
        self._timeout = timeout

    @property
    def name(self) -> str:
        """Get the channel name."""
        return self._name

    @property
    def timeout(self) -> float:
        return self._timeout

    @abstractmethod
    async def push(self, title: str, body: str) -> Optional[bool]:
        """Deliver a markdown message.

        Returns None on success. Implementations signal failure by raising;
        an explicit ``False`` return is treated as failure as well.

        Raises:
            ChannelDeliveryError: If the endpoint rejects the message.
        """
        ...
