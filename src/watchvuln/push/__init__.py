"""Notification layer for WatchVuln.

Exports:
    NotificationChannel: Abstract base class for channels.
    Notifier: All-or-nothing fan-out to channels.
    TelegramChannel, DingDingChannel, LarkChannel: Chat bot channels.
"""

from watchvuln.push.base import NotificationChannel
from watchvuln.push.dingding import DingDingChannel
from watchvuln.push.lark import LarkChannel
from watchvuln.push.notifier import DeliveryReport, Notifier
from watchvuln.push.telegram import TelegramChannel

__all__ = [
    "NotificationChannel",
    "Notifier",
    "DeliveryReport",
    "TelegramChannel",
    "DingDingChannel",
    "LarkChannel",
]
