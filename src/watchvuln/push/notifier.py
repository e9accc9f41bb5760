"""Notifier Implementation.

Fans a record's message out to every configured channel and decides
whether the record may be marked delivered.

A record is marked pushed only when every channel succeeded. If any
channel fails, the record stays pending and the next pass re-delivers to
all channels, including those that succeeded this time.
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import structlog

from watchvuln.core.exceptions import StoreError
from watchvuln.core.metrics import ErrorMetrics
from watchvuln.core.models import Record
from watchvuln.intelligence.base import Enricher
from watchvuln.push.base import NotificationChannel
from watchvuln.push.template import render_record, render_startup
from watchvuln.storage.store import VulnStore

log = structlog.get_logger()


@dataclass
class DeliveryReport:
    """Outcome of notifying a batch of pending records."""

    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


class Notifier:
    """All-or-nothing fan-out of record alerts to notification channels.

    Attributes:
        channels: Configured channels.
        timeout: Per-channel timeout override in seconds. When None, each
            channel's own timeout applies.
        error_metrics: Per-channel success/timeout/error counters.
    """

    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        store: VulnStore,
        enricher: Optional[Enricher] = None,
        timeout: Optional[float] = None,
        enrichment_timeout: Optional[float] = None,
        metrics: Optional[ErrorMetrics] = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            channels: Channels to deliver to.
            store: Record store used for enrichment merges and the pushed flag.
            enricher: Optional best-effort link lookup.
            timeout: Per-channel timeout override in seconds.
            enrichment_timeout: Timeout for one enrichment search.
            metrics: Optional shared metrics instance.
        """
        self._channels = list(channels)
        self._store = store
        self._enricher = enricher
        self._timeout = timeout
        self._enrichment_timeout = enrichment_timeout
        self._error_metrics = metrics or ErrorMetrics()

    @property
    def channels(self) -> List[NotificationChannel]:
        return list(self._channels)

    @property
    def error_metrics(self) -> ErrorMetrics:
        """Get error metrics."""
        return self._error_metrics

    # -------------------------------------------------------------------------
    # Enrichment
    # -------------------------------------------------------------------------

    async def _enrich(self, record: Record) -> Record:
        """Merge enrichment links into the record, best-effort.

        The merge is persisted right away so it survives a failed delivery.
        """
        if self._enricher is None or not record.cve:
            return record

        timeout = self._enrichment_timeout or self._enricher.timeout
        try:
            links = await asyncio.wait_for(self._enricher.search(record.cve), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("notifier_enrichment_timeout", key=record.unique_key, timeout=timeout)
            return record
        except Exception as e:
            log.warning("notifier_enrichment_failed", key=record.unique_key, error=str(e))
            return record

        if not links or all(link in record.enrichment_links for link in links):
            return record

        try:
            return self._store.merge_enrichment(record.unique_key, links)
        except StoreError as e:
            log.warning("notifier_enrichment_store_failed", **e.context)
            merged = list(record.enrichment_links)
            merged += [link for link in links if link not in merged]
            return dataclasses.replace(record, enrichment_links=merged)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def _push_with_timeout(
        self,
        channel: NotificationChannel,
        title: str,
        body: str,
    ) -> bool:
        timeout = self._timeout if self._timeout is not None else channel.timeout
        try:
            result = await asyncio.wait_for(channel.push(title, body), timeout=timeout)
        except asyncio.TimeoutError:
            self._error_metrics.record_timeout(channel.name)
            log.warning("notifier_channel_timeout", channel=channel.name, timeout=timeout)
            return False
        except Exception as e:
            self._error_metrics.record_error(channel.name, type(e).__name__)
            log.warning("notifier_channel_failed", channel=channel.name, error=str(e))
            return False

        if result is False:
            self._error_metrics.record_error(channel.name, "PushReturnedFalse")
            log.warning("notifier_channel_failed", channel=channel.name, error="push returned False")
            return False

        self._error_metrics.record_success(channel.name)
        return True

    async def dispatch(self, title: str, body: str) -> bool:
        """Send one message to every channel concurrently.

        Returns:
            True iff at least one channel is configured and all succeeded.
        """
        if not self._channels:
            log.warning("notifier_no_channels")
            return False

        outcomes = await asyncio.gather(
            *(self._push_with_timeout(channel, title, body) for channel in self._channels)
        )
        return all(outcomes)

    async def notify(self, record: Record) -> bool:
        """Enrich, render and deliver one record.

        Args:
            record: Pending record.

        Returns:
            True iff every channel succeeded; the record is then marked pushed.
        """
        if not self._channels:
            log.warning("notifier_no_channels", key=record.unique_key)
            return False

        record = await self._enrich(record)

        try:
            title, body = render_record(record)
        except Exception as e:
            log.error("notifier_render_failed", key=record.unique_key, error=str(e))
            return False

        if not await self.dispatch(title, body):
            log.info("notifier_delivery_incomplete", key=record.unique_key)
            return False

        try:
            self._store.set_pushed(record.unique_key, True)
        except StoreError as e:
            # Delivered but not recorded; the next pass will deliver again.
            log.error("notifier_set_pushed_failed", **e.context)
        log.info("notifier_delivered", key=record.unique_key, channels=len(self._channels))
        return True

    async def notify_pending(self, records: Sequence[Record]) -> DeliveryReport:
        """Notify records one at a time."""
        report = DeliveryReport()
        for record in records:
            if await self.notify(record):
                report.delivered.append(record.unique_key)
            else:
                report.failed.append(record.unique_key)
        return report

    async def announce_startup(
        self,
        version: str,
        record_count: int,
        cron_config: str,
        source_names: Sequence[str],
    ) -> bool:
        """Push the startup announcement; failures are logged only."""
        title, body = render_startup(version, record_count, cron_config, source_names)
        delivered = await self.dispatch(title, body)
        log.info("notifier_startup_announced", delivered=delivered)
        return delivered
