"""Collector Implementation.

This module implements the Collector class, which fetches updates from all
configured vulnerability sources in parallel.
"""

import asyncio
import time
from typing import Any, List, Optional, Sequence

import structlog

from watchvuln.core.metrics import ErrorMetrics
from watchvuln.core.models import RawRecord, Severity
from watchvuln.intelligence.base import VulnSource

log = structlog.get_logger()


class Collector:
    """Concurrent fan-out over vulnerability sources.

    A failing, slow or misbehaving source contributes nothing to the batch
    and never prevents the other sources from completing.

    Attributes:
        timeout: Per-source timeout override in seconds. When None, each
            source's own timeout applies.
        error_metrics: Per-source success/timeout/error counters.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        strict_contracts: bool = False,
        metrics: Optional[ErrorMetrics] = None,
    ) -> None:
        """Initialize the collector.

        Args:
            timeout: Per-source timeout override in seconds.
            strict_contracts: Raise on malformed records instead of degrading.
            metrics: Optional shared metrics instance.
        """
        self._timeout = timeout
        self._strict = strict_contracts
        self._error_metrics = metrics or ErrorMetrics()

    @property
    def error_metrics(self) -> ErrorMetrics:
        """Get error metrics."""
        return self._error_metrics

    def _timeout_for(self, source: VulnSource) -> float:
        return self._timeout if self._timeout is not None else source.timeout

    async def _fetch_with_timeout(
        self,
        source: VulnSource,
        volume_hint: int,
    ) -> Optional[List[Any]]:
        """Fetch a single source with timeout.

        Args:
            source: Source to fetch.
            volume_hint: Volume hint forwarded to the source.

        Returns:
            The raw list returned by the source, or None on timeout/error.
        """
        timeout = self._timeout_for(source)
        try:
            results = await asyncio.wait_for(
                source.get_update(volume_hint),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self._error_metrics.record_timeout(source.name)
            log.warning("collector_source_timeout",
                        source=source.name,
                        timeout=timeout)
            return None
        except Exception as e:
            self._error_metrics.record_error(source.name, type(e).__name__)
            log.warning("collector_source_error",
                        source=source.name,
                        error=str(e))
            return None

        if not isinstance(results, list):
            self._error_metrics.record_error(source.name, "InvalidResultType")
            log.warning("collector_invalid_result_type",
                        source=source.name,
                        actual_type=type(results).__name__)
            return None

        self._error_metrics.record_success(source.name)
        return results

    @staticmethod
    def _clean_tags(source: VulnSource, item: RawRecord) -> List[str]:
        """Drop null or blank tags and stringify the rest."""
        original = list(item.tags or [])
        tags = [str(tag) for tag in original if tag is not None and str(tag).strip()]
        if len(tags) != len(original):
            log.warning("collector_tags_cleaned",
                        source=source.name,
                        key=item.unique_key,
                        dropped=len(original) - len(tags))
        return tags

    def _validate(self, source: VulnSource, items: List[Any]) -> List[RawRecord]:
        """Drop non-RawRecord items and coerce malformed severities and tags.

        Raises:
            ContractViolationError: In strict mode, on an unknown severity.
        """
        valid: List[RawRecord] = []
        for item in items:
            if not isinstance(item, RawRecord):
                log.warning("collector_invalid_result_item",
                            source=source.name,
                            item_type=type(item).__name__)
                continue
            if not isinstance(item.severity, Severity):
                item.severity = Severity.parse(item.severity, strict=self._strict)
            item.tags = self._clean_tags(source, item)
            valid.append(item)

        log.debug("collector_source_complete",
                  source=source.name,
                  result_count=len(valid))
        return valid

    async def collect(
        self,
        sources: Sequence[VulnSource],
        volume_hint: int,
    ) -> List[RawRecord]:
        """Fetch every source concurrently with the same volume hint.

        Args:
            sources: Sources to fetch.
            volume_hint: Volume hint forwarded to every source.

        Returns:
            Concatenated RawRecords from every source that succeeded.
            Empty list if all sources fail or time out.
        """
        log.info("collector_start", source_count=len(sources), volume_hint=volume_hint)

        if not sources:
            log.warning("collector_no_sources")
            return []

        start_time = time.time()

        results_lists = await asyncio.gather(
            *(self._fetch_with_timeout(source, volume_hint) for source in sources)
        )

        all_records: List[RawRecord] = []
        for source, items in zip(sources, results_lists):
            if items is None:
                continue
            all_records.extend(self._validate(source, items))

        duration = time.time() - start_time
        log.info("collector_complete",
                 record_count=len(all_records),
                 source_count=len(sources),
                 duration_ms=round(duration * 1000, 2))

        return all_records
