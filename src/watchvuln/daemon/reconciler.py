"""Reconciler Implementation.

Merges fresh RawRecords into the store one at a time and reports which
keys became notification candidates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import structlog

from watchvuln.core.exceptions import StoreError
from watchvuln.core.models import RawRecord, ReconcileOutcome
from watchvuln.storage.store import VulnStore

log = structlog.get_logger()


@dataclass
class ReconcileReport:
    """Per-pass reconciliation summary.

    Attributes:
        new: Keys created this pass.
        changed: Keys whose severity or tags changed this pass.
        unchanged: Number of sightings that changed nothing material.
        failed: Keys whose store transaction failed.
    """

    new: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    unchanged: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def candidates(self) -> List[str]:
        """Keys that ended in NEW or CHANGED."""
        return self.new + self.changed


class Reconciler:
    """Decide New / Changed / Unchanged for each sighting and persist it."""

    def __init__(self, store: VulnStore) -> None:
        self._store = store

    def reconcile(self, raw: RawRecord) -> ReconcileOutcome:
        """Reconcile one sighting inside a single store transaction.

        Raises:
            StoreError: If the transaction fails.
        """
        result = self._store.upsert(raw)
        return result.outcome

    def reconcile_batch(self, raws: Sequence[RawRecord]) -> ReconcileReport:
        """Reconcile sightings sequentially.

        A duplicate key later in the batch observes the effect of the
        earlier one. Any failure on a record skips that record only.
        """
        report = ReconcileReport()
        for raw in raws:
            try:
                outcome = self.reconcile(raw)
            except StoreError as e:
                log.error("reconcile_record_failed", **e.context, error=e.message)
                report.failed.append(raw.unique_key)
                continue
            except Exception as e:
                log.error("reconcile_record_failed",
                          key=raw.unique_key,
                          error=f"{type(e).__name__}: {e}")
                report.failed.append(raw.unique_key)
                continue

            if outcome is ReconcileOutcome.NEW:
                report.new.append(raw.unique_key)
            elif outcome is ReconcileOutcome.CHANGED:
                report.changed.append(raw.unique_key)
            else:
                report.unchanged += 1

        log.info(
            "reconcile_batch_complete",
            new=len(report.new),
            changed=len(report.changed),
            unchanged=report.unchanged,
            failed=len(report.failed),
        )
        return report
