"""Pass Scheduler.

Runs one bootstrap pass at startup and then a steady-state pass on every
cron tick. Passes never overlap: a tick that arrives while a pass is running
is coalesced into a single follow-up pass.

A pass is Collector.collect -> Reconciler.reconcile_batch ->
VulnStore.find_pending -> Notifier.notify_pending. Any exception inside a
pass is logged and recorded in its PassReport; the scheduler keeps going.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from watchvuln.core.exceptions import StoreError
from watchvuln.daemon.reconciler import ReconcileReport
from watchvuln.daemon.state_machine import PassState, PassStateMachine
from watchvuln.push.notifier import DeliveryReport

if TYPE_CHECKING:
    from watchvuln.app import AppContext

log = structlog.get_logger()

JOB_ID = "watchvuln_pass"


def build_cron_trigger(expression: str, tz: str) -> CronTrigger:
    """Build a CronTrigger from a 5-field or 6-field (leading seconds) expression.

    Raises:
        ValueError: If the expression has another number of fields.
    """
    fields = expression.split()
    if len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
            timezone=tz,
        )
    if len(fields) == 5:
        return CronTrigger.from_crontab(expression, timezone=tz)
    raise ValueError(f"Invalid cron expression: {expression!r}. Expected 5 or 6 fields.")


@dataclass
class PassReport:
    """Summary of one pass."""

    volume_hint: int
    collected: int = 0
    reconcile: Optional[ReconcileReport] = None
    delivery: Optional[DeliveryReport] = None
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PassScheduler:
    """Single-flight pass runner driven by APScheduler.

    Attributes:
        state: Current lifecycle state.
        last_report: Report of the most recent pass, if any.
    """

    def __init__(self, context: AppContext, scheduler_id: str = "watchvuln") -> None:
        """Initialize the scheduler.

        Args:
            context: Application components built once at startup.
            scheduler_id: Identifier used in logs.
        """
        self._ctx = context
        self._lock = asyncio.Lock()
        self._pending = False
        self._state = PassStateMachine(scheduler_id)
        self._aps: Optional[AsyncIOScheduler] = None
        self._last_report: Optional[PassReport] = None

    @property
    def state(self) -> PassState:
        return self._state.current_state

    @property
    def state_machine(self) -> PassStateMachine:
        return self._state

    @property
    def last_report(self) -> Optional[PassReport]:
        return self._last_report

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    async def _execute(self, volume_hint: int) -> PassReport:
        ctx = self._ctx
        report = PassReport(volume_hint=volume_hint)
        self._state.begin_pass()
        log.info("pass_start", volume_hint=volume_hint)
        try:
            raws = await ctx.collector.collect(ctx.sources, volume_hint)
            report.collected = len(raws)
            report.reconcile = ctx.reconciler.reconcile_batch(raws)
            pending = ctx.store.find_pending()
            report.delivery = await ctx.notifier.notify_pending(pending)
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            log.error("pass_failed", volume_hint=volume_hint, error=report.error)
        finally:
            report.finished_at = datetime.now(timezone.utc)
            if self._state.current_state is PassState.RUNNING:
                self._state.end_pass()

        self._last_report = report
        log.info(
            "pass_complete",
            volume_hint=volume_hint,
            collected=report.collected,
            candidates=len(report.reconcile.candidates) if report.reconcile else 0,
            delivered=len(report.delivery.delivered) if report.delivery else 0,
            undelivered=len(report.delivery.failed) if report.delivery else 0,
            ok=report.ok,
        )
        return report

    async def _drain_pending(self) -> None:
        """Run the coalesced follow-up pass, if a tick arrived meanwhile."""
        while self._pending and self.state is not PassState.STOPPED:
            self._pending = False
            await self._execute(self._ctx.settings.task.steady_volume)

    async def run_pass(self, volume_hint: int) -> PassReport:
        """Run one pass, waiting for any pass in progress to finish first.

        A stopped scheduler runs nothing and returns a report with an error.
        """
        async with self._lock:
            if self.state is PassState.STOPPED:
                log.warning("pass_skipped_stopped", volume_hint=volume_hint)
                return PassReport(
                    volume_hint=volume_hint,
                    error="scheduler stopped",
                    finished_at=datetime.now(timezone.utc),
                )
            report = await self._execute(volume_hint)
            await self._drain_pending()
            return report

    async def trigger(self, volume_hint: Optional[int] = None) -> bool:
        """Handle a scheduler tick.

        If a pass is running, the tick is coalesced into at most one pending
        pass that runs right after the current one.

        Returns:
            True if this call ran the pass, False if it was coalesced or the
            scheduler is stopped.
        """
        if self.state is PassState.STOPPED:
            return False
        if self._lock.locked():
            self._pending = True
            log.info("pass_coalesced")
            return False

        volume = self._ctx.settings.task.steady_volume if volume_hint is None else volume_hint
        async with self._lock:
            await self._execute(volume)
            await self._drain_pending()
        return True

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def announce(self) -> bool:
        """Push the startup announcement; never raises."""
        ctx = self._ctx
        try:
            count = ctx.store.count()
        except StoreError as e:
            log.warning("announce_count_failed", **e.context)
            count = 0
        try:
            return await ctx.notifier.announce_startup(
                version=ctx.version,
                record_count=count,
                cron_config=ctx.settings.task.cron_config,
                source_names=[source.get_name() for source in ctx.sources],
            )
        except Exception as e:
            log.warning("announce_failed", error=str(e))
            return False

    async def start(self) -> None:
        """Run the bootstrap pass, announce, then schedule steady-state passes."""
        task = self._ctx.settings.task
        await self.run_pass(task.bootstrap_volume)

        if task.announce_startup:
            await self.announce()

        self._aps = AsyncIOScheduler(
            timezone=task.timezone,
            job_defaults={
                "coalesce": True,
                # Let a tick reach trigger() while a pass runs so it can be coalesced.
                "max_instances": 2,
                "misfire_grace_time": 60,
            },
        )
        self._aps.add_job(
            self.trigger,
            trigger=build_cron_trigger(task.cron_config, task.timezone),
            id=JOB_ID,
            name=f"WatchVuln pass ({task.cron_config})",
            replace_existing=True,
        )
        self._aps.start()

        for job in self._aps.get_jobs():
            log.info("scheduler_job_added", job_id=job.id, next_run=str(job.next_run_time))

    async def wait_idle(self) -> None:
        """Wait until no pass is running."""
        async with self._lock:
            pass

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop taking ticks, let a pass in progress finish, then stop.

        Args:
            timeout: Seconds to wait for the running pass. None waits forever.
        """
        if self._aps is not None:
            self._aps.pause()
        self._pending = False
        try:
            await asyncio.wait_for(self.wait_idle(), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("scheduler_shutdown_timeout", timeout=timeout)
        self.stop()

    def stop(self) -> None:
        """Stop scheduling immediately.

        A cron-triggered pass still running is cancelled along with the
        APScheduler executor; use shutdown() to let it finish.
        """
        if self._aps is not None:
            self._aps.shutdown(wait=False)
            self._aps = None
        if self.state is not PassState.STOPPED:
            self._state.stop()
        log.info("scheduler_stopped")
