"""Daemon entry point.

Runs the pass scheduler until SIGINT or SIGTERM, then lets a pass in
progress finish before the store is closed.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

import structlog

from watchvuln.daemon.scheduler import PassScheduler

if TYPE_CHECKING:
    from watchvuln.app import AppContext

log = structlog.get_logger()

# Seconds to let a running pass finish after a shutdown signal.
SHUTDOWN_TIMEOUT = 60.0


async def run_daemon(context: AppContext) -> None:
    """Run the scheduler until a shutdown signal arrives.

    Args:
        context: Application components built once at startup.
    """
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def shutdown_handler(signum: int) -> None:
        sig_name = signal.Signals(signum).name
        log.info("shutdown_signal_received", signal=sig_name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: shutdown_handler(s))

    scheduler = PassScheduler(context)
    log.info(
        "daemon_starting",
        version=context.version,
        cron=context.settings.task.cron_config,
        timezone=context.settings.task.timezone,
    )

    try:
        await scheduler.start()
        await shutdown_event.wait()
    finally:
        await scheduler.shutdown(timeout=SHUTDOWN_TIMEOUT)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        context.close()
        log.info("daemon_stopped")
