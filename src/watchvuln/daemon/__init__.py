"""WatchVuln Daemon Package.

Components:
- reconciler: merges sightings into the store
- scheduler: bootstrap and cron-driven passes with a single-flight guard
- state_machine: scheduler lifecycle states
"""

from watchvuln.daemon.reconciler import Reconciler, ReconcileReport
from watchvuln.daemon.scheduler import PassReport, PassScheduler, build_cron_trigger
from watchvuln.daemon.state_machine import PassState, PassStateMachine

__all__ = [
    "Reconciler",
    "ReconcileReport",
    "PassReport",
    "PassScheduler",
    "build_cron_trigger",
    "PassState",
    "PassStateMachine",
]
