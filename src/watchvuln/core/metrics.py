"""Outcome counters for sources and channels."""

from typing import Dict, Any

class ErrorMetrics:
    """Track per-target successes, timeouts and errors.

    A target is a source name for the collector and a channel name
    for the notifier. Counters accumulate across passes until reset().
    """

    def __init__(self) -> None:
        self._successes: Dict[str, int] = {}
        self._timeouts: Dict[str, int] = {}
        self._errors: Dict[str, Dict[str, int]] = {}  # target -> {error_type: count}

    def record_success(self, target: str) -> None:
        self._successes[target] = self._successes.get(target, 0) + 1

    def record_timeout(self, target: str) -> None:
        """Record a timeout.

        Args:
            target: Name of the source or channel that timed out.
        """
        self._timeouts[target] = self._timeouts.get(target, 0) + 1

    def record_error(self, target: str, error_type: str) -> None:
        """Record an error.

        Args:
            target: Name of the source or channel that errored.
            error_type: Exception class name (e.g. "ConnectError").
        """
        per_target = self._errors.setdefault(target, {})
        per_target[error_type] = per_target.get(error_type, 0) + 1

    def get_metrics(self) -> Dict[str, Any]:
        """Get all metrics.

        Returns:
            Dict containing successes, timeouts, errors and their totals.
        """
        return {
            "successes": dict(self._successes),
            "timeouts": dict(self._timeouts),
            "errors": {k: dict(v) for k, v in self._errors.items()},
            "total_timeouts": sum(self._timeouts.values()),
            "total_errors": sum(
                sum(v.values()) for v in self._errors.values()
            ),
        }

    def get_target_metrics(self, target: str) -> Dict[str, Any]:
        """Get metrics for a single source or channel."""
        return {
            "successes": self._successes.get(target, 0),
            "timeouts": self._timeouts.get(target, 0),
            "errors": dict(self._errors.get(target, {})),
        }

    def reset(self) -> None:
        """Reset all counters."""
        self._successes.clear()
        self._timeouts.clear()
        self._errors.clear()
