"""WatchVuln Exception Hierarchy.

This module defines the structured exception hierarchy for WatchVuln.
All custom exceptions inherit from WatchVulnError, enabling consistent
error handling across the codebase.

Every failure domain of a pass has its own exception class so call sites
can isolate exactly the failures they are responsible for:

- SourceFetchError: a source could not produce its batch (skip the source)
- StoreError: a single record could not be read or written (skip the record)
- ChannelDeliveryError: a channel rejected a message (record stays unpushed)
- EnrichmentError: the side lookup failed (notify without enrichment)
- ContractViolationError: malformed data from a collaborator

Usage:
    from watchvuln.core.exceptions import ChannelDeliveryError

    raise ChannelDeliveryError(
        channel="dingding",
        reason="errcode 310000",
    )
"""

from typing import Any, Optional


class WatchVulnError(Exception):
    """Base exception for all WatchVuln errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        """Initialize WatchVulnError.

        Args:
            message: Optional custom message. Defaults to a generic message.
        """
        self.message = message or "A WatchVuln error occurred."
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context dictionary for structured logging.

        Returns:
            dict: Key-value pairs of exception context.
        """
        return {}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(WatchVulnError):
    """Configuration file or value is invalid.

    Raised when YAML configuration cannot be parsed or
    contains invalid values.

    Attributes:
        config_path: Path to the configuration file.
        key: The configuration key that caused the error.
    """

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            config_path: Path to the config file.
            key: Optional key that caused the error.
            message: Optional custom message.
        """
        self.config_path = config_path
        self.key = key

        if message is None:
            if key:
                message = f"Invalid configuration in '{config_path}': key '{key}'."
            else:
                message = f"Invalid configuration in '{config_path}'."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for configuration error."""
        return {
            "config_path": self.config_path,
            "key": self.key,
        }


class SourceFetchError(WatchVulnError):
    """A vulnerability source failed to produce its batch.

    The collector treats this as "no records from this source this pass".

    Attributes:
        source: Name of the failing source.
        url: Optional URL that was being fetched.
    """

    def __init__(
        self,
        source: str,
        url: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.source = source
        self.url = url

        if message is None:
            message = f"Source '{source}' failed to fetch updates."
            if url:
                message = f"Source '{source}' failed to fetch {url}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for source failure."""
        return {"source": self.source, "url": self.url}


class StoreError(WatchVulnError):
    """A store operation on a single record failed.

    Attributes:
        operation: Store operation name (e.g. "upsert", "set_pushed").
        key: Unique key of the record involved, if any.
    """

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.key = key

        if message is None:
            message = f"Store operation '{operation}' failed"
            message += f" for key '{key}'." if key else "."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for store failure."""
        return {"operation": self.operation, "key": self.key}

    def __repr__(self) -> str:
        """Return debug representation with attributes."""
        return f"{self.__class__.__name__}(operation={self.operation!r}, key={self.key!r})"


class RecordNotFoundError(StoreError):
    """A record addressed by key does not exist in the store."""

    def __init__(self, operation: str, key: str) -> None:
        super().__init__(
            operation=operation,
            key=key,
            message=f"Record '{key}' not found (operation: {operation}).",
        )


class ChannelDeliveryError(WatchVulnError):
    """A notification channel failed to deliver a message.

    Attributes:
        channel: Name of the channel.
        reason: Short reason reported by the channel or transport.
        status_code: Optional HTTP status code.
    """

    def __init__(
        self,
        channel: str,
        reason: str,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        self.channel = channel
        self.reason = reason
        self.status_code = status_code

        if message is None:
            message = f"Channel '{channel}' delivery failed: {reason}"

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for delivery failure."""
        return {
            "channel": self.channel,
            "reason": self.reason,
            "status_code": self.status_code,
        }


class EnrichmentError(WatchVulnError):
    """The optional enrichment lookup failed.

    Attributes:
        cve_id: CVE identifier that was searched.
        lookup: Name of the failed lookup.
    """

    def __init__(
        self,
        cve_id: str,
        lookup: str,
        message: Optional[str] = None,
    ) -> None:
        self.cve_id = cve_id
        self.lookup = lookup

        if message is None:
            message = f"Enrichment lookup '{lookup}' failed for {cve_id}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for enrichment failure."""
        return {"cve_id": self.cve_id, "lookup": self.lookup}


class ContractViolationError(WatchVulnError):
    """A collaborator produced data that breaks its contract.

    Only raised in strict mode; production degrades instead.

    Attributes:
        field: Field that held the bad value.
        value: The offending value (repr).
    """

    def __init__(
        self,
        field: str,
        value: Any,
        message: Optional[str] = None,
    ) -> None:
        self.field = field
        self.value = repr(value)

        if message is None:
            message = f"Contract violation: invalid {field} {self.value}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for contract violation."""
        return {"field": self.field, "value": self.value}


class InvalidStateTransition(WatchVulnError):
    """Scheduler lifecycle transition is not allowed.

    Attributes:
        scheduler_id: Identifier of the scheduler.
        from_state: Current state.
        to_state: Requested state.
    """

    def __init__(
        self,
        scheduler_id: str,
        from_state: str,
        to_state: str,
        message: Optional[str] = None,
    ) -> None:
        self.scheduler_id = scheduler_id
        self.from_state = from_state
        self.to_state = to_state

        if message is None:
            message = (
                f"Invalid state transition for '{scheduler_id}': "
                f"{from_state} -> {to_state}."
            )

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for state transition error."""
        return {
            "scheduler_id": self.scheduler_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
        }

    def __repr__(self) -> str:
        """Return debug representation with attributes."""
        return (
            f"InvalidStateTransition(scheduler_id={self.scheduler_id!r}, "
            f"from_state={self.from_state!r}, to_state={self.to_state!r})"
        )
