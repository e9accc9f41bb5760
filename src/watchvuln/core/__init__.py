"""Core module for WatchVuln.

Exports the core components: exceptions, data models, and configuration.
"""

from watchvuln.core.exceptions import (
    WatchVulnError,
    ConfigurationError,
    SourceFetchError,
    StoreError,
    RecordNotFoundError,
    ChannelDeliveryError,
    EnrichmentError,
    ContractViolationError,
    InvalidStateTransition,
)
from watchvuln.core.models import (
    Severity,
    RawRecord,
    Record,
    ReconcileOutcome,
    UpsertResult,
)
from watchvuln.core.config import (
    create_settings,
    Settings,
    DatabaseConfig,
    TaskConfig,
    SourcesConfig,
    PushConfig,
    EnrichmentConfig,
    LoggingConfig,
)
from watchvuln.core.metrics import ErrorMetrics

__all__ = [
    # Exceptions
    "WatchVulnError",
    "ConfigurationError",
    "SourceFetchError",
    "StoreError",
    "RecordNotFoundError",
    "ChannelDeliveryError",
    "EnrichmentError",
    "ContractViolationError",
    "InvalidStateTransition",
    # Models
    "Severity",
    "RawRecord",
    "Record",
    "ReconcileOutcome",
    "UpsertResult",
    # Config
    "create_settings",
    "Settings",
    "DatabaseConfig",
    "TaskConfig",
    "SourcesConfig",
    "PushConfig",
    "EnrichmentConfig",
    "LoggingConfig",
    # Metrics
    "ErrorMetrics",
]
