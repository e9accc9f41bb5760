"""Storage module for WatchVuln.

Provides the SQLite record store and its schema.
"""

from watchvuln.storage.schema import (
    Base,
    VulnInformation,
    create_all_tables,
    enable_sqlite_pragmas,
)
from watchvuln.storage.store import VulnStore

__all__ = [
    # Store
    "VulnStore",
    # Schema models
    "Base",
    "VulnInformation",
    "create_all_tables",
    "enable_sqlite_pragmas",
]
