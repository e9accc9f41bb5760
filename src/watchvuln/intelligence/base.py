"""Vulnerability Source and Enricher Interfaces.

This module defines the two capability interfaces of the intelligence layer.
Every advisory source and every enrichment lookup implements one of them;
the collector and notifier depend only on these, never on concrete classes.

Classes:
    VulnSource: Abstract base class for advisory sources.
    Enricher: Abstract base class for best-effort link lookups.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from watchvuln.core.models import RawRecord


class VulnSource(ABC):
    """Abstract base class for vulnerability advisory sources.

    Subclasses MUST implement:
        - get_update(volume_hint): Fetch the latest advisories.

    Attributes:
        name: Registry name of the source (e.g. "kev").
        display_name: Human-readable name used in announcements.
        link: Public page of the source.
        timeout: Per-call timeout in seconds.

    Note:
        Subclasses MUST call super().__init__() to initialize base properties.

    Example:
        >>> class StaticSource(VulnSource):
        ...     def __init__(self):
        ...         super().__init__(name="static", display_name="Static feed")
        ...
        ...     async def get_update(self, volume_hint: int) -> List[RawRecord]:
        ...         return []
    """

    def __init__(
        self,
        name: str,
        display_name: str = "",
        link: str = "",
        timeout: float = 30.0,
    ) -> None:
        """Initialize the source.

        Args:
            name: Registry name of the source.
            display_name: Human-readable name; defaults to ``name``.
            link: Public page of the source, used as record origin.
            timeout: Per-call timeout in seconds.
        """
        self._name = name
        self._display_name = display_name or name
        self._link = link
        self._timeout = timeout

    @property
    def name(self) -> str:
        """Get the source name."""
        return self._name

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def link(self) -> str:
        return self._link

    @property
    def timeout(self) -> float:
        """Get the per-call timeout in seconds."""
        return self._timeout

    def get_name(self) -> str:
        """Display name shown to operators."""
        return self._display_name

    @abstractmethod
    async def get_update(self, volume_hint: int) -> List[RawRecord]:
        """Fetch the latest advisories.

        Args:
            volume_hint: How much history to fetch. Large on the bootstrap
                pass, minimal on steady-state passes.

        Returns:
            List of RawRecord.

        Raises:
            SourceFetchError: If the source cannot produce its batch.
        """
        ...


class Enricher(ABC):
    """Abstract base class for best-effort enrichment lookups.

    An enricher maps a CVE identifier to supporting links (e.g. public
    proof-of-concept repositories). Failures never block notification.
    """

    def __init__(self, name: str, timeout: float = 15.0) -> None:
        self._name = name
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self._name

    @property
    def timeout(self) -> float:
        return self._timeout

    @abstractmethod
    async def search(self, cve_id: str) -> List[str]:
        """Return link URLs related to ``cve_id``.

        Raises:
            EnrichmentError: If the lookup fails as a whole.
        """
        ...
