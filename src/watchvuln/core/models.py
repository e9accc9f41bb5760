"""Core Data Models for WatchVuln.

This module defines the dataclasses shared by every stage of a pass.

Models:
    Severity: Totally ordered severity labels (Low < Medium < High < Critical).
    RawRecord: One vulnerability as produced by a source, before reconciliation.
    Record: The durable, reconciled representation of a vulnerability.
    ReconcileOutcome: Result of reconciling one RawRecord against the store.
    UpsertResult: Record plus outcome returned by the store's upsert.

Usage:
    from watchvuln.core.models import RawRecord, Severity

    raw = RawRecord(
        unique_key="CVE-2021-44228_KEV",
        title="Apache Log4j2 Remote Code Execution Vulnerability",
        description="Apache Log4j2 JNDI features...",
        severity=Severity.CRITICAL,
        cve="CVE-2021-44228",
        disclosure="2021-12-10",
        references=[],
        solutions="Apply updates per vendor instructions.",
        origin="https://www.cisa.gov/known-exploited-vulnerabilities-catalog",
        tags=["Apache", "Log4j2"],
        is_valuable=True,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, List, Optional

import structlog

from watchvuln.core.exceptions import ContractViolationError


log = structlog.get_logger()


class Severity(StrEnum):
    """Severity labels, ordered from least to most severe.

    Values are the display labels used in reasons and messages.
    """

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        """Position in the total order (Low=0 ... Critical=3)."""
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Any, strict: bool = False) -> Severity:
        """Convert a label into a Severity.

        Matching is case-insensitive. Unknown values raise in strict mode
        and degrade to LOW otherwise.

        Args:
            value: Severity instance or label string.
            strict: Raise ContractViolationError instead of degrading.

        Returns:
            The matching Severity.

        Raises:
            ContractViolationError: If value is unknown and strict is True.
        """
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        if strict:
            raise ContractViolationError(field="severity", value=value)
        log.warning("severity_degraded", value=repr(value), fallback=cls.LOW.value)
        return cls.LOW


_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


@dataclass
class RawRecord:
    """A source's unprocessed output for one vulnerability.

    Attributes:
        unique_key: Reconciliation key, unique per source and item.
        title: Advisory title.
        description: Advisory description.
        severity: Source-assigned severity.
        cve: CVE identifier, empty string when unknown.
        disclosure: Disclosure date as reported by the source.
        references: Reference URLs.
        solutions: Remediation text.
        origin: Where the record came from (source link).
        tags: Source tags.
        is_valuable: Source's own relevance judgment.
    """

    unique_key: str
    title: str
    description: str = ""
    severity: Severity = Severity.LOW
    cve: str = ""
    disclosure: str = ""
    references: List[str] = field(default_factory=list)
    solutions: str = ""
    origin: str = ""
    tags: List[str] = field(default_factory=list)
    is_valuable: bool = False

    def __post_init__(self) -> None:
        if not self.unique_key or not self.unique_key.strip():
            raise ValueError("RawRecord.unique_key cannot be empty")


@dataclass
class Record:
    """Durable, reconciled vulnerability record.

    Identity is ``unique_key``. ``reasons`` only ever grows and ``pushed``
    is true only when the current state reached every channel.
    """

    unique_key: str
    title: str
    description: str
    severity: Severity
    cve: str
    disclosure: str
    references: List[str]
    solutions: str
    origin: str
    tags: List[str]
    is_valuable: bool
    reasons: List[str] = field(default_factory=list)
    pushed: bool = False
    enrichment_links: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReconcileOutcome(StrEnum):
    """Result of reconciling one RawRecord."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass
class UpsertResult:
    """Record as persisted by an upsert, with what happened to it."""

    record: Record
    outcome: ReconcileOutcome

    @property
    def needs_notification(self) -> bool:
        return self.outcome in (ReconcileOutcome.NEW, ReconcileOutcome.CHANGED)
