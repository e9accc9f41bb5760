"""CISA Known Exploited Vulnerabilities (KEV) Source.

This module implements the CisaKevSource that reports the most recently
added entries of the CISA KEV catalog.

Classes:
    KevEntry: Dataclass representing a single KEV catalog entry.
    CisaKevSource: Source implementing the VulnSource interface.

Every KEV entry is a vulnerability exploited in the wild, so all records
from this source are Critical and valuable.

Example:
    >>> from watchvuln.intelligence.sources import CisaKevSource
    >>> source = CisaKevSource()
    >>> records = await source.get_update(volume_hint=1)
    >>> for r in records:
    ...     print(r.unique_key, r.title)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog

from watchvuln.core.exceptions import SourceFetchError
from watchvuln.core.models import RawRecord, Severity
from watchvuln.intelligence.base import VulnSource


log = structlog.get_logger()

FEED_URL = "https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json"
CATALOG_LINK = "https://www.cisa.gov/known-exploited-vulnerabilities-catalog"
# Entries reported per unit of volume hint.
PAGE_SIZE = 10
IN_THE_WILD_TAG = "in-the-wild"


# =============================================================================
# KEV Data Models
# =============================================================================


@dataclass
class KevEntry:
    """Represents a single CISA KEV catalog entry.

    Attributes:
        cve_id: CVE identifier (e.g., "CVE-2021-44228")
        vendor_project: Vendor or project name (e.g., "Apache")
        product: Product name (e.g., "Log4j")
        vulnerability_name: Human-readable vulnerability name
        date_added: Date added to KEV catalog (YYYY-MM-DD)
        short_description: Brief description of the vulnerability
        required_action: Action required to remediate
        due_date: Remediation due date (YYYY-MM-DD)
        notes: Additional notes (often empty)
    """

    cve_id: str
    vendor_project: str
    product: str
    vulnerability_name: str
    date_added: str
    short_description: str
    required_action: str
    due_date: str
    notes: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> KevEntry:
        """Create a KevEntry from raw CISA KEV JSON.

        The CISA JSON uses camelCase field names that we normalize
        to snake_case for Pythonic access.

        Args:
            data: Raw JSON entry from CISA KEV feed.

        Returns:
            KevEntry instance with normalized field names.
        """
        return cls(
            cve_id=data["cveID"],
            vendor_project=data["vendorProject"],
            product=data["product"],
            vulnerability_name=data["vulnerabilityName"],
            date_added=data["dateAdded"],
            short_description=data.get("shortDescription", ""),
            required_action=data.get("requiredAction", ""),
            due_date=data.get("dueDate", ""),
            notes=data.get("notes", ""),
        )


# =============================================================================
# CisaKevSource Implementation
# =============================================================================


class CisaKevSource(VulnSource):
    """CISA Known Exploited Vulnerabilities source.

    All records from this source have:
    - unique_key="<CVE>_KEV"
    - severity=Critical (KEV entries are exploited in the wild)
    - tags=[vendor, product, "in-the-wild"]
    - is_valuable=True
    """

    def __init__(
        self,
        timeout: float = 30.0,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        """Initialize the CISA KEV source.

        Args:
            timeout: Per-call timeout in seconds.
            http_client_factory: Factory for the async HTTP client, for
                dependency injection in tests.
        """
        super().__init__(
            name="kev",
            display_name="Known Exploited Vulnerabilities Catalog",
            link=CATALOG_LINK,
            timeout=timeout,
        )
        self._http_client_factory = http_client_factory or (
            lambda: httpx.AsyncClient(timeout=self.timeout)
        )

    async def fetch_catalog(self) -> List[KevEntry]:
        """Download and parse the KEV catalog.

        Raises:
            SourceFetchError: On network, HTTP or payload errors.
        """
        log.debug("kev_catalog_fetch_start", url=FEED_URL)
        try:
            async with self._http_client_factory() as client:
                response = await client.get(FEED_URL)
                response.raise_for_status()
                data = response.json()
            entries = [KevEntry.from_json(v) for v in data.get("vulnerabilities", [])]
        except httpx.HTTPError as e:
            raise SourceFetchError(source=self.name, url=FEED_URL, message=str(e)) from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SourceFetchError(
                source=self.name,
                url=FEED_URL,
                message=f"Malformed KEV catalog: {e}",
            ) from e

        log.debug(
            "kev_catalog_fetch_complete",
            entry_count=len(entries),
            catalog_version=data.get("catalogVersion"),
        )
        return entries

    async def get_update(self, volume_hint: int) -> List[RawRecord]:
        """Return the newest ``volume_hint * 10`` catalog entries.

        Args:
            volume_hint: Number of pages of ten entries.

        Returns:
            RawRecords sorted by date added, newest first.
        """
        entries = await self.fetch_catalog()
        entries.sort(key=lambda e: e.date_added, reverse=True)
        limit = max(volume_hint, 0) * PAGE_SIZE

        records = [self._to_raw_record(entry) for entry in entries[:limit]]
        log.info("kev_update_complete", source=self.get_name(), record_count=len(records))
        return records

    def _to_raw_record(self, entry: KevEntry) -> RawRecord:
        references = [entry.notes] if entry.notes else []
        return RawRecord(
            unique_key=f"{entry.cve_id}_KEV",
            title=entry.vulnerability_name,
            description=entry.short_description,
            severity=Severity.CRITICAL,
            cve=entry.cve_id,
            disclosure=entry.date_added,
            references=references,
            solutions=entry.required_action,
            origin=self.link,
            tags=[entry.vendor_project, entry.product, IN_THE_WILD_TAG],
            is_valuable=True,
        )
