"""Unit tests for the CISA KEV source."""

import httpx
import pytest

from watchvuln.core.exceptions import SourceFetchError
from watchvuln.core.models import Severity
from watchvuln.intelligence.sources.cisa_kev import (
    CATALOG_LINK,
    FEED_URL,
    IN_THE_WILD_TAG,
    CisaKevSource,
    KevEntry,
)


def _entry(cve: str, date_added: str, notes: str = "") -> dict:
    return {
        "cveID": cve,
        "vendorProject": "Acme",
        "product": "Widget",
        "vulnerabilityName": f"Acme Widget {cve}",
        "dateAdded": date_added,
        "shortDescription": "Widget allows remote code execution.",
        "requiredAction": "Apply mitigations per vendor instructions.",
        "dueDate": "2024-02-01",
        "notes": notes,
    }


def _catalog(count: int) -> dict:
    return {
        "catalogVersion": "2024.01.31",
        "vulnerabilities": [
            _entry(f"CVE-2024-{i:04d}", f"2024-01-{i:02d}") for i in range(1, count + 1)
        ],
    }


def _source(handler) -> CisaKevSource:
    return CisaKevSource(
        http_client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


class TestKevEntry:

    @pytest.mark.unit
    def test_from_json(self):
        entry = KevEntry.from_json(_entry("CVE-2021-44228", "2021-12-10", notes="https://logging.apache.org"))
        assert entry.cve_id == "CVE-2021-44228"
        assert entry.vendor_project == "Acme"
        assert entry.date_added == "2021-12-10"
        assert entry.notes == "https://logging.apache.org"

    @pytest.mark.unit
    def test_optional_fields_default_empty(self):
        data = {
            "cveID": "CVE-1",
            "vendorProject": "v",
            "product": "p",
            "vulnerabilityName": "n",
            "dateAdded": "2024-01-01",
        }
        entry = KevEntry.from_json(data)
        assert entry.short_description == ""
        assert entry.notes == ""


class TestGetUpdate:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_newest_first_limited_by_volume(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=_catalog(25))

        records = await _source(handler).get_update(volume_hint=2)

        assert seen == [FEED_URL]
        assert len(records) == 20
        assert records[0].unique_key == "CVE-2024-0025_KEV"
        assert records[-1].unique_key == "CVE-2024-0006_KEV"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_record_mapping(self):
        payload = {"vulnerabilities": [_entry("CVE-2024-0001", "2024-01-01", notes="https://vendor/advisory")]}
        records = await _source(lambda r: httpx.Response(200, json=payload)).get_update(1)

        record = records[0]
        assert record.cve == "CVE-2024-0001"
        assert record.severity is Severity.CRITICAL
        assert record.tags == ["Acme", "Widget", IN_THE_WILD_TAG]
        assert record.references == ["https://vendor/advisory"]
        assert record.solutions == "Apply mitigations per vendor instructions."
        assert record.disclosure == "2024-01-01"
        assert record.origin == CATALOG_LINK
        assert record.is_valuable is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_volume(self):
        records = await _source(lambda r: httpx.Response(200, json=_catalog(3))).get_update(0)
        assert records == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        source = _source(lambda r: httpx.Response(503))
        with pytest.raises(SourceFetchError) as exc_info:
            await source.get_update(1)
        assert exc_info.value.source == "kev"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self):
        source = _source(lambda r: httpx.Response(200, json={"vulnerabilities": [{"cveID": "x"}]}))
        with pytest.raises(SourceFetchError):
            await source.get_update(1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_json_raises(self):
        source = _source(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(SourceFetchError):
            await source.get_update(1)

    @pytest.mark.unit
    def test_identity(self):
        source = CisaKevSource()
        assert source.name == "kev"
        assert source.get_name() == "Known Exploited Vulnerabilities Catalog"
        assert source.link == CATALOG_LINK
