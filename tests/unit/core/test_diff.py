"""Unit tests for watchvuln.core.diff."""

import pytest

from watchvuln.core.diff import (
    COSMETIC_FIELDS,
    diff_record,
    format_tags,
    severity_reason,
    tags_reason,
)
from watchvuln.core.models import Record, Severity


@pytest.fixture
def existing(make_raw) -> Record:
    raw = make_raw(severity=Severity.MEDIUM, tags=["Apache", "Struts"])
    return Record(**raw.__dict__, reasons=["created"], pushed=True)


@pytest.mark.unit
def test_format_tags():
    assert format_tags([]) == "[]"
    assert format_tags(["a", "b"]) == "[a, b]"


@pytest.mark.unit
def test_reason_texts():
    assert severity_reason("Medium", "Critical") == "severity: Medium => Critical"
    assert tags_reason(["a"], ["a", "b"]) == "tags: [a] => [a, b]"


@pytest.mark.unit
def test_identical_sighting_is_not_a_change(existing, make_raw):
    diff = diff_record(existing, make_raw(severity=Severity.MEDIUM, tags=["Apache", "Struts"]))
    assert not diff.changed
    assert diff.reasons == []
    assert diff.updates == {}


@pytest.mark.unit
def test_severity_change(existing, make_raw):
    diff = diff_record(existing, make_raw(severity=Severity.CRITICAL, tags=["Apache", "Struts"]))
    assert diff.changed
    assert diff.reasons == ["severity: Medium => Critical"]
    assert diff.updates["severity"] is Severity.CRITICAL
    assert diff.updates["tags"] == ["Apache", "Struts"]


@pytest.mark.unit
def test_new_tag_is_a_change(existing, make_raw):
    diff = diff_record(
        existing,
        make_raw(severity=Severity.MEDIUM, tags=["Apache", "Struts", "in-the-wild"]),
    )
    assert diff.changed
    assert diff.new_tags == ["in-the-wild"]
    assert diff.reasons == ["tags: [Apache, Struts] => [Apache, Struts, in-the-wild]"]


@pytest.mark.unit
def test_removed_or_reordered_tags_are_not_a_change(existing, make_raw):
    diff = diff_record(existing, make_raw(severity=Severity.MEDIUM, tags=["Struts"]))
    assert not diff.changed
    assert "tags" not in diff.updates


@pytest.mark.unit
def test_severity_and_tags_reasons_in_order(existing, make_raw):
    diff = diff_record(
        existing,
        make_raw(severity=Severity.HIGH, tags=["Apache", "Struts", "rce"]),
    )
    assert diff.reasons == [
        "severity: Medium => High",
        "tags: [Apache, Struts] => [Apache, Struts, rce]",
    ]


@pytest.mark.unit
def test_cosmetic_changes_are_collected_without_change(existing, make_raw):
    diff = diff_record(
        existing,
        make_raw(
            severity=Severity.MEDIUM,
            tags=["Apache", "Struts"],
            title="Corrected title",
            solutions="New workaround",
            references=["https://example.com/a", "https://example.com/b"],
        ),
    )
    assert not diff.changed
    assert set(diff.updates) == {"title", "solutions", "references"}
    assert set(diff.updates) <= set(COSMETIC_FIELDS)
