"""Change detection between a stored Record and a fresh RawRecord.

Only two kinds of change are material and gate re-notification:

- a different severity
- at least one tag that the stored record does not carry yet

Every other field is refreshed to the latest value the source reports,
without resetting ``pushed`` and without adding a reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from watchvuln.core.models import RawRecord, Record


REASON_CREATED = "created"

# Fields always taken from the latest sighting.
COSMETIC_FIELDS = (
    "title",
    "description",
    "disclosure",
    "solutions",
    "references",
    "origin",
    "is_valuable",
)


def format_tags(tags: List[str]) -> str:
    """Render a tag list for a reason line: ``[a, b]``."""
    return "[" + ", ".join(tags) + "]"


def severity_reason(old: str, new: str) -> str:
    return f"severity: {old} => {new}"


def tags_reason(old: List[str], new: List[str]) -> str:
    return f"tags: {format_tags(old)} => {format_tags(new)}"


@dataclass
class RecordDiff:
    """Outcome of comparing a stored record with a new sighting.

    Attributes:
        changed: True if severity or tags changed materially.
        reasons: Reasons to append, in detection order.
        updates: Field values to write; includes severity/tags only when
            ``changed`` is True.
        new_tags: Tags present in the sighting but not in the store.
    """

    changed: bool = False
    reasons: List[str] = field(default_factory=list)
    updates: Dict[str, Any] = field(default_factory=dict)
    new_tags: List[str] = field(default_factory=list)


def diff_record(existing: Record, raw: RawRecord) -> RecordDiff:
    """Compare ``existing`` against ``raw``.

    Args:
        existing: Record currently in the store.
        raw: Fresh sighting for the same unique_key.

    Returns:
        RecordDiff describing what must be written.
    """
    diff = RecordDiff()

    if existing.severity != raw.severity:
        diff.changed = True
        diff.reasons.append(severity_reason(existing.severity.value, raw.severity.value))

    known = set(existing.tags)
    diff.new_tags = [tag for tag in raw.tags if tag not in known]
    if diff.new_tags:
        diff.changed = True
        diff.reasons.append(tags_reason(existing.tags, raw.tags))

    for name in COSMETIC_FIELDS:
        value = getattr(raw, name)
        if getattr(existing, name) != value:
            diff.updates[name] = list(value) if isinstance(value, list) else value

    if diff.changed:
        diff.updates["severity"] = raw.severity
        diff.updates["tags"] = list(raw.tags)

    return diff
