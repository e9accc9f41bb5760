"""Markdown message templates.

Functions:
    render_record: Record -> (title, body) for a vulnerability alert.
    render_startup: Startup announcement after the bootstrap pass.
    escape_markdown_v2: Escape text for Telegram MarkdownV2.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from watchvuln.core.models import Record

MAX_REFERENCES = 8
STARTUP_TITLE = "WatchVuln init success"

_MARKDOWN_V2_SPECIALS = "_.*[]()~`>#+-=|{}!"


def escape_markdown_v2(text: str) -> str:
    """Backslash-escape every MarkdownV2 special character."""
    return "".join(f"\\{ch}" if ch in _MARKDOWN_V2_SPECIALS else ch for ch in text)


def render_record(record: Record) -> Tuple[str, str]:
    """Render a record alert.

    At most MAX_REFERENCES references are listed. Enrichment links are
    listed in their own section.

    Returns:
        (title, markdown body)
    """
    lines: List[str] = [
        "",
        f"# {record.title}",
        "",
        f"- CVE: {record.cve or 'N/A'}",
        f"- Severity: **{record.severity.value}**",
        "- Tags: " + " ".join(f"**{tag}**" for tag in record.tags),
        f"- Disclosure: **{record.disclosure}**",
        "- Reasons: " + ", ".join(record.reasons),
        f"- Source: [{record.origin}]",
        "",
    ]

    if record.description:
        lines += ["### **Description**", record.description, ""]
    if record.solutions:
        lines += ["### **Solutions**", record.solutions, ""]

    references = record.references[:MAX_REFERENCES]
    if references:
        lines.append("### **References**")
        lines += [f"{i}.{ref}" for i, ref in enumerate(references, start=1)]
        lines.append("")

    if record.enrichment_links:
        lines.append("### **Public PoC**")
        lines += [f"{i}.{link}" for i, link in enumerate(record.enrichment_links, start=1)]
        lines.append("")

    return record.title, "\n".join(lines)


def render_startup(
    version: str,
    record_count: int,
    cron_config: str,
    source_names: Sequence[str],
) -> Tuple[str, str]:
    """Render the startup announcement.

    Returns:
        (title, markdown body)
    """
    lines = [
        "",
        "Data initialization complete",
        f"Version: {version}",
        f"Local vulnerability count: {record_count}",
        f"Check schedule: {cron_config}",
        "",
        "Sources:",
    ]
    lines += [f"{i}.{name}" for i, name in enumerate(source_names, start=1)]
    return STARTUP_TITLE, "\n".join(lines)
