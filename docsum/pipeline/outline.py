"""Outline post-processing and export."""

from datetime import datetime, timezone
from typing import Any

from docsum.models.document import SectionDescriptor

RULE = "─" * 53


def _normalize_title(title: str) -> str:
    return " ".join(title.lower().split())


def merge_overlapping_sections(outline: list[SectionDescriptor]) -> list[SectionDescriptor]:
    """Coalesce adjacent entries that describe the same section.

    Two consecutive entries merge when their titles match (case and
    whitespace insensitive) and their page ranges overlap or touch, which
    is what a section straddling a chunk boundary looks like after naive
    concatenation. The merged entry spans both ranges and keeps the first
    entry's start anchor and the second's end anchor.
    """
    merged: list[SectionDescriptor] = []

    for section in outline:
        if merged:
            previous = merged[-1]
            same_title = _normalize_title(previous.title) == _normalize_title(section.title)
            touching = section.start_page <= previous.end_page + 1
            if same_title and touching:
                merged[-1] = SectionDescriptor(
                    title=previous.title,
                    start_page=min(previous.start_page, section.start_page),
                    end_page=max(previous.end_page, section.end_page),
                    start_text=previous.start_text or section.start_text,
                    end_text=section.end_text or previous.end_text,
                )
                continue
        merged.append(section)

    return merged


def _page_range(section: SectionDescriptor) -> str:
    if section.start_page == section.end_page:
        return f"Page {section.start_page}"
    return f"Pages {section.start_page}-{section.end_page}"


def render_outline_text(
    outline: list[SectionDescriptor],
    document_name: str,
    generated_at: datetime | None = None,
) -> str:
    """Render the outline as a plain-text table of contents."""
    generated = generated_at or datetime.now(timezone.utc)
    lines = [
        "TABLE OF CONTENTS",
        f"Document: {document_name}",
        f"Generated: {generated.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        "",
        RULE,
        "",
    ]

    for index, section in enumerate(outline, start=1):
        lines.append(f"{index}. {section.title}")
        lines.append(f"   {_page_range(section)}")
        lines.append("")

    lines.append(RULE)
    lines.append("End of Table of Contents")
    return "\n".join(lines)


def render_outline_json(
    outline: list[SectionDescriptor],
    document_name: str,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Render the outline as a downloadable JSON document."""
    generated = generated_at or datetime.now(timezone.utc)
    return {
        "document": document_name,
        "generated": generated.isoformat(),
        "sections": [section.model_dump(mode="json", exclude_none=True) for section in outline],
    }
