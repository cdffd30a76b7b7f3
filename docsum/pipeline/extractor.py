"""Section content extractor - recovers each outline entry's text."""

import logging
import re
from collections.abc import Iterator

from docsum.models.document import SectionDescriptor

logger = logging.getLogger(__name__)

PAGE_MARKER = re.compile(r"=== PAGE (\d+) ===")


def _paged_lines(document_text: str) -> Iterator[tuple[int, str]]:
    """Yield (page, line) for every non-marker line; text before any marker is page 1."""
    page = 1
    for line in document_text.split("\n"):
        marker = PAGE_MARKER.search(line)
        if marker:
            page = int(marker.group(1))
            continue
        yield page, line


def _anchors(section: SectionDescriptor) -> list[str]:
    anchors = [section.title.lower()]
    if section.start_text:
        anchors.append(section.start_text.lower())
    return anchors


def _matches(line: str, anchors: list[str]) -> bool:
    lowered = line.lower()
    return any(anchor in lowered for anchor in anchors)


def _extract_by_anchor(
    document_text: str,
    section: SectionDescriptor,
    next_section: SectionDescriptor | None,
) -> str:
    anchors = _anchors(section)
    next_anchors = _anchors(next_section) if next_section is not None else []
    captured: list[str] = []
    capturing = False

    for page, line in _paged_lines(document_text):
        if not capturing and page >= section.start_page and _matches(line, anchors):
            capturing = True

        if capturing:
            if page > section.end_page:
                break
            if next_anchors and _matches(line, next_anchors):
                break
            captured.append(line)

    return "\n".join(captured).strip()


def _extract_by_page(document_text: str, section: SectionDescriptor) -> str:
    captured: list[str] = []

    for page, line in _paged_lines(document_text):
        if page > section.end_page:
            break
        if page >= section.start_page:
            captured.append(line)

    return "\n".join(captured).strip()


def extract_section_content(
    document_text: str,
    section: SectionDescriptor,
    next_section: SectionDescriptor | None = None,
) -> str:
    """Return the text belonging to one outline entry.

    Primary pass: capture starts on the first line at or after
    `start_page` that contains the title or `start_text` (case
    insensitive), and stops once the page passes `end_page` or a line
    matches the next section's anchors.

    Fallback pass, used when the primary pass captures nothing: every line
    on pages `start_page..end_page` inclusive, anchors ignored.

    Args:
        document_text: Full text with `=== PAGE n ===` marker lines
        section: Outline entry to extract
        next_section: Following outline entry, if any

    Returns:
        Trimmed section text (possibly empty)
    """
    content = _extract_by_anchor(document_text, section, next_section)
    if content:
        return content

    logger.info(
        f'No content found using title matching for section "{section.title}". '
        "Falling back to page-based extraction.",
        extra={
            "structured": {
                "title": section.title,
                "start_page": section.start_page,
                "end_page": section.end_page,
            }
        },
    )
    return _extract_by_page(document_text, section)
