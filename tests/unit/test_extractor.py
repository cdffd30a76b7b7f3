"""Tests for anchor-based section extraction with page fallback."""

from docsum.models.document import SectionDescriptor
from docsum.pipeline.extractor import extract_section_content

DOCUMENT = """=== PAGE 1 ===
Preface
Front matter line
=== PAGE 2 ===
Intro paragraph before the heading
X
Body of X on page two
=== PAGE 3 ===
Body of X on page three
Chapter Y begins here
Body of Y on page three
=== PAGE 4 ===
Body on page four
=== PAGE 5 ===
Appendix material"""


def test_anchor_pass_starts_at_title_and_stops_after_end_page() -> None:
    """Lines before the title line and after end_page are excluded."""
    section = SectionDescriptor(title="X", start_page=2, end_page=4)

    content = extract_section_content(DOCUMENT, section)

    assert content.startswith("X")
    assert "Intro paragraph before the heading" not in content
    assert "Body on page four" in content
    assert "Appendix material" not in content
    assert "=== PAGE" not in content


def test_anchor_pass_stops_at_next_section_anchor() -> None:
    """Capture ends on the line matching the next section's title."""
    section = SectionDescriptor(title="X", start_page=2, end_page=4)
    next_section = SectionDescriptor(title="Chapter Y", start_page=3, end_page=4)

    content = extract_section_content(DOCUMENT, section, next_section)

    assert content == "X\nBody of X on page two\nBody of X on page three"


def test_start_text_anchor_is_case_insensitive() -> None:
    """start_text matches regardless of case."""
    section = SectionDescriptor(
        title="Not In Text",
        start_page=3,
        end_page=3,
        start_text="CHAPTER Y BEGINS",
    )

    content = extract_section_content(DOCUMENT, section)

    assert content.startswith("Chapter Y begins here")
    assert content.endswith("Body of Y on page three")


def test_anchor_before_start_page_is_ignored() -> None:
    """A title occurrence on an earlier page does not start capture."""
    document = "=== PAGE 1 ===\nSummary\n=== PAGE 2 ===\nfoo\nSummary\nbar"
    section = SectionDescriptor(title="Summary", start_page=2, end_page=2)

    assert extract_section_content(document, section) == "Summary\nbar"


def test_fallback_returns_full_page_range_when_anchor_missing() -> None:
    """No anchor anywhere: every line of start_page..end_page inclusive."""
    section = SectionDescriptor(title="Nowhere To Be Found", start_page=2, end_page=3)

    content = extract_section_content(DOCUMENT, section)

    assert content == (
        "Intro paragraph before the heading\n"
        "X\n"
        "Body of X on page two\n"
        "Body of X on page three\n"
        "Chapter Y begins here\n"
        "Body of Y on page three"
    )


def test_fallback_ignores_next_section_anchor() -> None:
    """The page-only pass does not stop on the next section's title."""
    section = SectionDescriptor(title="Missing", start_page=3, end_page=3)
    next_section = SectionDescriptor(title="Chapter Y", start_page=3, end_page=4)

    content = extract_section_content(DOCUMENT, section, next_section)

    assert "Chapter Y begins here" in content
    assert content.startswith("Body of X on page three")


def test_pages_beyond_document_yield_empty_content() -> None:
    """A range outside the text extracts nothing."""
    section = SectionDescriptor(title="Ghost", start_page=9, end_page=10)

    assert extract_section_content(DOCUMENT, section) == ""


def test_text_before_first_marker_counts_as_page_one() -> None:
    """Unmarked leading text belongs to page 1."""
    document = "Cover Title\nsubtitle\n=== PAGE 2 ===\nnext"
    section = SectionDescriptor(title="Cover Title", start_page=1, end_page=1)

    assert extract_section_content(document, section) == "Cover Title\nsubtitle"
