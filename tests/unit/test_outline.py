"""Tests for outline merge and export rendering."""

from datetime import datetime, timezone

from docsum.models.document import SectionDescriptor
from docsum.pipeline.outline import (
    merge_overlapping_sections,
    render_outline_json,
    render_outline_text,
)

GENERATED = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


def _section(title: str, start: int, end: int, **anchors: str) -> SectionDescriptor:
    return SectionDescriptor(title=title, start_page=start, end_page=end, **anchors)


class TestMergeOverlappingSections:
    """merge_overlapping_sections behaviour."""

    def test_section_straddling_chunk_boundary_is_coalesced(self) -> None:
        outline = [
            _section("Intro", 1, 2),
            _section("Methods", 3, 5, start_text="We measured"),
            _section("  methods ", 5, 7, end_text="in summary"),
            _section("Results", 8, 9),
        ]

        merged = merge_overlapping_sections(outline)

        assert [s.title for s in merged] == ["Intro", "Methods", "Results"]
        assert (merged[1].start_page, merged[1].end_page) == (3, 7)
        assert merged[1].start_text == "We measured"
        assert merged[1].end_text == "in summary"

    def test_adjacent_pages_count_as_touching(self) -> None:
        merged = merge_overlapping_sections([_section("A", 1, 3), _section("A", 4, 6)])

        assert len(merged) == 1
        assert merged[0].end_page == 6

    def test_same_title_far_apart_is_kept(self) -> None:
        outline = [_section("Summary", 1, 1), _section("Summary", 10, 11)]

        assert merge_overlapping_sections(outline) == outline

    def test_different_titles_are_kept(self) -> None:
        outline = [_section("A", 1, 3), _section("B", 2, 4)]

        assert merge_overlapping_sections(outline) == outline

    def test_empty_outline(self) -> None:
        assert merge_overlapping_sections([]) == []


class TestRenderOutline:
    """Outline export formats."""

    def test_text_uses_page_and_pages_labels(self) -> None:
        outline = [_section("Abstract", 1, 1), _section("1. Introduction", 2, 5)]

        text = render_outline_text(outline, "paper.pdf", generated_at=GENERATED)

        lines = text.splitlines()
        assert lines[0] == "TABLE OF CONTENTS"
        assert lines[1] == "Document: paper.pdf"
        assert lines[2].startswith("Generated: 2025-03-01 09:30:00")
        assert "1. Abstract" in lines
        assert "   Page 1" in lines
        assert "2. 1. Introduction" in lines
        assert "   Pages 2-5" in lines
        assert lines[-1] == "End of Table of Contents"

    def test_json_shape(self) -> None:
        outline = [_section("Abstract", 1, 1, start_text="Abstract")]

        data = render_outline_json(outline, "paper.pdf", generated_at=GENERATED)

        assert data["document"] == "paper.pdf"
        assert data["generated"] == "2025-03-01T09:30:00+00:00"
        assert data["sections"] == [
            {"title": "Abstract", "start_page": 1, "end_page": 1, "start_text": "Abstract"}
        ]
