"""Tests for HTML trimming, chunking and deduplication."""

from pageclip.core.extraction.html_utils import (
    deduplicate_content,
    split_html_into_chunks,
    trim_html_for_analysis,
)
from pageclip.core.models import ContentType

PAGE = "".join(f"<p>{'x' * 50}</p>" for _ in range(20))


class TestTrimHtmlForAnalysis:
    """Test markup reduction for selector discovery."""

    def test_scripts_and_comments_removed(self):
        """Test script bodies and comments are dropped."""
        html = "<html><body><script>var secret = 1;</script><!-- note --><p>Hi</p></body></html>"
        trimmed = trim_html_for_analysis(html, max_length=10000)

        assert "var secret" not in trimmed
        assert "note" not in trimmed
        assert "<p>Hi</p>" in trimmed

    def test_long_text_shortened(self):
        """Test long text runs are replaced by a head and tail."""
        html = f"<html><body><p>{'a' * 400}</p></body></html>"
        trimmed = trim_html_for_analysis(html, max_length=10000)

        assert "[content trimmed]" in trimmed
        assert "a" * 400 not in trimmed

    def test_truncated_to_budget(self):
        """Test oversize markup is cut with a marker."""
        html = "<html><body>" + "<div><span>x</span></div>" * 500 + "</body></html>"
        trimmed = trim_html_for_analysis(html, max_length=1000)

        assert trimmed.endswith("... [truncated for analysis]")
        assert len(trimmed) <= 1000 + len("\n... [truncated for analysis]")

    def test_empty(self):
        """Test empty input."""
        assert trim_html_for_analysis("") == ""


class TestSplitHtmlIntoChunks:
    """Test chunking at tag boundaries."""

    def test_small_input_single_chunk(self):
        """Test markup under the budget is not split."""
        assert split_html_into_chunks("<p>Hi</p>", chunk_size=100, overlap=10) == ["<p>Hi</p>"]

    def test_breaks_at_tags_without_overlap(self):
        """Test chunks end at a tag and reassemble losslessly."""
        chunks = split_html_into_chunks(PAGE, chunk_size=200, overlap=0)

        assert len(chunks) > 1
        assert "".join(chunks) == PAGE
        assert all(chunk.endswith(">") for chunk in chunks)
        assert all(len(chunk) <= 201 for chunk in chunks)

    def test_overlap(self):
        """Test each chunk starts with the tail of the previous one."""
        chunks = split_html_into_chunks(PAGE, chunk_size=200, overlap=20)

        for previous, current in zip(chunks, chunks[1:]):
            assert current[:20] == previous[-20:]
        assert chunks[-1].endswith(PAGE[-20:])

    def test_no_tags(self):
        """Test text without tags is split at the nominal size."""
        chunks = split_html_into_chunks("x" * 1000, chunk_size=300, overlap=0)
        assert [len(c) for c in chunks] == [300, 300, 300, 100]


class TestDeduplicateContent:
    """Test removal of repeated items."""

    def test_duplicates_removed_in_order(self, make_items):
        """Test repeated paragraphs and images collapse to their first occurrence."""
        content = make_items(
            "First",
            {"type": "image", "src": "a.png"},
            "First",
            "Second",
            {"type": "image", "src": "a.png", "alt": "again"},
        )
        result = deduplicate_content(content)

        assert [(i.type, i.text or i.src) for i in result] == [
            (ContentType.PARAGRAPH, "First"),
            (ContentType.IMAGE, "a.png"),
            (ContentType.PARAGRAPH, "Second"),
        ]

    def test_structural_items_kept(self, make_items):
        """Test separators and infobox markers are never collapsed."""
        content = make_items(
            {"type": "separator"},
            {"type": "infobox_start"},
            {"type": "infobox_end"},
            {"type": "separator"},
        )
        assert len(deduplicate_content(content)) == 4

    def test_same_text_different_type(self, make_items):
        """Test items differing only in type are both kept."""
        content = make_items("Title", {"type": "heading", "text": "Title", "level": 2})
        assert len(deduplicate_content(content)) == 2

    def test_tables_and_html_only_items_compared_by_content(self, make_items):
        """Test distinct tables and html-only paragraphs survive while repeats collapse."""
        content = make_items(
            {"type": "table", "headers": ["Year"], "rows": [["2023"]]},
            {"type": "table", "headers": ["Year"], "rows": [["2024"]]},
            {"type": "table", "headers": ["Year"], "rows": [["2024"]]},
            {"html": "<b>One</b>"},
            {"html": "<b>Two</b>"},
            {"html": "<b>Two</b>"},
        )
        result = deduplicate_content(content)

        assert [i.rows for i in result if i.type == ContentType.TABLE] == [[["2023"]], [["2024"]]]
        assert [i.html for i in result if i.type == ContentType.PARAGRAPH] == ["<b>One</b>", "<b>Two</b>"]

    def test_items_without_payload_kept(self, make_items):
        """Test items with nothing to compare are never collapsed."""
        content = make_items({"type": "image"}, {"type": "image"})
        assert len(deduplicate_content(content)) == 2
