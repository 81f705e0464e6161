"""Tests for translation references and chunking."""

from pageclip.core.models import ContentType, ListItem
from pageclip.core.translation.chunking import (
    TextRef,
    apply_translations,
    build_chunks,
    collect_translation_refs,
)


def make_refs(*sizes):
    return [TextRef(index=i, field="text", text="x" * size) for i, size in enumerate(sizes)]


class TestCollectTranslationRefs:
    """Test collection of translatable fields."""

    def test_code_excluded(self, make_items):
        """Test code items are never queued."""
        content = make_items("Hello", "<b>World</b>", {"type": "code", "text": "x=1"})
        refs = collect_translation_refs(content)

        assert len(refs) == 2
        assert [r.text for r in refs] == ["Hello", "<b>World</b>"]
        assert all(content[r.index].type != ContentType.CODE for r in refs)

    def test_html_used_when_no_text(self, make_items):
        """Test the html field is collected when text is absent."""
        refs = collect_translation_refs(make_items({"type": "quote", "html": "<em>Quote</em>"}))
        assert refs == [TextRef(index=0, field="html", text="<em>Quote</em>")]

    def test_image_alt_and_caption(self, make_items):
        """Test image descriptions are collected."""
        content = make_items({"type": "image", "src": "a.png", "alt": "A cat", "caption": "Cat photo"})
        assert [(r.field, r.text) for r in collect_translation_refs(content)] == [
            ("alt", "A cat"),
            ("caption", "Cat photo"),
        ]

    def test_list_items(self, make_items):
        """Test plain and rich list entries are collected."""
        content = make_items({"type": "list", "items": ["One", {"html": "<b>Two</b>"}, "  "]})
        refs = collect_translation_refs(content)

        assert [(r.sub_index, r.sub_field, r.text) for r in refs] == [
            (0, None, "One"),
            (1, "html", "<b>Two</b>"),
        ]

    def test_table_cells(self, make_items):
        """Test headers and cells are collected."""
        content = make_items(
            {"type": "table", "headers": ["Name", "Age"], "rows": [["Alice", "30"], ["", "Bob"]]}
        )
        refs = collect_translation_refs(content)
        assert [r.text for r in refs] == ["Name", "Age", "Alice", "30", "Bob"]

    def test_empty_text_skipped(self, make_items):
        """Test blank fields are not queued."""
        assert collect_translation_refs(make_items("   ", {"type": "separator"})) == []


class TestBuildChunks:
    """Test greedy chunk packing."""

    def test_lossless_and_ordered(self):
        """Test concatenated chunks reproduce the reference list."""
        refs = make_refs(30, 50, 10, 80, 20, 5, 45, 60)
        chunks = build_chunks(refs, 100)

        flattened = [ref for chunk in chunks for ref in chunk.refs]
        assert flattened == refs

    def test_budget_respected(self):
        """Test no multi-reference chunk exceeds the budget."""
        chunks = build_chunks(make_refs(30, 50, 10, 80, 20, 5, 45, 60), 100)
        for chunk in chunks:
            assert len(chunk) == 1 or chunk.size <= 100

    def test_oversize_reference_alone(self):
        """Test a reference larger than the budget gets its own chunk."""
        refs = make_refs(10, 250, 10)
        chunks = build_chunks(refs, 100)

        assert [len(c) for c in chunks] == [1, 1, 1]
        assert chunks[1].refs == [refs[1]]

    def test_empty(self):
        """Test no references give no chunks."""
        assert build_chunks([], 100) == []


class TestApplyTranslations:
    """Test writing translations back."""

    def test_writes_every_field_kind(self, make_items):
        """Test each reference kind is written to its location."""
        content = make_items(
            "Hello",
            {"type": "image", "src": "a.png", "alt": "A cat"},
            {"type": "list", "items": ["One", {"html": "<b>Two</b>"}]},
            {"type": "table", "headers": ["Name"], "rows": [["Alice"]]},
        )
        refs = collect_translation_refs(content)
        apply_translations(content, refs, ["Bonjour", "Un chat", "Un", "<b>Deux</b>", "Nom", "Alice FR"])

        assert content[0].text == "Bonjour"
        assert content[1].alt == "Un chat"
        assert content[2].items[0] == "Un"
        assert isinstance(content[2].items[1], ListItem)
        assert content[2].items[1].html == "<b>Deux</b>"
        assert content[3].headers == ["Nom"]
        assert content[3].rows == [["Alice FR"]]

    def test_none_keeps_original(self, make_items):
        """Test missing translations leave the original text."""
        content = make_items("Hello", "World")
        refs = collect_translation_refs(content)
        apply_translations(content, refs, [None, "Monde"])

        assert content[0].text == "Hello"
        assert content[1].text == "Monde"
