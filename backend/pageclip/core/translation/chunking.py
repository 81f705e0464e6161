"""Translation references and chunking.

A reference points at one translatable string inside the content list. The
engine packs references into size-bounded chunks, translates each chunk in a
single request and writes the results back through the same references.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..models import ContentItem, ContentType, ListItem


@dataclass(frozen=True)
class TextRef:
    """Location of one translatable string."""

    index: int
    field: str  # text | html | alt | caption | items | headers | rows
    text: str
    sub_index: Optional[int] = None
    sub_field: Optional[str] = None  # "html" for rich list items
    cell_index: Optional[int] = None  # table cell column

    @property
    def size(self) -> int:
        return len(self.text)


@dataclass
class TranslationChunk:
    """Ordered group of references sent in one request."""

    refs: List[TextRef] = field(default_factory=list)

    @property
    def size(self) -> int:
        return sum(ref.size for ref in self.refs)

    @property
    def texts(self) -> List[str]:
        return [ref.text for ref in self.refs]

    def __len__(self) -> int:
        return len(self.refs)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def collect_translation_refs(content: Sequence[ContentItem]) -> List[TextRef]:
    """Collect every translatable string in document order.

    Code items are skipped entirely. Image alt/caption, list entries and
    table cells are collected alongside the main text field.
    """
    refs: List[TextRef] = []

    for i, item in enumerate(content):
        if not item.is_translatable:
            continue

        if _has_text(item.text):
            refs.append(TextRef(index=i, field="text", text=item.text))
        elif _has_text(item.html):
            refs.append(TextRef(index=i, field="html", text=item.html))

        if item.type == ContentType.IMAGE:
            if _has_text(item.alt):
                refs.append(TextRef(index=i, field="alt", text=item.alt))
            if _has_text(item.caption):
                refs.append(TextRef(index=i, field="caption", text=item.caption))

        if item.items:
            for j, entry in enumerate(item.items):
                if isinstance(entry, str):
                    if _has_text(entry):
                        refs.append(TextRef(index=i, field="items", sub_index=j, text=entry))
                elif _has_text(entry.html):
                    refs.append(
                        TextRef(index=i, field="items", sub_index=j, sub_field="html", text=entry.html)
                    )

        if item.type == ContentType.TABLE:
            for j, header in enumerate(item.headers or []):
                if _has_text(header):
                    refs.append(TextRef(index=i, field="headers", sub_index=j, text=header))
            for r, row in enumerate(item.rows or []):
                for c, cell in enumerate(row):
                    if _has_text(cell):
                        refs.append(
                            TextRef(index=i, field="rows", sub_index=r, cell_index=c, text=cell)
                        )

    return refs


def build_chunks(refs: Sequence[TextRef], budget: int) -> List[TranslationChunk]:
    """Greedily pack references into chunks of at most ``budget`` characters.

    Order is preserved. A reference larger than the budget gets a chunk of
    its own.
    """
    chunks: List[TranslationChunk] = []
    current = TranslationChunk()
    current_size = 0

    for ref in refs:
        if ref.size > budget:
            if current.refs:
                chunks.append(current)
                current = TranslationChunk()
                current_size = 0
            chunks.append(TranslationChunk(refs=[ref]))
            continue

        if current.refs and current_size + ref.size > budget:
            chunks.append(current)
            current = TranslationChunk()
            current_size = 0

        current.refs.append(ref)
        current_size += ref.size

    if current.refs:
        chunks.append(current)

    return chunks


def apply_translation(content: List[ContentItem], ref: TextRef, translated: Optional[str]) -> None:
    """Write one translated string back; None or empty keeps the original."""
    if not translated:
        return

    item = content[ref.index]
    if ref.field in ("text", "html", "alt", "caption"):
        setattr(item, ref.field, translated)
    elif ref.field == "items" and item.items is not None:
        entry = item.items[ref.sub_index]
        if ref.sub_field == "html" and isinstance(entry, ListItem):
            entry.html = translated
        else:
            item.items[ref.sub_index] = translated
    elif ref.field == "headers" and item.headers is not None:
        item.headers[ref.sub_index] = translated
    elif ref.field == "rows" and item.rows is not None:
        item.rows[ref.sub_index][ref.cell_index] = translated


def apply_translations(
    content: List[ContentItem],
    refs: Sequence[TextRef],
    translations: Sequence[Optional[str]],
) -> None:
    """Write a chunk's results back, position by position."""
    for ref, translated in zip(refs, translations):
        apply_translation(content, ref, translated)
