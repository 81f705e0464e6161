"""HTML utilities for model-assisted extraction."""

import logging
import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup, Comment, NavigableString

from ...config import settings
from ...utils.text import djb2_hash
from ..models import ContentItem, ContentType

logger = logging.getLogger(__name__)

LONG_TEXT_THRESHOLD = 300
STRUCTURE_TAG_PATTERN = re.compile(
    r"""<(article|section|main|div)[^>]*(?:id|class)="[^"]*(?:chapter|section|part|content)[^"]*"[^>]*>""",
    re.IGNORECASE,
)
CHUNK_TAG_BREAKS = ("</p>", "</div>", "</section>", "</article>")

# Items that carry no text and must never be collapsed by deduplication
STRUCTURAL_TYPES = {ContentType.SEPARATOR, ContentType.INFOBOX_START, ContentType.INFOBOX_END}


def trim_html_for_analysis(html: str, max_length: Optional[int] = None) -> str:
    """Reduce page markup to its structure for selector discovery.

    Script, style and SVG bodies are emptied, comments removed and long text
    runs shortened, so the model sees the DOM shape rather than the prose.
    If the result is still too long it is truncated, with a summary of the
    structural containers appended so the model still sees the whole layout.

    Args:
        html: Full page markup
        max_length: Maximum characters to return

    Returns:
        Trimmed markup
    """
    max_length = max_length or settings.max_html_for_analysis
    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")

    for tag in soup(["script", "style", "svg"]):
        tag.clear()

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for text_node in soup.find_all(string=True):
        if type(text_node) is not NavigableString or len(text_node) < LONG_TEXT_THRESHOLD:
            continue
        text_node.replace_with(
            f"{text_node[:100]}... [content trimmed] ...{text_node[-50:]}"
        )

    trimmed = str(soup)

    if len(trimmed) > max_length:
        structure_tags = STRUCTURE_TAG_PATTERN.finditer(trimmed)
        examples = [m.group(0) for m in structure_tags]
        summary = ""
        if len(examples) > 2:
            summary = (
                f"\n\n<!-- PAGE STRUCTURE SUMMARY: Found {len(examples)} structural elements. "
                f"Examples: {', '.join(examples[:5])}{'...' if len(examples) > 5 else ''} -->"
            )
        trimmed = trimmed[: max(0, max_length - len(summary))] + summary + "\n... [truncated for analysis]"

    logger.debug(f"Trimmed HTML for analysis: {len(html)} -> {len(trimmed)} chars")
    return trimmed


def split_html_into_chunks(
    html: str,
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
) -> List[str]:
    """Split markup into overlapping chunks, breaking at tag boundaries.

    A chunk ends at the last ``>`` within 5,000 characters of its nominal
    end, else at the last closing block tag within 10,000, else at the
    nominal end. The next chunk starts ``overlap`` characters earlier.
    """
    chunk_size = chunk_size or settings.chunk_size
    overlap = settings.chunk_overlap if overlap is None else overlap

    if len(html) <= chunk_size:
        return [html]

    chunks: List[str] = []
    position = 0

    while position < len(html):
        end = position + chunk_size
        if end >= len(html):
            chunks.append(html[position:])
            break

        break_point = html.rfind(">", position, end + 1)
        if break_point > max(position, end - 5000):
            end = break_point + 1
        else:
            for tag in CHUNK_TAG_BREAKS:
                tag_pos = html.rfind(tag, position, end + len(tag))
                if tag_pos > max(position, end - 10000):
                    end = tag_pos + len(tag)
                    break

        chunks.append(html[position:end])
        next_position = end - overlap
        position = next_position if next_position > position else end

    return chunks


def content_fingerprint(item: ContentItem) -> Optional[str]:
    """Key identifying an item by type, length and hash of its main payload.

    Returns None for items with no comparable payload.
    """
    if item.items:
        list_sample = "|".join(entry if isinstance(entry, str) else entry.html for entry in item.items)
    else:
        list_sample = ""
    if item.headers or item.rows:
        rows = [item.headers or []] + list(item.rows or [])
        table_sample = "\n".join("|".join(cells) for cells in rows)
    else:
        table_sample = ""
    sample = (
        (item.text or "").strip()
        or (item.html or "").strip()
        or (item.src or "")
        or list_sample
        or table_sample
    )
    if not sample:
        return None
    return f"{item.type.value}:{len(sample)}:{djb2_hash(sample):08x}"


def deduplicate_content(content: Sequence[ContentItem]) -> List[ContentItem]:
    """Drop repeated items, typically produced by overlapping chunks."""
    result: List[ContentItem] = []
    seen = set()

    for item in content:
        if item.type in STRUCTURAL_TYPES:
            result.append(item)
            continue
        key = content_fingerprint(item)
        if key is None:
            result.append(item)
            continue
        if key in seen:
            continue
        seen.add(key)
        result.append(item)

    if len(result) != len(content):
        logger.info(f"Removed {len(content) - len(result)} duplicate content items")
    return result
