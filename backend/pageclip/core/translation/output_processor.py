"""Output processor for translation results.

This module cleans raw model output and decides whether a translation can be
trusted, falling back to the source text whenever it cannot.
"""

import logging
import re
from typing import Optional

from ...config import settings
from ...utils.text import safe_truncate

logger = logging.getLogger(__name__)

ANONYMOUS_AUTHOR_VARIANTS = {
    "anonymous",
    "(anonymous)",
    "анонимный",
    "(анонимный)",
    "анонімний",
    "(анонімний)",
    "анонім",
    "anonym",
    "(anonym)",
    "anonyme",
    "(anonyme)",
    "anónimo",
    "(anónimo)",
    "anonimo",
    "(anonimo)",
    "anônimo",
    "(anônimo)",
    "匿名",
    "(匿名)",
    "익명",
    "(익명)",
}

ID_QUOTED_PATTERN = re.compile(r"""\s+id\s*=\s*["'][^"']*["']""", re.IGNORECASE)
ID_BARE_PATTERN = re.compile(r"""\s+id\s*=\s*[^\s>]+""", re.IGNORECASE)
EMPTY_TECH_SPAN_PATTERN = re.compile(
    r"""<span\s+[^>]*class\s*=\s*["'][^"']*blockquote_[^"']*["'][^>]*>\s*</span>""",
    re.IGNORECASE,
)
TECH_CLASS_PATTERN = re.compile(
    r"""\s+class\s*=\s*["']([^"']*blockquote_[^"']*)["']""", re.IGNORECASE
)
TECH_SPAN_PATTERN = re.compile(
    r"""<span\s+class\s*=\s*["']blockquote_[^"']*["'][^>]*>([^<]*)</span>""",
    re.IGNORECASE,
)
SENTENCE_END_PATTERN = re.compile(r"[.!?]")


def is_anonymous_author(author: Optional[str]) -> bool:
    """Whether an author value is empty or an 'anonymous' placeholder."""
    if not author or not author.strip():
        return True
    return author.strip().lower() in ANONYMOUS_AUTHOR_VARIANTS


def clean_author(author: Optional[str]) -> str:
    """Return the trimmed author, or empty string for anonymous placeholders."""
    if is_anonymous_author(author):
        return ""
    return author.strip()


def _drop_technical_classes(match: re.Match) -> str:
    classes = [c for c in match.group(1).split() if not c.startswith("blockquote_")]
    return f' class="{" ".join(classes)}"' if classes else ""


def clean_markup(text: str) -> str:
    """Strip id attributes and styling-only ``blockquote_*`` classes.

    They carry no content and their random suffixes confuse models.
    """
    if not text or "<" not in text:
        return text
    cleaned = ID_QUOTED_PATTERN.sub("", text)
    cleaned = ID_BARE_PATTERN.sub("", cleaned)
    cleaned = EMPTY_TECH_SPAN_PATTERN.sub("", cleaned)
    cleaned = TECH_CLASS_PATTERN.sub(_drop_technical_classes, cleaned)
    cleaned = TECH_SPAN_PATTERN.sub(r"\1", cleaned)
    return cleaned


class OutputProcessor:
    """Turns raw model replies into safe translations.

    Responsibilities:
    1. Extract the translation text from fenced replies
    2. Recognise the "no translation needed" marker
    3. Guard short texts against hallucinated expansions
    4. Remove markup noise the model echoed back
    """

    def __init__(
        self,
        marker: Optional[str] = None,
        hallucination_ratio: Optional[float] = None,
        short_text_limit: Optional[int] = None,
    ):
        self.marker = marker or settings.no_translation_marker
        self.hallucination_ratio = hallucination_ratio or settings.hallucination_ratio
        self.short_text_limit = short_text_limit or settings.hallucination_max_length

    def is_marker(self, text: Optional[str]) -> bool:
        """Whether the model said the text needs no translation."""
        return text is not None and text.strip() == self.marker

    def extract_text(self, content: str) -> str:
        """Extract translation text from a reply, dropping code fences."""
        content = content.strip()
        if content.startswith("```"):
            lines = content.split("\n")
            if len(lines) >= 3 and lines[-1].strip().startswith("```"):
                content = "\n".join(lines[1:-1])
        return content.strip()

    def guard_hallucination(self, original: str, translated: str) -> str:
        """Reject a short-text translation that ballooned in length.

        Titles and short phrases should translate to something of similar
        size. When the reply is more than ``hallucination_ratio`` times the
        original, the shorter of its first line and first sentence is kept
        if that lands within 0.5x-2x of the original; otherwise the original
        text is returned.
        """
        is_short = len(original) < self.short_text_limit and "\n" not in original
        if not is_short or len(translated) <= len(original) * self.hallucination_ratio:
            return translated

        logger.warning(
            f"Translation suspiciously long for a short phrase "
            f"({len(translated)} vs {len(original)} chars): "
            f"{safe_truncate(translated, 100)!r}"
        )

        first_line = translated.split("\n")[0].strip()
        first_sentence = SENTENCE_END_PATTERN.split(translated)[0].strip()
        candidate = first_line if len(first_line) < len(first_sentence) else first_sentence

        if len(original) * 0.5 <= len(candidate) <= len(original) * 2:
            logger.info(f"Using first line/sentence as translation: {candidate!r}")
            return candidate

        logger.warning("Could not salvage translation, keeping original text")
        return original

    def process_single(self, original: str, content: str) -> str:
        """Process the reply to a single-text translation request."""
        translated = self.extract_text(content)
        if not translated or self.is_marker(translated):
            return original
        translated = self.guard_hallucination(original, translated)
        return clean_markup(translated)

    def process_batch_item(self, original: str, translated: Optional[str]) -> str:
        """Process one entry of a batch reply; bad entries keep the original."""
        if not isinstance(translated, str) or not translated.strip() or self.is_marker(translated):
            return original
        return clean_markup(translated)
