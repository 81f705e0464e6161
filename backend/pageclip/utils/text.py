"""Text utilities shared by detection, translation and extraction."""

import re

from bs4 import BeautifulSoup

WHITESPACE_PATTERN = re.compile(r"\s+")


def safe_truncate(text: str, max_chars: int, suffix: str = "...") -> str:
    """Truncate text for log previews, preferring a word boundary.

    Args:
        text: Text to truncate
        max_chars: Maximum characters (excluding suffix)
        suffix: Suffix to append if truncated (default "...")

    Returns:
        Truncated text with suffix if needed
    """
    if not text or len(text) <= max_chars:
        return text

    truncated = text[:max_chars]

    # Look back up to 20 characters for a good break point
    break_chars = {" ", "\n", "\t", ",", ".", "!", "?", ";", ":", "-", "。", "，", "、"}
    for i in range(min(20, max_chars - 1), 0, -1):
        if truncated[-i] in break_chars:
            truncated = truncated[:-(i - 1)].rstrip() if i > 1 else truncated.rstrip()
            break

    return truncated + suffix


def strip_html(html: str) -> str:
    """Return the visible text of an HTML fragment with collapsed whitespace."""
    if not html:
        return ""
    if "<" not in html and "&" not in html:
        return WHITESPACE_PATTERN.sub(" ", html).strip()
    text = BeautifulSoup(html, "lxml").get_text(" ")
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def djb2_hash(text: str) -> int:
    """32-bit djb2 string hash, used for content fingerprints."""
    value = 5381
    for ch in text:
        value = ((value << 5) + value + ord(ch)) & 0xFFFFFFFF
    return value
