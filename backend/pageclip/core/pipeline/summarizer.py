"""Abstract (TL;DR) generation."""

import logging
import re
from typing import Optional, Sequence

from ...errors import PipelineError
from ...utils.text import strip_html
from ..language.detector import LANGUAGE_NAMES
from ..llm.models import ModelRequest
from ..llm.providers import ModelProvider
from ..models import ContentItem, ContentType

logger = logging.getLogger(__name__)

ABSTRACT_SYSTEM_PROMPT = """You are an expert at creating concise text summaries. Generate a single paragraph (TL;DR) that captures the essence of the text.

STRICT REQUIREMENTS:
- {language_instruction}
- Identify the most important ideas and theses of the text, find its fundamental essence
- Avoid metadiscourse such as "the author argues", "the article demonstrates", "the study shows"
- Output EXACTLY ONE paragraph with 2-4 sentences
- Convey the ideas directly, without describing how they are presented
- NO line breaks, NO paragraph breaks
- Start immediately with the summary content, no introductory phrases
- Never use quotes or markdown formatting
- Never add explanations, greetings, or meta-commentary
- Output ONLY the summary"""

ABSTRACT_USER_PROMPT = """Article Title: {title}

Article Content:
{text}

Generate the TL;DR:"""

SKIPPED_TYPES = {ContentType.CODE, ContentType.IMAGE}


def build_article_text(content: Sequence[ContentItem]) -> str:
    """Plain text of the article for summarization, without code and images."""
    parts = []
    for item in content:
        if item.type in SKIPPED_TYPES:
            continue
        if item.text:
            text = strip_html(item.text).strip()
            if text:
                parts.append(text + "\n\n")
        if item.items:
            for entry in item.items:
                raw = entry if isinstance(entry, str) else entry.html
                text = strip_html(raw).strip()
                if text:
                    parts.append(text + "\n")
            parts.append("\n")
    return "".join(parts).strip()


def language_instruction(language: Optional[str]) -> str:
    if not language or language == "auto":
        return "Write the abstract in the SAME LANGUAGE as the article content (detect automatically)"
    return f"Write in {LANGUAGE_NAMES.get(language, 'English')}"


class Summarizer:
    """Generates a single-paragraph abstract of the article."""

    def __init__(self, provider: ModelProvider):
        self.provider = provider

    async def generate_abstract(
        self,
        content: Sequence[ContentItem],
        title: str,
        language: Optional[str] = "auto",
    ) -> str:
        """Summarize the article.

        Args:
            content: Article content items
            title: Article title
            language: Language code for the abstract, "auto" for the article's own

        Returns:
            The abstract as one paragraph, or "" when there is nothing to summarize

        Raises:
            PipelineError: Provider failure, handled by the caller
        """
        if not content:
            logger.warning("No content for abstract generation")
            return ""

        text = build_article_text(content)
        if not text:
            logger.warning("No text extracted for abstract generation")
            return ""

        request = ModelRequest(
            system_instruction=ABSTRACT_SYSTEM_PROMPT.format(
                language_instruction=language_instruction(language)
            ),
            user_content=ABSTRACT_USER_PROMPT.format(title=title, text=text),
        )
        try:
            response = await self.provider.complete(request)
        except PipelineError as e:
            logger.warning(f"Abstract generation failed: {e}")
            raise

        abstract = re.sub(r"\s*\n+\s*", " ", response.content.strip())
        abstract = re.sub(r"\s{2,}", " ", abstract).strip()
        logger.info(f"Abstract generated: {len(abstract)} chars")
        return abstract
