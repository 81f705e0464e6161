"""Translation engine.

Translates an ExtractionResult field by field in size-bounded batches. The
engine never replaces good content with garbage: any chunk, item or metadata
field that fails (other than a rejected credential) keeps its original text.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from ...config import settings
from ...errors import CancelledError, is_auth_error
from ...utils.text import safe_truncate
from ..cancellation import CancellationToken
from ..llm.json_parser import ParseStatus, parse_json_response
from ..llm.models import ModelRequest
from ..llm.providers import ModelProvider
from ..models import ExtractionResult, ProcessingStage
from ..retry import RetryPolicy, call_with_retry
from .chunking import apply_translations, build_chunks, collect_translation_refs
from .output_processor import OutputProcessor, clean_author, clean_markup
from .prompts import BATCH_USER_PROMPT, build_batch_prompt, build_single_prompt

logger = logging.getLogger(__name__)

UpdateState = Callable[..., None]

# Progress sub-range owned by the engine
METADATA_PROGRESS = 18
CONTENT_PROGRESS_START = 20
CONTENT_PROGRESS_SPAN = 40


class ErrorLikeTranslationError(Exception):
    """The model answered with an error page marker instead of a translation."""


@dataclass
class TranslationReport:
    """What happened during one ``translate`` call."""

    total_refs: int = 0
    total_chunks: int = 0
    translated_chunks: int = 0
    failed_chunks: List[int] = field(default_factory=list)
    requests: int = 0

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_chunks)


class TranslationEngine:
    """Translates structured content through a model provider.

    Flow:
    1. Title and author, concurrently
    2. Collect translatable fields, skipping code
    3. Pack fields into chunks by character budget
    4. One request per chunk, tolerant parse, per-item fallback
    """

    def __init__(
        self,
        provider: ModelProvider,
        chunk_size: Optional[int] = None,
        output_processor: Optional[OutputProcessor] = None,
        retry_policy: Optional[RetryPolicy] = None,
        title_retry_delays_ms: Sequence[int] = (1000, 2000),
    ):
        """Initialize translation engine.

        Args:
            provider: Model provider used for every request
            chunk_size: Character budget per request
            output_processor: Reply post-processing
            retry_policy: Policy for provider calls (translation delay table by default)
            title_retry_delays_ms: Waits between title retries on error-like replies
        """
        self.provider = provider
        self.chunk_size = chunk_size or settings.translation_chunk_size
        self.output_processor = output_processor or OutputProcessor()
        self.retry_policy = retry_policy or RetryPolicy.for_translation()
        self.title_retry_delays_ms = list(title_retry_delays_ms)
        self.requests = 0

    @property
    def marker(self) -> str:
        return self.output_processor.marker

    async def _complete(self, request: ModelRequest) -> str:
        self.requests += 1
        response = await self.provider.complete(request, self.retry_policy)
        return response.content

    async def translate_text(self, text: str, target_language: str) -> str:
        """Translate a single string.

        Args:
            text: Source text, may contain inline HTML
            target_language: Target language name (e.g. "French")

        Returns:
            The translation, or the original text when the model says no
            translation is needed, the reply looks hallucinated, or the
            call fails.

        Raises:
            AuthenticationError: Credential rejected
        """
        if not text or not text.strip():
            return text

        request = ModelRequest(
            system_instruction=build_single_prompt(target_language, self.marker),
            user_content=clean_markup(text),
        )

        try:
            content = await self._complete(request)
        except Exception as e:
            if is_auth_error(e) or isinstance(e, CancelledError):
                raise
            logger.warning(f"Text translation failed, keeping original: {e}")
            return text

        return self.output_processor.process_single(text, content)

    @staticmethod
    def _extract_translations(value: Any) -> Optional[List[Any]]:
        if isinstance(value, list):
            return value
        if not isinstance(value, dict):
            return None
        translations = value.get("translations")
        if isinstance(translations, list):
            return translations
        # Some models pick their own key name
        for candidate in value.values():
            if isinstance(candidate, list):
                return candidate
        return None

    async def translate_batch(self, texts: Sequence[str], target_language: str) -> List[str]:
        """Translate several strings in one JSON-returning request.

        The result always has the same length as ``texts``; any entry the
        model left out, emptied or marked as already translated keeps its
        original text.

        Raises:
            AuthenticationError: Credential rejected
            TransientProviderError: Provider unavailable after retries
        """
        texts = list(texts)
        if not texts:
            return []
        if len(texts) == 1:
            return [await self.translate_text(texts[0], target_language)]

        payload = json.dumps([clean_markup(t) for t in texts], ensure_ascii=False)
        request = ModelRequest(
            system_instruction=build_batch_prompt(target_language, self.marker, len(texts)),
            user_content=BATCH_USER_PROMPT.format(language=target_language, payload=payload),
            json_response=True,
        )
        content = await self._complete(request)

        parsed = parse_json_response(content)
        if not parsed.ok:
            logger.warning(
                f"Could not parse batch translation ({parsed.error}), keeping originals: "
                f"{safe_truncate(content, 200)!r}"
            )
            return texts
        if parsed.status == ParseStatus.PARTIAL:
            logger.warning(f"Batch translation reply was truncated, repaired with {parsed.repairs}")

        translations = self._extract_translations(parsed.value)
        if translations is None:
            logger.warning("Batch translation reply has no translations array, keeping originals")
            return texts

        if len(translations) != len(texts):
            logger.warning(
                f"Batch translation count mismatch: expected {len(texts)}, got {len(translations)}"
            )
            translations = (list(translations) + [None] * len(texts))[: len(texts)]

        return [
            self.output_processor.process_batch_item(original, translated)
            for original, translated in zip(texts, translations)
        ]

    async def _translate_title(self, title: str, target_language: str) -> str:
        async def attempt() -> str:
            translated = await self.translate_text(title, target_language)
            if translated.strip() == "404" and translated != title:
                raise ErrorLikeTranslationError('Translation returned "404"')
            return translated

        policy = RetryPolicy(
            max_retries=len(self.title_retry_delays_ms),
            delays_ms=self.title_retry_delays_ms,
            should_retry=lambda e: True if isinstance(e, ErrorLikeTranslationError) else None,
            sleep=self.retry_policy.sleep,
        )
        try:
            return await call_with_retry(attempt, policy)
        except ErrorLikeTranslationError as e:
            logger.error(f"Title translation failed after retries, using original: {e}")
            return title

    async def _translate_author(self, author: str, target_language: str) -> str:
        translated = await self.translate_text(author, target_language)
        return clean_author(translated)

    async def translate_metadata(
        self,
        result: ExtractionResult,
        target_language: str,
        update_state: Optional[UpdateState] = None,
    ) -> None:
        """Translate title and author concurrently, in place.

        Anonymous author placeholders are dropped rather than translated.

        Raises:
            AuthenticationError: Credential rejected on either field
        """
        jobs = []
        fields = []

        if result.title and result.title.strip():
            jobs.append(self._translate_title(result.title, target_language))
            fields.append("title")

        if result.author and result.author.strip():
            cleaned = clean_author(result.author)
            if cleaned:
                jobs.append(self._translate_author(cleaned, target_language))
                fields.append("author")
            else:
                result.author = cleaned

        if not jobs:
            return

        if update_state:
            update_state(
                stage=ProcessingStage.TRANSLATING,
                status="Translating metadata...",
                progress=METADATA_PROGRESS,
            )

        outcomes = await asyncio.gather(*jobs, return_exceptions=True)
        for name, outcome in zip(fields, outcomes):
            if isinstance(outcome, BaseException):
                if is_auth_error(outcome) or isinstance(outcome, CancelledError):
                    logger.error(f"Translation stopped: {name} translation failed with {outcome}")
                    raise outcome
                logger.warning(f"{name.capitalize()} translation failed, using original: {outcome}")
                continue
            setattr(result, name, outcome)

    async def translate(
        self,
        result: ExtractionResult,
        target_language: str,
        update_state: Optional[UpdateState] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TranslationReport:
        """Translate a whole extraction result in place.

        Args:
            result: Extracted document, rewritten in place
            target_language: Target language name
            update_state: Progress callback (stage/status/progress keywords)
            cancel_token: Checked before each chunk

        Returns:
            TranslationReport describing chunk outcomes

        Raises:
            AuthenticationError: Credential rejected; the run must stop
            CancelledError: Cancellation requested between chunks
        """
        report = TranslationReport()
        if not result.content:
            return report

        requests_before = self.requests

        if cancel_token:
            cancel_token.raise_if_cancelled("metadata translation")
        await self.translate_metadata(result, target_language, update_state)

        refs = collect_translation_refs(result.content)
        report.total_refs = len(refs)
        if not refs:
            logger.info("No text items found to translate")
            report.requests = self.requests - requests_before
            return report

        chunks = build_chunks(refs, self.chunk_size)
        report.total_chunks = len(chunks)
        weights = [chunk.size for chunk in chunks]
        total_weight = sum(weights) or 1
        completed_weight = 0

        logger.info(
            f"Translating {len(refs)} text items in {len(chunks)} chunks "
            f"(budget {self.chunk_size} chars) to {target_language}"
        )

        for i, chunk in enumerate(chunks):
            if cancel_token:
                cancel_token.raise_if_cancelled(f"translation chunk {i + 1}/{len(chunks)}")

            if update_state:
                progress = CONTENT_PROGRESS_START + int(
                    completed_weight / total_weight * CONTENT_PROGRESS_SPAN
                )
                update_state(
                    stage=ProcessingStage.TRANSLATING,
                    status=f"Translating {i + 1}/{len(chunks)}...",
                    progress=progress,
                )

            try:
                translated = await self.translate_batch(chunk.texts, target_language)
                apply_translations(result.content, chunk.refs, translated)
                report.translated_chunks += 1
                if translated == chunk.texts:
                    logger.warning(f"Chunk {i + 1} returned original texts")
            except Exception as e:
                if is_auth_error(e) or isinstance(e, CancelledError):
                    raise
                logger.warning(f"Chunk {i + 1}/{len(chunks)} translation failed, keeping originals: {e}")
                report.failed_chunks.append(i)

            completed_weight += weights[i]

        if update_state:
            update_state(
                stage=ProcessingStage.TRANSLATING,
                status="Translation complete",
                progress=CONTENT_PROGRESS_START + CONTENT_PROGRESS_SPAN,
            )

        report.requests = self.requests - requests_before
        logger.info(
            f"Translation finished: {report.translated_chunks}/{report.total_chunks} chunks, "
            f"{len(report.failed_chunks)} failed"
        )
        return report
