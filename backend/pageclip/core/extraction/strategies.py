"""Extraction strategy selection.

Turns a page into an ExtractionResult. Article pages go through the
configured mode with fallbacks, in order of preference:

1. Cached selectors for the domain
2. Selectors discovered by the model
3. Full-document extraction by the model (chunked for large pages)
4. DOM heuristics inside the page

PDF documents and video pages bypass selector extraction entirely.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...config import settings
from ...errors import (
    AuthenticationError,
    CancelledError,
    ExtractionEmptyError,
    ParseError,
    PipelineError,
    TabClosedError,
    ValidationError,
)
from ..cancellation import CancellationToken
from ..language.detector import collect_text, detect_language_by_characters
from ..llm.json_parser import ParseStatus, parse_json_response
from ..llm.models import ModelRequest
from ..llm.providers import ModelProvider, create_provider, uses_small_context
from ..models import (
    ContentItem,
    ExtractionMode,
    ExtractionResult,
    ProcessingData,
    ProcessingStage,
    SelectorSet,
)
from ..translation.output_processor import clean_author
from .html_utils import deduplicate_content, split_html_into_chunks, trim_html_for_analysis
from .page_type import PageType, PdfInfo, VideoInfo, detect_pdf_page, detect_video_platform
from .prompts import (
    EXTRACT_SYSTEM_PROMPT,
    SELECTOR_SYSTEM_PROMPT,
    SUBTITLE_SYSTEM_PROMPT,
    build_chunk_system_prompt,
    build_chunk_user_prompt,
    build_extract_user_prompt,
    build_selector_user_prompt,
    build_subtitle_user_prompt,
)
from .selector_cache import SelectorCache

logger = logging.getLogger(__name__)

UpdateState = Callable[..., None]
ProviderFactory = Callable[[str, Optional[str]], ModelProvider]

# Characters inspected for the offline language guess on heuristic results
HEURISTIC_LANGUAGE_SAMPLE = 5000


def _noop_update(**kwargs: Any) -> None:
    pass


class PageExtraction(BaseModel):
    """What the page-context extractor hands back."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    author: str = ""
    publish_date: str = Field(default="", alias="publishDate")
    content: List[ContentItem] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("title", "author", "publish_date", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class VideoTranscript(BaseModel):
    """Subtitles and metadata of a video page."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    author: str = ""
    publish_date: str = Field(default="", alias="publishDate")
    segments: List[str] = Field(default_factory=list)


class PageExtractor(ABC):
    """Runs inside the live page and reads its DOM."""

    @abstractmethod
    async def extract(
        self, data: ProcessingData, selectors: Optional[SelectorSet] = None
    ) -> PageExtraction:
        """Extract article content from the page.

        Args:
            data: Run input identifying the page (url, tab_id)
            selectors: Selector recipe, or None for heuristic extraction

        Returns:
            PageExtraction with content, or with ``error`` set
        """
        pass


class PdfExtractor(ABC):
    """Reads PDF source documents."""

    @abstractmethod
    async def extract(self, pdf_url: str, data: ProcessingData) -> ExtractionResult:
        pass

    async def resolve_url(self, data: ProcessingData) -> Optional[str]:
        """Recover the file URL when the page is the browser's PDF viewer."""
        return None


class VideoTranscriptSource(ABC):
    """Fetches subtitles for supported video platforms."""

    @abstractmethod
    async def get_transcript(self, video: VideoInfo, data: ProcessingData) -> VideoTranscript:
        pass


def _content_items(raw: Any) -> List[ContentItem]:
    """Validate model-produced content items, dropping malformed ones."""
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(ContentItem.model_validate(entry))
        except pydantic.ValidationError as e:
            logger.debug(f"Skipping malformed content item: {e}")
    return items


def _pack_segments(segments: Sequence[str], budget: int) -> List[str]:
    """Join subtitle segments into groups of at most ``budget`` characters."""
    groups: List[str] = []
    current: List[str] = []
    size = 0
    for segment in segments:
        segment = segment.strip()
        if not segment:
            continue
        if current and size + len(segment) > budget:
            groups.append("\n".join(current))
            current = []
            size = 0
        current.append(segment)
        size += len(segment) + 1
    if current:
        groups.append("\n".join(current))
    return groups


class ExtractionStrategySelector:
    """Chooses and runs extraction strategies for one page."""

    def __init__(
        self,
        page_extractor: Optional[PageExtractor] = None,
        cache: Optional[SelectorCache] = None,
        provider_factory: ProviderFactory = create_provider,
        pdf_extractor: Optional[PdfExtractor] = None,
        video_source: Optional[VideoTranscriptSource] = None,
        extraction_timeout: Optional[float] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize strategy selector.

        Args:
            page_extractor: Page-context collaborator for selector and heuristic modes
            cache: Per-domain selector cache
            provider_factory: Builds a ModelProvider from (model, api_key)
            pdf_extractor: Collaborator for PDF documents
            video_source: Collaborator for video subtitles
            extraction_timeout: Seconds allowed for one page-context call
            chunk_size: HTML characters per model extraction chunk
            chunk_overlap: Characters shared between neighbouring chunks
        """
        self.page_extractor = page_extractor
        self.cache = cache if cache is not None else SelectorCache()
        self.provider_factory = provider_factory
        self.pdf_extractor = pdf_extractor
        self.video_source = video_source
        self.extraction_timeout = extraction_timeout or settings.extraction_timeout_seconds
        self.chunk_size = chunk_size or settings.chunk_size
        self.chunk_overlap = settings.chunk_overlap if chunk_overlap is None else chunk_overlap

    def _provider(self, data: ProcessingData) -> ModelProvider:
        return self.provider_factory(data.model, data.api_key)

    async def extract(
        self,
        data: ProcessingData,
        cancel_token: Optional[CancellationToken] = None,
        update_state: Optional[UpdateState] = None,
        page_type: Optional[PageType] = None,
    ) -> ExtractionResult:
        """Extract the document behind ``data``.

        Args:
            data: Run input
            cancel_token: Checked before every remote call
            update_state: Progress callback (stage/status/progress keywords)
            page_type: Already detected page type, detected here if None

        Returns:
            ExtractionResult with at least one content item

        Raises:
            ValidationError: Missing HTML, credential or collaborator
            AuthenticationError: Credential rejected
            ExtractionEmptyError: Every strategy produced nothing
            TabClosedError: The page context went away
            CancelledError: Cancellation requested
        """
        token = cancel_token or CancellationToken()
        update = update_state or _noop_update

        if page_type is None or page_type == PageType.PDF:
            pdf = detect_pdf_page(data.url, data.tab_url)
            if pdf is not None:
                return await self.extract_pdf(data, pdf, token, update)
        if page_type is None or page_type == PageType.VIDEO:
            video = detect_video_platform(data.url)
            if video is not None:
                return await self.extract_video(data, video, token, update)

        return await self.extract_article(data, token, update)

    def _plan(self, data: ProcessingData) -> List[Tuple[str, Callable[..., Awaitable[ExtractionResult]]]]:
        heuristic = ("automatic", self.extract_automatic)
        if data.mode == ExtractionMode.AUTOMATIC:
            return [heuristic]

        plan = []
        if data.mode == ExtractionMode.SELECTOR and self.page_extractor is not None:
            plan.append(("selector", self.extract_with_selectors))
        plan.append(("ai_extract", self.extract_with_ai))
        if self.page_extractor is not None:
            plan.append(heuristic)
        return plan

    async def extract_article(
        self,
        data: ProcessingData,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        """Run the strategies for the configured mode until one yields content.

        Authentication, validation and cancellation stop the chain; other
        pipeline failures move on to the next strategy.
        """
        plan = self._plan(data)
        errors: List[PipelineError] = []

        for name, strategy in plan:
            cancel_token.raise_if_cancelled(f"{name} extraction")
            try:
                result = await strategy(data, cancel_token, update_state)
            except (AuthenticationError, ValidationError, CancelledError):
                raise
            except PipelineError as e:
                logger.warning(f"Extraction strategy '{name}' failed: {e}")
                errors.append(e)
                continue

            if errors:
                logger.info(f"Extraction succeeded with fallback strategy '{name}'")
            return result

        for error in errors:
            if isinstance(error, TabClosedError):
                raise error
        if errors:
            raise errors[-1]
        raise ExtractionEmptyError("No extraction strategy produced content")

    async def _run_page_extractor(
        self, data: ProcessingData, selectors: Optional[SelectorSet]
    ) -> PageExtraction:
        if self.page_extractor is None:
            raise ValidationError("Page extractor is not available")

        try:
            page = await asyncio.wait_for(
                self.page_extractor.extract(data, selectors),
                timeout=self.extraction_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TabClosedError(
                f"Page extraction timed out after {self.extraction_timeout}s. "
                f"The tab may have been closed."
            ) from e
        except PipelineError:
            raise
        except Exception as e:
            raise TabClosedError(f"Page context is no longer available: {e}") from e

        if page.error:
            raise ExtractionEmptyError(f"Page extraction failed: {page.error}")
        return page

    async def extract_automatic(
        self,
        data: ProcessingData,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        """Heuristic extraction inside the page, no model involved."""
        cancel_token.raise_if_cancelled("automatic extraction")
        update_state(
            stage=ProcessingStage.EXTRACTING,
            status="Extracting content...",
            progress=5,
        )

        page = await self._run_page_extractor(data, None)
        if not page.content:
            raise ExtractionEmptyError("No content found on the page")

        language = detect_language_by_characters(
            collect_text(page.content, limit=HEURISTIC_LANGUAGE_SAMPLE)
        )
        logger.info(f"Automatic extraction: {len(page.content)} items, language={language}")
        update_state(stage=ProcessingStage.EXTRACTING, status="Content extracted", progress=15)

        return ExtractionResult(
            title=page.title or data.title or "Untitled",
            author=clean_author(page.author),
            publish_date=page.publish_date,
            content=page.content,
            detected_language=language,
        )

    async def get_selectors_from_ai(
        self, data: ProcessingData, provider: ModelProvider
    ) -> SelectorSet:
        """Ask the model for a selector recipe.

        Raises:
            ParseError: The reply is not a selector object
            ExtractionEmptyError: The recipe names neither content nor container
        """
        max_length = (
            settings.max_html_for_analysis_small
            if uses_small_context(data.model)
            else settings.max_html_for_analysis
        )
        trimmed = trim_html_for_analysis(data.html or "", max_length)
        logger.info(f"Requesting selectors: html={len(data.html or '')} -> {len(trimmed)} chars")

        response = await provider.complete(
            ModelRequest(
                system_instruction=SELECTOR_SYSTEM_PROMPT,
                user_content=build_selector_user_prompt(trimmed, data.url, data.title),
                json_response=True,
            )
        )

        parsed = parse_json_response(response.content)
        if not parsed.ok or not isinstance(parsed.value, dict):
            raise ParseError(f"Selector analysis failed: {parsed.error or 'reply is not an object'}")

        try:
            selectors = SelectorSet.model_validate(parsed.value)
        except pydantic.ValidationError as e:
            raise ParseError(f"Selector analysis failed: {e}") from e

        if not selectors.is_usable:
            raise ExtractionEmptyError("Selector analysis returned no content selector")
        return selectors

    async def _apply_selectors(
        self,
        data: ProcessingData,
        selectors: SelectorSet,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        cancel_token.raise_if_cancelled("selector extraction")
        update_state(
            stage=ProcessingStage.EXTRACTING,
            status="Extracting content...",
            progress=5,
        )

        page = await self._run_page_extractor(data, selectors)
        if not page.content:
            raise ExtractionEmptyError("No content found with the selected selectors")

        return ExtractionResult(
            title=page.title or data.title,
            author=clean_author(page.author or selectors.author),
            publish_date=selectors.publish_date or page.publish_date,
            content=page.content,
            detected_language=selectors.detected_language,
        )

    async def extract_with_selectors(
        self,
        data: ProcessingData,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        """Selector mode: cached recipe first, model-discovered recipe second.

        A cached recipe that fails is invalidated and rediscovered in the
        same run; a discovered recipe that works is cached.
        """
        if not data.html:
            raise ValidationError("No HTML content provided")
        if self.page_extractor is None:
            raise ValidationError("Page extractor is not available")

        cached = self.cache.get(data.url) if data.use_cache else None
        if cached is not None:
            update_state(
                stage=ProcessingStage.ANALYZING,
                status="Using cached selectors...",
                progress=3,
            )
            try:
                result = await self._apply_selectors(data, cached, cancel_token, update_state)
            except (AuthenticationError, CancelledError, TabClosedError):
                raise
            except PipelineError as e:
                logger.warning(f"Cached selectors failed for {data.url}, rediscovering: {e}")
                self.cache.invalidate(data.url)
            else:
                self.cache.mark_success(data.url)
                update_state(stage=ProcessingStage.EXTRACTING, status="Content extracted", progress=8)
                return result

        provider = self._provider(data)
        cancel_token.raise_if_cancelled("selector analysis")
        update_state(
            stage=ProcessingStage.ANALYZING,
            status="Analyzing page structure...",
            progress=3,
        )
        selectors = await self.get_selectors_from_ai(data, provider)

        result = await self._apply_selectors(data, selectors, cancel_token, update_state)
        if data.use_cache:
            self.cache.put(data.url, selectors)
        update_state(stage=ProcessingStage.EXTRACTING, status="Content extracted", progress=8)
        return result

    async def _extract_json(
        self, provider: ModelProvider, system_instruction: str, user_content: str
    ) -> Dict[str, Any]:
        response = await provider.complete(
            ModelRequest(
                system_instruction=system_instruction,
                user_content=user_content,
                json_response=True,
            )
        )
        parsed = parse_json_response(response.content)
        if not parsed.ok or not isinstance(parsed.value, dict):
            raise ParseError(f"Invalid extraction reply: {parsed.error or 'reply is not an object'}")
        if parsed.status == ParseStatus.PARTIAL:
            logger.warning(f"Extraction reply was truncated, recovered: {', '.join(parsed.repairs)}")
        return parsed.value

    async def extract_with_ai(
        self,
        data: ProcessingData,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        """Extract mode: the model returns the content itself.

        Large pages are split into overlapping chunks; title and date come
        from the first chunk and the overlap is removed by deduplication.
        A failing chunk is skipped unless the credential was rejected.
        """
        if not data.html:
            raise ValidationError("No HTML content provided")
        provider = self._provider(data)

        cancel_token.raise_if_cancelled("AI extraction")
        update_state(
            stage=ProcessingStage.EXTRACTING,
            status="Analyzing page...",
            progress=5,
        )

        chunks = split_html_into_chunks(data.html, self.chunk_size, self.chunk_overlap)
        update_state(
            stage=ProcessingStage.EXTRACTING,
            status=f"Extracting content ({len(chunks)} parts)...",
            progress=10,
        )

        title = ""
        author = ""
        publish_date = ""
        content: List[ContentItem] = []

        if len(chunks) == 1:
            value = await self._extract_json(
                provider,
                EXTRACT_SYSTEM_PROMPT,
                build_extract_user_prompt(chunks[0], data.url, data.title),
            )
            title = value.get("title") or ""
            author = value.get("author") or ""
            publish_date = value.get("publishDate") or ""
            content = _content_items(value.get("content"))
        else:
            logger.info(f"Extracting {len(chunks)} HTML chunks")
            for i, chunk in enumerate(chunks):
                cancel_token.raise_if_cancelled(f"extraction chunk {i + 1}/{len(chunks)}")
                update_state(
                    stage=ProcessingStage.EXTRACTING,
                    status=f"Extracting part {i + 1}/{len(chunks)}...",
                    progress=10 + int(i / len(chunks) * 5),
                )
                try:
                    value = await self._extract_json(
                        provider,
                        build_chunk_system_prompt(i, len(chunks)),
                        build_chunk_user_prompt(chunk, data.url, data.title, i, len(chunks)),
                    )
                except AuthenticationError:
                    raise
                except PipelineError as e:
                    logger.warning(f"Extraction chunk {i + 1}/{len(chunks)} failed, skipping: {e}")
                    continue

                if i == 0:
                    title = value.get("title") or ""
                    author = value.get("author") or ""
                    publish_date = value.get("publishDate") or ""
                content.extend(_content_items(value.get("content")))

            before = len(content)
            content = deduplicate_content(content)
            if before != len(content):
                logger.info(f"Removed {before - len(content)} duplicate items from chunk overlap")

        if not content:
            raise ExtractionEmptyError("AI extraction returned no content")

        update_state(stage=ProcessingStage.EXTRACTING, status="Content extracted", progress=15)
        return ExtractionResult(
            title=str(title) or data.title or "Untitled",
            author=clean_author(str(author)),
            publish_date=str(publish_date),
            content=content,
        )

    async def extract_pdf(
        self,
        data: ProcessingData,
        pdf: PdfInfo,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        """PDF documents go straight to the PDF collaborator."""
        if self.pdf_extractor is None:
            raise ValidationError("PDF extraction is not available")

        pdf_url = pdf.original_url
        if not pdf_url:
            pdf_url = await self.pdf_extractor.resolve_url(data)
        if not pdf_url:
            raise ValidationError("Could not determine PDF file URL")

        cancel_token.raise_if_cancelled("PDF extraction")
        update_state(
            stage=ProcessingStage.EXTRACTING,
            status="Extracting PDF content...",
            progress=5,
        )
        logger.info(f"Processing PDF document: {pdf_url}")

        result = await self.pdf_extractor.extract(pdf_url, data)
        if not result.content:
            raise ExtractionEmptyError("No content extracted from PDF")
        if not result.title:
            result.title = data.title or "Untitled"

        update_state(stage=ProcessingStage.EXTRACTING, status="PDF content extracted", progress=15)
        return result

    async def extract_video(
        self,
        data: ProcessingData,
        video: VideoInfo,
        cancel_token: CancellationToken,
        update_state: UpdateState,
    ) -> ExtractionResult:
        """Video pages: fetch subtitles, then let the model shape them into an article."""
        if self.video_source is None:
            raise ValidationError("Video subtitles are not available")
        provider = self._provider(data)

        cancel_token.raise_if_cancelled("subtitle extraction")
        update_state(
            stage=ProcessingStage.EXTRACTING,
            status=f"Loading {video.platform} subtitles...",
            progress=5,
        )
        logger.info(f"Processing {video.platform} video {video.video_id}")

        transcript = await self.video_source.get_transcript(video, data)
        groups = _pack_segments(transcript.segments, self.chunk_size)
        if not groups:
            raise ExtractionEmptyError(f"No subtitles found for {video.platform} video {video.video_id}")

        update_state(stage=ProcessingStage.EXTRACTING, status="Subtitles loaded", progress=15)

        title = transcript.title or data.title or "Untitled"
        content: List[ContentItem] = []
        for i, group in enumerate(groups):
            cancel_token.raise_if_cancelled(f"subtitle part {i + 1}/{len(groups)}")
            update_state(
                stage=ProcessingStage.EXTRACTING,
                status=f"Processing subtitles {i + 1}/{len(groups)}...",
                progress=15 + int(i / len(groups) * 25),
            )
            value = await self._extract_json(
                provider, SUBTITLE_SYSTEM_PROMPT, build_subtitle_user_prompt(title, group)
            )
            content.extend(_content_items(value.get("content")))

        if not content:
            raise ExtractionEmptyError("Subtitle processing returned no content")

        update_state(stage=ProcessingStage.EXTRACTING, status="Subtitles processed", progress=40)
        return ExtractionResult(
            title=title,
            author=clean_author(transcript.author),
            publish_date=transcript.publish_date,
            content=content,
        )
