"""Pipeline orchestrator.

Sequences page-type detection, extraction, translation, summarization and
document generation for one run at a time, reporting progress through the
ProcessingStateManager and honouring cooperative cancellation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Union

import pydantic

from ...errors import (
    AuthenticationError,
    CancelledError,
    ErrorCode,
    PipelineError,
    ValidationError,
    classify_exception,
    is_auth_error,
)
from ..cancellation import CancellationToken
from ..extraction.page_type import detect_page_type
from ..extraction.strategies import ExtractionStrategySelector
from ..language.detector import LANGUAGE_NAMES, LanguageDetector
from ..llm.providers import ModelProvider, create_provider
from ..models import (
    ExtractionResult,
    OutputFormat,
    ProcessingData,
    ProcessingStage,
    ProcessingState,
    RunStatus,
)
from ..retry import RetryPolicy
from ..translation.engine import TranslationEngine, TranslationReport
from .state import ProcessingStateManager
from .summarizer import Summarizer

logger = logging.getLogger(__name__)

UpdateState = Callable[..., None]
ProviderFactory = Callable[[str, Optional[str]], ModelProvider]

TRANSLATION_DONE_PROGRESS = 60
ABSTRACT_PROGRESS = 62
GENERATION_PROGRESS = 65


class DocumentGenerator(ABC):
    """Renders the final document (PDF, EPUB, FB2, Markdown or audio)."""

    @abstractmethod
    async def generate(
        self,
        output_format: OutputFormat,
        data: ProcessingData,
        result: ExtractionResult,
        update_state: UpdateState,
        language: str = "en",
    ) -> Any:
        """Generate the output artifact.

        Args:
            output_format: Requested format
            data: Run input
            result: Final, possibly translated, content
            update_state: Progress callback for the 65..100 range
            language: Language of the document being generated

        Returns:
            The generated artifact
        """
        pass


class PipelineOrchestrator:
    """Caller-facing control surface: ``start``, ``get_state`` and ``cancel``.

    Only one run is active at a time; ``start`` rejects new runs until the
    current one reaches DONE, ERROR or CANCELLED.
    """

    def __init__(
        self,
        generator: DocumentGenerator,
        strategy_selector: Optional[ExtractionStrategySelector] = None,
        provider_factory: ProviderFactory = create_provider,
        state_manager: Optional[ProcessingStateManager] = None,
        translation_chunk_size: Optional[int] = None,
        translation_retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize orchestrator.

        Args:
            generator: Document generator collaborator
            strategy_selector: Extraction strategies, built with defaults if None
            provider_factory: Builds a ModelProvider from (model, api_key)
            state_manager: State owner, shared with observers
            translation_chunk_size: Character budget per translation request
            translation_retry_policy: Retry policy for translation calls
        """
        self.generator = generator
        self.provider_factory = provider_factory
        self.strategy_selector = strategy_selector or ExtractionStrategySelector(
            provider_factory=provider_factory
        )
        self.state_manager = state_manager or ProcessingStateManager()
        self.translation_chunk_size = translation_chunk_size
        self.translation_retry_policy = translation_retry_policy
        self.translation_report: Optional[TranslationReport] = None
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    @staticmethod
    def _validate(data: Union[ProcessingData, Dict[str, Any]]) -> ProcessingData:
        if isinstance(data, ProcessingData):
            return data
        try:
            return ProcessingData.model_validate(data)
        except pydantic.ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid processing data: {errors}") from e

    def start(self, data: Union[ProcessingData, Dict[str, Any]]) -> bool:
        """Schedule a run on the running event loop.

        Args:
            data: Run input, as a model or a camelCase/snake_case dict

        Returns:
            True if the run was accepted; False if another run is active or
            the input is invalid (the state then records the validation error)

        Raises:
            RuntimeError: Called outside a running event loop
        """
        loop = asyncio.get_running_loop()
        if self.state_manager.is_processing:
            logger.warning("Run rejected: processing already in progress")
            return False

        try:
            data = self._validate(data)
        except ValidationError as e:
            self.state_manager.start()
            self.state_manager.set_error(str(e), e.code)
            return False

        self.state_manager.start()
        self._token = CancellationToken()
        self.translation_report = None
        logger.info(
            f"Starting processing: url={data.url}, mode={data.mode.value}, model={data.model}, "
            f"format={data.output_format.value}, language={data.target_language}"
        )
        self._task = loop.create_task(self._run(data, self._token))
        return True

    def get_state(self) -> ProcessingState:
        return self.state_manager.snapshot()

    def cancel(self) -> bool:
        """Request cancellation of the active run.

        The run unwinds at its next checkpoint; an in-flight provider call is
        allowed to finish and its result is discarded.

        Returns:
            False if nothing is running
        """
        if self._token is None or not self.state_manager.is_processing:
            return False
        logger.info("Cancellation requested")
        self._token.cancel()
        self.state_manager.state.is_cancelled = True
        self.state_manager.update(status="Cancelling...")
        return True

    async def wait(self) -> ProcessingState:
        """Wait for the active run to reach a terminal state."""
        if self._task is not None:
            await self._task
        return self.get_state()

    def _provider_or_none(self, data: ProcessingData) -> Optional[ModelProvider]:
        try:
            return self.provider_factory(data.model, data.api_key)
        except ValidationError:
            return None

    async def _run(self, data: ProcessingData, token: CancellationToken) -> None:
        state = self.state_manager
        try:
            state.set_run_status(RunStatus.DETECTING_PAGE_TYPE)
            page_type = detect_page_type(data.url, data.tab_url)
            logger.info(f"Page type: {page_type.value}")

            token.raise_if_cancelled("extraction")
            state.set_run_status(RunStatus.EXTRACTING)
            result = await self.strategy_selector.extract(data, token, state.update, page_type)
            logger.info(f"Extracted {len(result.content)} content items: {result.title!r}")

            token.raise_if_cancelled("language detection")
            if not result.detected_language:
                detector = LanguageDetector(provider=self._provider_or_none(data))
                result.detected_language = await detector.detect(result.content)

            artifact = await self._continue_pipeline(data, result, token)
            state.complete(artifact)
            logger.info("Processing complete")
        except CancelledError:
            logger.info("Processing cancelled")
            state.cancel()
        except asyncio.CancelledError:
            logger.info("Processing task cancelled")
            state.cancel()
            raise
        except Exception as e:
            if token.is_cancelled:
                logger.info(f"Processing cancelled while failing: {e}")
                state.cancel()
            else:
                state.set_error(str(e), classify_exception(e))
        finally:
            if state.is_processing:
                state.set_error("Processing stopped unexpectedly", ErrorCode.UNKNOWN_ERROR)

    async def _continue_pipeline(
        self, data: ProcessingData, result: ExtractionResult, token: CancellationToken
    ) -> Any:
        """Translation, summarization and generation for an extracted document."""
        state = self.state_manager
        token.raise_if_cancelled("start of pipeline")

        target = data.target_language or "auto"

        if target != "auto":
            state.set_run_status(RunStatus.TRANSLATING)
            await self._translate(data, result, target, token)
        else:
            state.update(progress=TRANSLATION_DONE_PROGRESS)

        effective_language = target if target != "auto" else (result.detected_language or "en")

        if data.generate_abstract and data.output_format != OutputFormat.AUDIO:
            await self._summarize(data, result, target, token)

        token.raise_if_cancelled("document generation")
        state.set_run_status(RunStatus.GENERATING)
        state.update(
            stage=ProcessingStage.GENERATING,
            status="Generating document...",
            progress=GENERATION_PROGRESS,
        )
        return await self.generator.generate(
            data.output_format, data, result, state.update, effective_language
        )

    async def _translate(
        self,
        data: ProcessingData,
        result: ExtractionResult,
        target: str,
        token: CancellationToken,
    ) -> None:
        state = self.state_manager
        token.raise_if_cancelled("translation")

        if result.detected_language == target:
            logger.info(f"Content already in {target}, skipping translation")
            state.update(progress=TRANSLATION_DONE_PROGRESS)
            return

        provider = self.provider_factory(data.model, data.api_key)
        engine = TranslationEngine(
            provider,
            chunk_size=self.translation_chunk_size,
            retry_policy=self.translation_retry_policy,
        )
        language_name = LANGUAGE_NAMES.get(target, target)

        try:
            self.translation_report = await engine.translate(
                result, language_name, update_state=state.update, cancel_token=token
            )
        except (AuthenticationError, CancelledError):
            raise
        except PipelineError as e:
            if is_auth_error(e):
                raise
            logger.warning(f"Translation failed, continuing with original content: {e}")
            state.update(progress=TRANSLATION_DONE_PROGRESS)

    async def _summarize(
        self,
        data: ProcessingData,
        result: ExtractionResult,
        target: str,
        token: CancellationToken,
    ) -> None:
        provider = self._provider_or_none(data)
        if provider is None:
            logger.info("No credential available, skipping abstract")
            return

        token.raise_if_cancelled("abstract generation")
        self.state_manager.set_run_status(RunStatus.SUMMARIZING)
        self.state_manager.update(status="Generating abstract...", progress=ABSTRACT_PROGRESS)

        try:
            result.abstract = await Summarizer(provider).generate_abstract(
                result.content, result.title, language=target
            )
        except PipelineError as e:
            if is_auth_error(e):
                raise
            logger.warning(f"Abstract generation failed, continuing without it: {e}")
