"""pageclip: web page content acquisition and translation pipeline."""

from .core.models import (
    ContentItem,
    ContentType,
    ExtractionMode,
    ExtractionResult,
    OutputFormat,
    ProcessingData,
    ProcessingStage,
    ProcessingState,
    RunStatus,
    SelectorSet,
)
from .core.pipeline import DocumentGenerator, PipelineOrchestrator, ProcessingStateManager
from .errors import (
    AuthenticationError,
    CancelledError,
    ErrorCode,
    ExtractionEmptyError,
    PipelineError,
    TransientProviderError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "ContentItem",
    "ContentType",
    "ExtractionMode",
    "ExtractionResult",
    "OutputFormat",
    "ProcessingData",
    "ProcessingStage",
    "ProcessingState",
    "RunStatus",
    "SelectorSet",
    "DocumentGenerator",
    "PipelineOrchestrator",
    "ProcessingStateManager",
    "AuthenticationError",
    "CancelledError",
    "ErrorCode",
    "ExtractionEmptyError",
    "PipelineError",
    "TransientProviderError",
    "ValidationError",
]
