"""Error taxonomy for the content pipeline.

Every failure that crosses a component boundary is one of these types, so
the orchestrator can decide between retrying, falling back and aborting
without inspecting provider-specific exceptions.
"""

import asyncio
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Error codes recorded on the processing state."""

    AUTH_ERROR = "auth_error"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"
    PROVIDER_ERROR = "provider_error"
    VALIDATION_ERROR = "validation_error"
    EXTRACTION_EMPTY = "extraction_empty"
    TAB_CLOSED = "tab_closed"
    CANCELLED = "cancelled"
    UNKNOWN_ERROR = "unknown_error"


class PipelineError(Exception):
    """Base class for pipeline errors."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after


class ValidationError(PipelineError):
    """Missing or invalid input (HTML, credential, page reference). Never retried."""

    code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(PipelineError):
    """Provider rejected the credential (401/403). Aborts the whole run."""

    code = ErrorCode.AUTH_ERROR


class TransientProviderError(PipelineError):
    """Retryable provider failure: 5xx, network or timeout."""

    code = ErrorCode.PROVIDER_ERROR


class RateLimitError(TransientProviderError):
    """Provider returned 429."""

    code = ErrorCode.RATE_LIMIT


class ProviderTimeoutError(TransientProviderError):
    """Provider call exceeded its timeout."""

    code = ErrorCode.TIMEOUT


class NetworkError(TransientProviderError):
    """Connection could not be established or was dropped."""

    code = ErrorCode.NETWORK_ERROR


class ProviderError(PipelineError):
    """Non-retryable provider failure (bad request, unknown model, empty reply)."""

    code = ErrorCode.PROVIDER_ERROR


class ParseError(PipelineError):
    """Model output could not be parsed into the expected structure."""

    code = ErrorCode.PARSE_ERROR


class ExtractionEmptyError(PipelineError):
    """An extraction strategy produced no content items."""

    code = ErrorCode.EXTRACTION_EMPTY


class TabClosedError(PipelineError):
    """The page context went away or stopped answering during extraction."""

    code = ErrorCode.TAB_CLOSED


class CancelledError(PipelineError):
    """Cooperative cancellation was requested. Not a failure."""

    code = ErrorCode.CANCELLED

    def __init__(self, message: str = "Processing cancelled") -> None:
        super().__init__(message)


def is_auth_error(error: BaseException) -> bool:
    """Check whether an exception represents a rejected credential."""
    if isinstance(error, AuthenticationError):
        return True
    return getattr(error, "status_code", None) in (401, 403)


def classify_exception(error: BaseException) -> ErrorCode:
    """Map any exception to an error code for state reporting.

    Args:
        error: Exception raised somewhere in the pipeline

    Returns:
        The matching ErrorCode
    """
    if isinstance(error, PipelineError):
        return error.code
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCode.TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorCode.NETWORK_ERROR
    if isinstance(error, ValueError):
        return ErrorCode.PARSE_ERROR
    return ErrorCode.UNKNOWN_ERROR
