"""Model providers.

A provider is chosen by a pure function of the model identifier; every
provider exposes the same ``complete`` call returning a normalized text
payload. All providers are served through LiteLLM, which adapts the
provider-specific request and response shapes.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import litellm
from litellm import acompletion

from ...config import settings
from ...errors import (
    AuthenticationError,
    NetworkError,
    PipelineError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TransientProviderError,
    ValidationError,
)
from ..retry import RetryPolicy, call_with_retry
from .models import ModelRequest, ModelResponse, TokenUsage

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """Supported provider backends."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"
    GROK = "grok"
    DEEPSEEK = "deepseek"
    QWEN = "qwen"
    OPENROUTER = "openrouter"


PROVIDER_DISPLAY_NAMES = {
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.CLAUDE: "Claude",
    ProviderKind.GEMINI: "Gemini",
    ProviderKind.GROK: "Grok",
    ProviderKind.DEEPSEEK: "DeepSeek",
    ProviderKind.QWEN: "Qwen",
    ProviderKind.OPENROUTER: "OpenRouter",
}

# LiteLLM routing per provider
PROVIDER_CONFIGS: Dict[ProviderKind, Dict[str, Optional[str]]] = {
    ProviderKind.OPENAI: {"prefix": "", "base_url": None},
    ProviderKind.CLAUDE: {"prefix": "anthropic/", "base_url": None},
    ProviderKind.GEMINI: {"prefix": "gemini/", "base_url": None},
    ProviderKind.GROK: {"prefix": "xai/", "base_url": None},
    ProviderKind.DEEPSEEK: {"prefix": "deepseek/", "base_url": "https://api.deepseek.com/v1"},
    # Qwen uses OpenAI-compatible API
    ProviderKind.QWEN: {
        "prefix": "openai/",
        "base_url": "https://dashscope.aliyuncs.com/compatible-mode/v1",
    },
    ProviderKind.OPENROUTER: {"prefix": "openrouter/", "base_url": None},
}


def provider_for_model(model_id: Optional[str]) -> ProviderKind:
    """Map a model identifier to its provider.

    OpenRouter models are namespaced (``anthropic/claude-3.5-sonnet``);
    everything else is recognised by prefix, defaulting to OpenAI.
    """
    if not model_id:
        return ProviderKind.OPENAI
    if "/" in model_id:
        return ProviderKind.OPENROUTER

    model = model_id.lower()
    if model.startswith(("gpt-", "o1", "o3", "o4", "chatgpt-")):
        return ProviderKind.OPENAI
    if model.startswith("claude-"):
        return ProviderKind.CLAUDE
    if model.startswith("gemini-"):
        return ProviderKind.GEMINI
    if model.startswith("grok-"):
        return ProviderKind.GROK
    if model.startswith("deepseek-"):
        return ProviderKind.DEEPSEEK
    if model.startswith("qwen"):
        return ProviderKind.QWEN
    return ProviderKind.OPENAI


@dataclass
class ModelConfig:
    """Model name with the reasoning effort encoded in its suffix."""

    model_name: str
    reasoning_effort: Optional[str] = None


def parse_model_config(model_id: str) -> ModelConfig:
    """Split a ``-high`` suffix off a model id into a reasoning effort."""
    if model_id.endswith("-high"):
        return ModelConfig(model_name=model_id[: -len("-high")], reasoning_effort="high")
    return ModelConfig(model_name=model_id)


def uses_small_context(model_id: Optional[str]) -> bool:
    """Whether the model needs the reduced HTML analysis budget."""
    return provider_for_model(model_id) in (ProviderKind.DEEPSEEK, ProviderKind.QWEN)


def _retry_after_seconds(error: Exception) -> Optional[float]:
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def translate_provider_error(error: Exception) -> PipelineError:
    """Convert a LiteLLM (or transport) exception into the pipeline taxonomy."""
    if isinstance(error, PipelineError):
        return error

    status = getattr(error, "status_code", None)
    message = str(error)

    if isinstance(error, (litellm.AuthenticationError, litellm.PermissionDeniedError)) or status in (401, 403):
        return AuthenticationError(
            f"API authentication failed ({status or 401}): {message}",
            status_code=status or 401,
        )
    if isinstance(error, litellm.RateLimitError) or status == 429:
        return RateLimitError(message, status_code=429, retry_after=_retry_after_seconds(error))
    if isinstance(error, (litellm.Timeout, asyncio.TimeoutError)):
        return ProviderTimeoutError(f"Request timeout: {message}")
    if isinstance(error, (litellm.APIConnectionError, ConnectionError)):
        return NetworkError(f"Network error: {message}")
    if isinstance(status, int) and status >= 500:
        return TransientProviderError(
            message, status_code=status, retry_after=_retry_after_seconds(error)
        )
    return ProviderError(message, status_code=status if isinstance(status, int) else None)


class ModelProvider(ABC):
    """Abstract model provider.

    Translation, detection and extraction only talk to this interface.
    """

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Get provider kind."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Get model identifier."""
        pass

    @abstractmethod
    async def complete(
        self,
        request: ModelRequest,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> ModelResponse:
        """Send a request and return the normalized reply.

        Args:
            request: System instruction and user content
            retry_policy: Override for the default retry policy

        Returns:
            ModelResponse with non-empty content

        Raises:
            AuthenticationError: Credential rejected
            TransientProviderError: Retries exhausted
            ProviderError: Other provider failure
        """
        pass


class LiteLLMProvider(ModelProvider):
    """Provider implementation backed by LiteLLM."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize LiteLLM provider.

        Args:
            api_key: API key for authentication
            model: Model identifier as chosen by the user
            base_url: Optional custom base URL for compatible APIs
            timeout: Per-call timeout in seconds
        """
        self._api_key = api_key
        self._model = model
        self._kind = provider_for_model(model)
        self._config = parse_model_config(model)
        routing = PROVIDER_CONFIGS[self._kind]
        self._base_url = base_url or routing["base_url"]
        self._timeout = timeout or settings.api_timeout_seconds
        self._litellm_model = f"{routing['prefix']}{self._config.model_name}"

        logger.info(
            f"[Provider] Initialized: provider={self._kind.value}, model={model}, "
            f"litellm_model={self._litellm_model}"
        )

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    @property
    def model(self) -> str:
        return self._model

    def _build_kwargs(self, request: ModelRequest) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self._litellm_model,
            "messages": request.to_messages(),
            "api_key": self._api_key,
            "timeout": self._timeout,
        }
        if self._base_url:
            kwargs["api_base"] = self._base_url
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        if request.json_response and self._kind in (ProviderKind.OPENAI, ProviderKind.GROK, ProviderKind.DEEPSEEK):
            kwargs["response_format"] = {"type": "json_object"}
        if self._config.reasoning_effort:
            kwargs["reasoning_effort"] = self._config.reasoning_effort
        return kwargs

    async def _call_once(self, request: ModelRequest) -> ModelResponse:
        start_time = time.time()
        try:
            response = await acompletion(**self._build_kwargs(request))
        except Exception as e:
            raise translate_provider_error(e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError(f"Empty response from {PROVIDER_DISPLAY_NAMES[self._kind]}")

        latency_ms = int((time.time() - start_time) * 1000)
        usage = getattr(response, "usage", None)
        return ModelResponse(
            content=content,
            provider=self._kind.value,
            model=self._model,
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            latency_ms=latency_ms,
            raw_response=response.model_dump() if hasattr(response, "model_dump") else None,
        )

    async def complete(
        self,
        request: ModelRequest,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> ModelResponse:
        logger.info(
            f"[Provider] Calling: model={self._litellm_model}, "
            f"prompt_chars={len(request.user_content)}"
        )
        try:
            result = await call_with_retry(lambda: self._call_once(request), retry_policy)
        except PipelineError as e:
            logger.error(f"[Provider] Call failed: model={self._model}, error={e}")
            raise

        logger.info(
            f"[Provider] Response: tokens={result.usage.total_tokens}, "
            f"latency={result.latency_ms}ms"
        )
        return result


def create_provider(model: str, api_key: Optional[str], **kwargs) -> ModelProvider:
    """Create the provider serving a model.

    Args:
        model: Model identifier
        api_key: Credential for that provider, falls back to settings

    Returns:
        Configured ModelProvider

    Raises:
        ValidationError: No credential available
    """
    kind = provider_for_model(model)
    key = api_key or settings.api_key_for(kind.value)
    if not key or not key.strip():
        raise ValidationError(
            f"{PROVIDER_DISPLAY_NAMES[kind]} API key is required for model {model}."
        )
    return LiteLLMProvider(api_key=key.strip(), model=model, **kwargs)
