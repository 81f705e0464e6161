"""Model provider access.

- ModelProvider: Interface every component talks to
- LiteLLMProvider: Implementation over litellm
- parse_json_response: Strict then repairing parse of model output
"""

from .json_parser import ParseResult, ParseStatus, parse_json_response
from .models import ModelRequest, ModelResponse, TokenUsage
from .providers import (
    LiteLLMProvider,
    ModelProvider,
    ProviderKind,
    create_provider,
    parse_model_config,
    provider_for_model,
)

__all__ = [
    "ParseResult",
    "ParseStatus",
    "parse_json_response",
    "ModelRequest",
    "ModelResponse",
    "TokenUsage",
    "LiteLLMProvider",
    "ModelProvider",
    "ProviderKind",
    "create_provider",
    "parse_model_config",
    "provider_for_model",
]
