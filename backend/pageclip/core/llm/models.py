"""Provider request/response models.

Provider-agnostic shapes: components above the provider layer only ever see
these, never a provider SDK object.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ModelRequest(BaseModel):
    """A single system + user exchange."""

    system_instruction: str = Field(..., description="System message content")
    user_content: str = Field(..., description="User message content")
    json_response: bool = Field(
        default=False, description="Ask the provider for a JSON object reply"
    )
    temperature: Optional[float] = Field(
        default=None, ge=0.0, le=2.0, description="Sampling temperature"
    )
    max_tokens: Optional[int] = Field(
        default=None, gt=0, description="Maximum tokens in response"
    )

    def to_messages(self) -> List[Dict[str, str]]:
        """Convert to chat message format."""
        return [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": self.user_content},
        ]


class TokenUsage(BaseModel):
    """Token consumption details."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ModelResponse(BaseModel):
    """Normalized reply from a provider."""

    content: str = Field(..., description="Text payload of the reply")
    provider: str = Field(..., description="Provider name")
    model: str = Field(..., description="Model identifier used")
    usage: TokenUsage = Field(default_factory=TokenUsage)
    latency_ms: int = Field(default=0, description="Response latency in milliseconds")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    raw_response: Optional[Dict[str, Any]] = Field(
        default=None, description="Raw provider response for debugging"
    )
