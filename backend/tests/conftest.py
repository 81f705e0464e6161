"""Shared fixtures: a scripted model provider and content builders."""

from typing import Any, Callable, List, Optional, Sequence, Union
from unittest.mock import AsyncMock

import pytest

from pageclip.core.llm.models import ModelRequest, ModelResponse
from pageclip.core.llm.providers import ModelProvider, ProviderKind, provider_for_model
from pageclip.core.models import ContentItem
from pageclip.core.retry import RetryPolicy

Reply = Union[str, BaseException, Callable[[ModelRequest], str]]


class FakeProvider(ModelProvider):
    """Records requests and replays scripted replies.

    Each reply is a string, an exception to raise, or a callable building
    the reply from the request. With ``default`` set, calls beyond the
    script use it instead of failing.
    """

    def __init__(
        self,
        replies: Optional[Sequence[Reply]] = None,
        model: str = "gpt-4o",
        default: Optional[Reply] = None,
    ):
        self.replies: List[Reply] = list(replies or [])
        self.default = default
        self.requests: List[ModelRequest] = []
        self._model = model

    @property
    def kind(self) -> ProviderKind:
        return provider_for_model(self._model)

    @property
    def model(self) -> str:
        return self._model

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(
        self, request: ModelRequest, retry_policy: Optional[RetryPolicy] = None
    ) -> ModelResponse:
        self.requests.append(request)
        if self.replies:
            reply = self.replies.pop(0)
        elif self.default is not None:
            reply = self.default
        else:
            raise AssertionError(f"Unexpected provider call: {request.user_content[:80]!r}")

        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(request)
        return ModelResponse(content=reply, provider=self.kind.value, model=self._model)


@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    """Factory for scripted providers."""
    return FakeProvider


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Awaitable sleep replacement that returns immediately."""
    return AsyncMock(return_value=None)


@pytest.fixture
def fast_policy(no_sleep) -> RetryPolicy:
    """Retry policy with short fixed delays and no real waiting."""
    return RetryPolicy(
        max_retries=3,
        delays_ms=[100, 200, 300],
        jitter=0.0,
        sleep=no_sleep,
    )


def items(*values: Any) -> List[ContentItem]:
    """Build content items from dicts or plain paragraph strings."""
    return [
        ContentItem.model_validate(value if isinstance(value, dict) else {"text": value})
        for value in values
    ]


@pytest.fixture
def make_items() -> Callable[..., List[ContentItem]]:
    return items
