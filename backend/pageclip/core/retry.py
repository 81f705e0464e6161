"""Retry engine for remote calls.

Wraps any awaitable operation in tenacity's AsyncRetrying with a policy that
mirrors how providers actually fail: a table of delays with jitter, a
Retry-After override, and a classification step that never retries rejected
credentials.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from ..config import settings
from ..errors import CancelledError, TransientProviderError, ValidationError, is_auth_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

NETWORK_ERROR_PATTERNS = (
    "network",
    "connection",
    "failed to fetch",
    "fetch",
    "networkerror",
    "econnreset",
    "enotfound",
    "econnrefused",
    "etimedout",
    "eai_again",
)


@dataclass
class RetryPolicy:
    """Retry configuration for a single call site.

    ``should_retry`` may return None to defer to the default classification.
    ``on_retry`` receives the retry number (1-based) and the delay in ms.
    """

    max_retries: int = field(default_factory=lambda: settings.retry_max_attempts)
    delays_ms: List[int] = field(default_factory=lambda: list(settings.retry_delays_ms))
    retryable_status_codes: List[int] = field(
        default_factory=lambda: list(settings.retryable_status_codes)
    )
    retry_network_errors: bool = field(default_factory=lambda: settings.retry_network_errors)
    should_retry: Optional[Callable[[BaseException], Optional[bool]]] = None
    on_retry: Optional[Callable[[int, int], None]] = None
    min_delay_ms: int = field(default_factory=lambda: settings.retry_min_delay_ms)
    jitter: float = field(default_factory=lambda: settings.retry_jitter)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def for_translation(cls, **overrides) -> "RetryPolicy":
        """Policy with the shorter translation delay table."""
        overrides.setdefault("delays_ms", list(settings.translation_retry_delays_ms))
        overrides.setdefault("max_retries", len(overrides["delays_ms"]))
        return cls(**overrides)


def get_status_code(error: BaseException) -> Optional[int]:
    """Read an HTTP status code from an exception, if it carries one."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def is_retryable_error(error: BaseException, policy: RetryPolicy) -> bool:
    """Default retry classification.

    Args:
        error: Exception raised by the operation
        policy: Policy holding the retryable status codes and flags

    Returns:
        True if the error is worth another attempt
    """
    if isinstance(error, (CancelledError, ValidationError)) or is_auth_error(error):
        return False

    status = get_status_code(error)
    if status is not None:
        return status in policy.retryable_status_codes

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return True

    message = str(error).lower()
    if "timeout" in message:
        return True

    if isinstance(error, TransientProviderError):
        return True

    if policy.retry_network_errors:
        if isinstance(error, ConnectionError):
            return True
        return any(pattern in message for pattern in NETWORK_ERROR_PATTERNS)

    return False


def should_retry_error(error: BaseException, policy: RetryPolicy) -> bool:
    """Apply the policy override, then the default classification."""
    if isinstance(error, CancelledError) or is_auth_error(error):
        return False

    if policy.should_retry is not None:
        decision = policy.should_retry(error)
        if decision is not None:
            return bool(decision)

    return is_retryable_error(error, policy)


def compute_delay(
    attempt: int,
    policy: RetryPolicy,
    error: Optional[BaseException] = None,
    rand: Callable[[], float] = random.random,
) -> int:
    """Compute the delay before the next attempt.

    Args:
        attempt: Zero-based index of the attempt that just failed
        policy: Retry policy
        error: The failure, consulted for a Retry-After value
        rand: Random source in [0, 1)

    Returns:
        Delay in whole milliseconds, never below ``policy.min_delay_ms``
    """
    if policy.delays_ms:
        base = policy.delays_ms[min(attempt, len(policy.delays_ms) - 1)]
    else:
        base = policy.min_delay_ms

    retry_after = getattr(error, "retry_after", None) if error is not None else None
    if retry_after is not None:
        try:
            seconds = float(retry_after)
        except (TypeError, ValueError):
            seconds = 0.0
        if seconds > 0:
            base = seconds * 1000

    jitter = base * policy.jitter * (rand() * 2 - 1)
    return int(max(policy.min_delay_ms, base + jitter))


class wait_policy(wait_base):
    """Tenacity wait strategy driven by a RetryPolicy delay table."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return compute_delay(retry_state.attempt_number - 1, self.policy, error) / 1000


def _before_sleep(policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def notify(retry_state: RetryCallState) -> None:
        delay_ms = int(retry_state.next_action.sleep * 1000) if retry_state.next_action else 0
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Retrying after error (attempt {retry_state.attempt_number}/"
            f"{policy.max_retries}, delay={delay_ms}ms): {error}"
        )
        if policy.on_retry is not None:
            policy.on_retry(retry_state.attempt_number, delay_ms)

    return notify


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
) -> T:
    """Run an async operation, retrying per policy.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Retry policy (defaults from settings)

    Returns:
        The operation's result

    Raises:
        The last error once retries are exhausted, or immediately for
        errors that are not retryable.
    """
    policy = policy or RetryPolicy()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_policy(policy),
        retry=retry_if_exception(lambda error: should_retry_error(error, policy)),
        before_sleep=_before_sleep(policy),
        sleep=policy.sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise AssertionError("retry loop exited without an outcome")
