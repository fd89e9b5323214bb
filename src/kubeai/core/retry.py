"""Retry with exponential backoff for provider calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from kubeai.core.errors import (
    KubeAIError,
    MaxRetriesExceededError,
    ProviderConnectionError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_TYPES: tuple[type[Exception], ...] = (
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderOverloadedError,
    ProviderConnectionError,
)

# Fallback signatures for exceptions raised outside the kubeai hierarchy
# (e.g. a third-party provider registered on the factory).
_RETRYABLE_SIGNATURES: tuple[str, ...] = (
    "status 429",
    "status 500",
    "status 502",
    "status 503",
    "status 504",
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "temporary failure",
    "try again",
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry with backoff."""

    max_attempts: int = 5
    max_backoff: float = 10.0  # seconds
    jitter_ratio: float = 0.1  # 0.0 <= ratio < 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        if not 0.0 <= self.jitter_ratio < 1.0:
            msg = f"jitter_ratio must be in [0, 1), got {self.jitter_ratio}"
            raise ValueError(msg)
        if self.max_backoff < 0:
            msg = f"max_backoff must be >= 0, got {self.max_backoff}"
            raise ValueError(msg)


def is_retryable(error: BaseException) -> bool:
    """Check if an error should trigger a retry."""
    if isinstance(error, _RETRYABLE_TYPES):
        return True
    if isinstance(error, KubeAIError):
        return False
    text = str(error).lower()
    return any(sig in text for sig in _RETRYABLE_SIGNATURES)


def compute_backoff(
    attempt: int,
    config: RetryConfig,
    uniform: Callable[[float, float], float] = random.uniform,
) -> float:
    """Backoff in seconds before ``attempt`` (0-based).

    ``min(2**attempt, max_backoff)`` randomised by ``± jitter_ratio``.
    """
    delay = min(float(2**attempt), config.max_backoff)
    if config.jitter_ratio > 0:
        delay += delay * config.jitter_ratio * uniform(-1.0, 1.0)
    return max(delay, 0.0)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, float, BaseException], None] | None = None,
) -> T:
    """Execute fn with retry and exponential backoff.

    Retryable errors are retried up to ``config.max_attempts`` total calls.
    All other errors propagate immediately. Cancellation while sleeping
    propagates as ``asyncio.CancelledError``.

    Args:
        fn: Zero-arg callable returning an awaitable.
        config: Retry configuration. Uses defaults if None.
        on_retry: Optional callback(attempt, delay, error) before each retry.

    Returns:
        The result of fn().

    Raises:
        MaxRetriesExceededError: After the last attempt failed, chained
            from the last underlying error.
    """
    cfg = config or RetryConfig()
    last_error: BaseException | None = None

    for attempt in range(cfg.max_attempts):
        if attempt > 0:
            delay = compute_backoff(attempt, cfg)
            if on_retry is not None and last_error is not None:
                on_retry(attempt, delay, last_error)
            logger.debug("Retrying in %.2fs (attempt %d)", delay, attempt + 1)
            await asyncio.sleep(delay)
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e):
                raise
            logger.warning("Retryable error (attempt %d): %s", attempt + 1, e)
            last_error = e

    assert last_error is not None
    raise MaxRetriesExceededError(cfg.max_attempts, last_error) from last_error
