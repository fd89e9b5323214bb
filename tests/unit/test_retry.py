"""Tests for retry with backoff utility."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kubeai.core.errors import (
    MaxRetriesExceededError,
    ModelNotFoundError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderTimeoutError,
)
from kubeai.core.retry import (
    RetryConfig,
    compute_backoff,
    is_retryable,
    retry_with_backoff,
)

# ─── RetryConfig ──────────────────────────────────────────────


class TestRetryConfig:
    def test_defaults(self):
        cfg = RetryConfig()
        assert cfg.max_attempts == 5
        assert cfg.max_backoff == 10.0
        assert cfg.jitter_ratio == 0.1

    def test_frozen(self):
        cfg = RetryConfig()
        with pytest.raises(AttributeError):
            cfg.max_attempts = 2  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"jitter_ratio": 1.0}, {"jitter_ratio": -0.1}, {"max_backoff": -1}],
    )
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)


# ─── is_retryable ─────────────────────────────────────────────


class TestIsRetryable:
    @pytest.mark.parametrize(
        "err",
        [
            ProviderRateLimitError("test"),
            ProviderTimeoutError("test", "timeout"),
            ProviderOverloadedError("test", "busy", status=503),
            ProviderConnectionError("test", "refused"),
        ],
    )
    def test_retryable_types(self, err):
        assert is_retryable(err) is True

    @pytest.mark.parametrize(
        "err",
        [
            ProviderAuthError("test", "API error (status 401): bad key"),
            ModelNotFoundError("test", "API error (status 404): nope"),
            ProviderRequestError("test", "API error (status 400): timeout field invalid"),
        ],
    )
    def test_classified_errors_are_not_sniffed(self, err):
        assert is_retryable(err) is False

    @pytest.mark.parametrize(
        "text",
        [
            "API error (status 429): rate limited",
            "API error (status 503): unavailable",
            "dial tcp: connection refused",
            "read: connection reset by peer",
            "context deadline exceeded (Client.Timeout)",
            "server busy, try again later",
        ],
    )
    def test_foreign_errors_by_signature(self, text):
        assert is_retryable(RuntimeError(text)) is True

    def test_generic_exception_is_not_retryable(self):
        assert is_retryable(ValueError("oops")) is False


# ─── compute_backoff ──────────────────────────────────────────


class TestComputeBackoff:
    def test_exponential_without_jitter(self):
        cfg = RetryConfig(max_backoff=100.0, jitter_ratio=0.0)
        assert [compute_backoff(a, cfg) for a in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_backoff(self):
        cfg = RetryConfig(max_backoff=10.0, jitter_ratio=0.0)
        assert compute_backoff(4, cfg) == 10.0
        assert compute_backoff(30, cfg) == 10.0

    def test_jitter_scales_delay(self):
        cfg = RetryConfig(max_backoff=10.0, jitter_ratio=0.5)
        assert compute_backoff(2, cfg, uniform=lambda a, b: 1.0) == pytest.approx(6.0)
        assert compute_backoff(2, cfg, uniform=lambda a, b: -1.0) == pytest.approx(2.0)

    def test_bounded_for_all_attempts(self):
        cfg = RetryConfig(max_backoff=10.0, jitter_ratio=0.3)
        for attempt in range(20):
            delay = compute_backoff(attempt, cfg)
            assert 0.0 <= delay <= cfg.max_backoff * (1 + cfg.jitter_ratio)


# ─── retry_with_backoff ───────────────────────────────────────


class TestRetryWithBackoff:
    async def test_succeeds_on_first_try(self):
        fn = AsyncMock(return_value="ok")
        sleep = AsyncMock()
        with patch.object(asyncio, "sleep", sleep):
            result = await retry_with_backoff(fn)
        assert result == "ok"
        assert fn.call_count == 1
        sleep.assert_not_called()

    async def test_retries_then_succeeds(self):
        fn = AsyncMock(side_effect=[ProviderRateLimitError("test"), "ok"])
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            result = await retry_with_backoff(fn)
        assert result == "ok"
        assert fn.call_count == 2

    async def test_fails_fast_on_auth_error(self):
        fn = AsyncMock(side_effect=ProviderAuthError("test", "bad key"))
        with pytest.raises(ProviderAuthError):
            await retry_with_backoff(fn)
        assert fn.call_count == 1

    async def test_stops_at_exactly_max_attempts(self):
        cfg = RetryConfig(max_attempts=3, jitter_ratio=0.0)
        fn = AsyncMock(side_effect=ProviderOverloadedError("test", "status 503", status=503))
        with (
            patch.object(asyncio, "sleep", new_callable=AsyncMock),
            pytest.raises(MaxRetriesExceededError) as exc_info,
        ):
            await retry_with_backoff(fn, config=cfg)
        assert fn.call_count == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ProviderOverloadedError)
        assert "status 503" in str(exc_info.value)

    async def test_single_attempt_never_sleeps(self):
        cfg = RetryConfig(max_attempts=1)
        fn = AsyncMock(side_effect=ProviderTimeoutError("test", "t"))
        sleep = AsyncMock()
        with patch.object(asyncio, "sleep", sleep), pytest.raises(MaxRetriesExceededError):
            await retry_with_backoff(fn, config=cfg)
        sleep.assert_not_called()

    async def test_sleeps_backoff_of_attempt_index(self):
        cfg = RetryConfig(max_attempts=3, max_backoff=100.0, jitter_ratio=0.0)
        fn = AsyncMock(side_effect=[ProviderTimeoutError("t", "t"), ProviderTimeoutError("t", "t"), 1])
        sleep = AsyncMock()
        with patch.object(asyncio, "sleep", sleep):
            await retry_with_backoff(fn, config=cfg)
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0]

    async def test_on_retry_callback_called(self):
        cfg = RetryConfig(max_attempts=3, jitter_ratio=0.0)
        first = ProviderRateLimitError("test")
        fn = AsyncMock(side_effect=[first, ProviderTimeoutError("test", "t"), "ok"])
        callback = MagicMock()
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            await retry_with_backoff(fn, config=cfg, on_retry=callback)
        assert callback.call_count == 2
        attempt, delay, error = callback.call_args_list[0].args
        assert (attempt, delay, error) == (1, 2.0, first)

    async def test_cancellation_during_sleep_propagates(self):
        cfg = RetryConfig(max_attempts=5, max_backoff=30.0, jitter_ratio=0.0)
        fn = AsyncMock(side_effect=ProviderTimeoutError("test", "t"))

        task = asyncio.create_task(retry_with_backoff(fn, config=cfg))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert fn.call_count == 1
