"""
Tests for the sliding-window rate limiter.

These tests verify:
- In-process window (deny after the limit, allow once the window passes)
- Redis script path and result mapping
- Fallback to the in-process window on Redis errors
- Circuit breaker behavior
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from siterefresh.cache.config import RateLimitConfig
from siterefresh.cache.rate_limiter import (
    CircuitBreaker,
    InMemoryRateLimiter,
    RateLimiter,
    RateLimitResult,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _config(**overrides) -> RateLimitConfig:
    values = dict(
        namespace="test",
        enabled=True,
        max_requests=5,
        window_seconds=60,
        redis_url=None,
        circuit_breaker_threshold=2,
    )
    values.update(overrides)
    return RateLimitConfig(**values)


def _redis_with_script(script):
    redis = MagicMock()
    redis.register_script.return_value = script
    return redis


# =============================================================================
# IN-MEMORY WINDOW
# =============================================================================

class TestInMemoryRateLimiter:
    """Test the per-process sliding window."""

    def test_sixth_request_denied(self):
        """Five requests pass; the sixth is denied with a positive retry."""
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)

        for _ in range(5):
            assert limiter.check("1.2.3.4").allowed
            clock.now += 1

        result = limiter.check("1.2.3.4")
        assert result.allowed is False
        assert result.retry_after_ms > 0
        assert result.retry_after_ms <= 60_000

    def test_allowed_after_window(self):
        """Once the oldest request leaves the window, a new one passes."""
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)

        for _ in range(5):
            limiter.check("1.2.3.4")
        assert not limiter.check("1.2.3.4").allowed

        clock.now += 61
        assert limiter.check("1.2.3.4").allowed

    def test_keys_are_independent(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)

        assert limiter.check("a").allowed
        assert not limiter.check("a").allowed
        assert limiter.check("b").allowed

    def test_retry_after_counts_from_oldest(self):
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60, clock=clock)

        limiter.check("k")
        clock.now += 20
        limiter.check("k")
        clock.now += 10

        result = limiter.check("k")
        assert result.retry_after_ms == 30_000
        assert result.retry_after_seconds == 30

    def test_sweep_removes_idle_keys(self):
        """Keys without requests in the window are dropped."""
        clock = FakeClock()
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)

        limiter.check("old")
        clock.now += 120
        limiter.check("fresh")

        assert limiter.sweep() == 1
        assert len(limiter) == 1


# =============================================================================
# REDIS PRIMARY + FALLBACK
# =============================================================================

class TestRateLimiter:
    """Test the Redis-backed limiter."""

    @pytest.mark.asyncio
    async def test_redis_allowed(self):
        """Script result {1, 0} maps to allowed."""
        script = AsyncMock(return_value=[1, 0])
        limiter = RateLimiter(config=_config(), redis=_redis_with_script(script), clock=lambda: 100.0)

        result = await limiter.check("1.2.3.4")

        assert result == RateLimitResult(allowed=True)
        assert limiter.backend == "redis"
        kwargs = script.await_args.kwargs
        assert kwargs["keys"] == ["test:ratelimit:1.2.3.4"]
        assert kwargs["args"][:3] == [100_000, 60_000, 5]

    @pytest.mark.asyncio
    async def test_redis_denied(self):
        """Script result {0, retry} maps to denied with retry."""
        script = AsyncMock(return_value=[0, 42_000])
        limiter = RateLimiter(config=_config(), redis=_redis_with_script(script))

        result = await limiter.check("1.2.3.4")

        assert result.allowed is False
        assert result.retry_after_ms == 42_000
        assert result.retry_after_seconds == 42

    @pytest.mark.asyncio
    async def test_redis_error_uses_fallback(self):
        """Redis failures route checks to the in-process window, not fail-open."""
        script = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        fallback = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter = RateLimiter(
            config=_config(circuit_breaker_enabled=False),
            redis=_redis_with_script(script),
            fallback=fallback,
        )

        assert (await limiter.check("k")).allowed
        assert not (await limiter.check("k")).allowed
        assert script.await_count == 2

    @pytest.mark.asyncio
    async def test_circuit_opens_after_threshold(self):
        """After repeated failures Redis is skipped entirely."""
        script = AsyncMock(side_effect=RedisConnectionError("down"))
        limiter = RateLimiter(config=_config(), redis=_redis_with_script(script))

        for _ in range(4):
            await limiter.check("k")

        assert script.await_count == 2

    @pytest.mark.asyncio
    async def test_no_redis_configured_uses_memory(self):
        limiter = RateLimiter(config=_config())
        await limiter.initialize()

        assert limiter.backend == "memory"
        for _ in range(5):
            assert (await limiter.check("k")).allowed
        assert not (await limiter.check("k")).allowed

    @pytest.mark.asyncio
    async def test_disabled_allows_everything(self):
        limiter = RateLimiter(config=_config(enabled=False, max_requests=1))

        for _ in range(10):
            assert (await limiter.check("k")).allowed

    @pytest.mark.asyncio
    async def test_start_and_close(self):
        """The sweep task starts and is cancelled cleanly."""
        limiter = RateLimiter(config=_config())
        limiter.start()
        assert limiter._sweep_task is not None
        await limiter.close()
        assert limiter._sweep_task is None


class TestCircuitBreaker:
    """Test circuit breaker state transitions."""

    @pytest.mark.asyncio
    async def test_opens_and_resets(self):
        breaker = CircuitBreaker(threshold=2, timeout=60)
        assert await breaker.is_available()

        await breaker.record_failure()
        assert await breaker.is_available()
        await breaker.record_failure()
        assert not await breaker.is_available()

        await breaker.record_success()
        assert await breaker.is_available()
