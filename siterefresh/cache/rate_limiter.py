"""
Sliding-Window Rate Limiter

Caps pipeline invocations per client key (default 5 per 60 seconds).

- Redis sorted set per key is the shared primary, so every API instance
  agrees. Prune, count and conditional add run in one Lua script.
- In-process sliding window is the fallback whenever Redis is
  unconfigured, unreachable, or behind an open circuit breaker.
- A background sweep bounds the fallback's memory across many keys.
"""

import asyncio
import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from .config import RateLimitConfig, get_rate_limit_config

logger = logging.getLogger(__name__)


# KEYS[1] = bucket, ARGV = now_ms, window_ms, limit, member
SLIDING_WINDOW_LUA = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
if count < limit then
  redis.call('ZADD', key, now, ARGV[4])
  redis.call('PEXPIRE', key, window)
  return {1, 0}
end
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local retry = window
if oldest[2] then
  retry = tonumber(oldest[2]) + window - now
end
if retry < 0 then
  retry = 0
end
return {0, retry}
"""


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check."""
    allowed: bool
    retry_after_ms: Optional[int] = None

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds for a Retry-After header."""
        return math.ceil((self.retry_after_ms or 0) / 1000)


@dataclass
class CircuitBreakerState:
    """Circuit breaker state tracking."""
    failures: int = 0
    last_failure: float = 0.0
    is_open: bool = False
    opened_at: float = 0.0


class CircuitBreaker:
    """
    Circuit breaker for the Redis backend.

    After ``threshold`` consecutive failures checks skip Redis and use the
    in-process window until ``timeout`` seconds have passed.
    """

    def __init__(self, threshold: int = 5, timeout: int = 60):
        self.threshold = threshold
        self.timeout = timeout
        self.state = CircuitBreakerState()
        self._lock = asyncio.Lock()

    async def is_available(self) -> bool:
        """Check if circuit allows requests."""
        if not self.state.is_open:
            return True

        if time.time() - self.state.opened_at >= self.timeout:
            async with self._lock:
                # Half-open: let the next request try Redis
                self.state.is_open = False
                self.state.failures = 0
                logger.info("Rate limiter circuit closed, retrying Redis")
            return True

        return False

    async def record_success(self):
        """Record successful operation."""
        if self.state.failures or self.state.is_open:
            async with self._lock:
                self.state.failures = 0
                self.state.is_open = False

    async def record_failure(self):
        """Record failed operation."""
        async with self._lock:
            self.state.failures += 1
            self.state.last_failure = time.time()

            if self.state.failures >= self.threshold and not self.state.is_open:
                self.state.is_open = True
                self.state.opened_at = time.time()
                logger.warning(
                    f"Rate limiter circuit opened after {self.state.failures} Redis failures. "
                    f"Using in-process window for {self.timeout} seconds."
                )


class InMemoryRateLimiter:
    """
    Per-process sliding window.

    Stores request timestamps per key, prunes expired entries on every
    check and never blocks.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}

    def check(self, client_key: str) -> RateLimitResult:
        now = self._clock()
        cutoff = now - self.window_seconds
        timestamps = [t for t in self._requests.get(client_key, []) if t > cutoff]

        if len(timestamps) >= self.max_requests:
            self._requests[client_key] = timestamps
            retry_after = timestamps[0] + self.window_seconds - now
            return RateLimitResult(allowed=False, retry_after_ms=max(0, math.ceil(retry_after * 1000)))

        timestamps.append(now)
        self._requests[client_key] = timestamps
        return RateLimitResult(allowed=True)

    def sweep(self) -> int:
        """Drop keys with no requests inside the window. Returns keys removed."""
        cutoff = self._clock() - self.window_seconds
        stale = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= cutoff
        ]
        for key in stale:
            del self._requests[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._requests)


class RateLimiter:
    """
    Rate limiter with Redis primary and in-process fallback.

    Usage:
        limiter = RateLimiter()
        await limiter.initialize()
        limiter.start()
        result = await limiter.check("203.0.113.7")
        if not result.allowed:
            ...  # respond 429 with result.retry_after_seconds
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        redis: Optional[Redis] = None,
        clock: Callable[[], float] = time.time,
        fallback: Optional[InMemoryRateLimiter] = None,
    ):
        self.config = config or get_rate_limit_config()
        self._redis = redis
        self._pool: Optional[ConnectionPool] = None
        self._script = redis.register_script(SLIDING_WINDOW_LUA) if redis is not None else None
        self._clock = clock
        self._fallback = fallback or InMemoryRateLimiter(
            max_requests=self.config.max_requests,
            window_seconds=self.config.window_seconds,
        )
        self._circuit_breaker = CircuitBreaker(
            threshold=self.config.circuit_breaker_threshold,
            timeout=self.config.circuit_breaker_timeout,
        ) if self.config.circuit_breaker_enabled else None
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    async def initialize(self):
        """Connect to Redis when configured; otherwise stay on the fallback."""
        if self._redis is not None or not self.config.redis_url:
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.redis_url,
                max_connections=self.config.redis_max_connections,
                socket_timeout=self.config.redis_socket_timeout,
                socket_connect_timeout=self.config.redis_connect_timeout,
            )
            redis = Redis(connection_pool=self._pool)
            await redis.ping()
        except RedisError as e:
            logger.warning(f"Redis unavailable for rate limiting, using in-process window: {e}")
            if self._pool is not None:
                await self._pool.disconnect()
            self._pool = None
            return

        self._redis = redis
        self._script = redis.register_script(SLIDING_WINDOW_LUA)
        logger.info("Rate limiter using Redis backend")

    def _make_key(self, client_key: str) -> str:
        return f"{self.config.namespace}:ratelimit:{client_key}"

    async def _check_redis(self, client_key: str) -> RateLimitResult:
        now_ms = int(self._clock() * 1000)
        allowed, retry_after_ms = await self._script(
            keys=[self._make_key(client_key)],
            args=[now_ms, self.config.window_seconds * 1000, self.config.max_requests,
                  f"{now_ms}-{uuid.uuid4().hex}"],
        )
        if int(allowed) == 1:
            return RateLimitResult(allowed=True)
        return RateLimitResult(allowed=False, retry_after_ms=int(retry_after_ms))

    async def check(self, client_key: str) -> RateLimitResult:
        """
        Check and record one request for ``client_key``.

        Returns:
            RateLimitResult; ``retry_after_ms`` is set when denied
        """
        if not self.config.enabled:
            return RateLimitResult(allowed=True)

        if self._script is not None and (
            self._circuit_breaker is None or await self._circuit_breaker.is_available()
        ):
            try:
                result = await self._check_redis(client_key)
                if self._circuit_breaker:
                    await self._circuit_breaker.record_success()
                return result
            except RedisError as e:
                logger.warning(f"Redis rate limit check failed for {client_key}, using fallback: {e}")
                if self._circuit_breaker:
                    await self._circuit_breaker.record_failure()

        return self._fallback.check(client_key)

    # =========================================================================
    # BACKGROUND SWEEP
    # =========================================================================

    def start(self):
        """Start the periodic fallback sweep on the running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            removed = self._fallback.sweep()
            if removed:
                logger.debug(f"Rate limiter swept {removed} idle keys")

    async def close(self):
        """Stop the sweep and release the Redis pool."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        if self._redis is not None and self._pool is not None:
            await self._redis.aclose()
            await self._pool.disconnect()
            self._redis = None
            self._script = None
        logger.info("Rate limiter closed")
