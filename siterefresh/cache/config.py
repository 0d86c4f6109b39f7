"""
Rate Limit and Cache Configuration

Settings can be overridden via environment variables:
- REDIS_URL: Shared counter backend (in-process fallback when unset)
- RATE_LIMIT_MAX_REQUESTS / RATE_LIMIT_WINDOW_SECONDS: Sliding window policy
- RATE_LIMIT_ENABLED: Disable limiting entirely (local development)
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional
from functools import lru_cache


@dataclass(frozen=True)
class CacheTTL:
    """TTL configuration for process-local lookup caches."""

    # Skill definitions change only when an operator publishes a new version
    SKILLS: timedelta = timedelta(minutes=5)

    # Benchmark rows are appended offline
    BENCHMARKS: timedelta = timedelta(minutes=30)


@dataclass
class RateLimitConfig:
    """Sliding-window rate limit configuration."""

    # Key namespace in Redis
    namespace: str = field(default_factory=lambda: os.getenv(
        "CACHE_NAMESPACE",
        "siterefresh"
    ))

    enabled: bool = field(default_factory=lambda: os.getenv(
        "RATE_LIMIT_ENABLED",
        "true"
    ).lower() == "true")

    max_requests: int = field(default_factory=lambda: int(os.getenv(
        "RATE_LIMIT_MAX_REQUESTS",
        "5"
    )))
    window_seconds: int = field(default_factory=lambda: int(os.getenv(
        "RATE_LIMIT_WINDOW_SECONDS",
        "60"
    )))

    # In-process fallback sweep
    cleanup_interval_seconds: int = 300

    # Redis connection
    redis_url: Optional[str] = field(default_factory=lambda: os.getenv("REDIS_URL"))
    redis_socket_timeout: float = 2.0
    redis_connect_timeout: float = 2.0
    redis_max_connections: int = 20

    # Circuit breaker
    circuit_breaker_enabled: bool = True
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 60


@lru_cache(maxsize=1)
def get_rate_limit_config() -> RateLimitConfig:
    """Get singleton rate limit configuration."""
    return RateLimitConfig()
