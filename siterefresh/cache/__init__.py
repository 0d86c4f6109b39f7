"""
Caching and Rate Limiting

- RateLimiter: Redis sliding window with in-process fallback
- SeedCache: TTL cache for skill definitions and benchmark rows
"""

from .config import CacheTTL, RateLimitConfig, get_rate_limit_config
from .rate_limiter import (
    RateLimiter,
    RateLimitResult,
    InMemoryRateLimiter,
    CircuitBreaker,
)
from .seed_cache import SeedCache

__all__ = [
    "CacheTTL",
    "RateLimitConfig",
    "get_rate_limit_config",
    "RateLimiter",
    "RateLimitResult",
    "InMemoryRateLimiter",
    "CircuitBreaker",
    "SeedCache",
]
