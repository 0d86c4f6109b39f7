"""
Skill and Benchmark Lookup Cache

Process-local TTL cache for the two read-only lookups the pipeline makes
on every run: active skill definitions and benchmark rows per industry.
The orchestrator owns an instance; tests substitute their own loaders.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import CacheTTL

logger = logging.getLogger(__name__)

SkillLoader = Callable[[], Awaitable[List[Any]]]
BenchmarkLoader = Callable[[str], Awaitable[List[Any]]]


class SeedCache:
    """
    TTL cache over injected async loaders.

    Concurrent misses for the same entry share one load.
    """

    def __init__(
        self,
        load_skills: SkillLoader,
        load_benchmarks: BenchmarkLoader,
        skills_ttl: float = CacheTTL.SKILLS.total_seconds(),
        benchmarks_ttl: float = CacheTTL.BENCHMARKS.total_seconds(),
        clock: Callable[[], float] = time.monotonic,
    ):
        self._load_skills = load_skills
        self._load_benchmarks = load_benchmarks
        self._skills_ttl = skills_ttl
        self._benchmarks_ttl = benchmarks_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[Any]]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def _get(self, key: str, ttl: float, loader: Callable[[], Awaitable[List[Any]]]) -> List[Any]:
        entry = self._entries.get(key)
        if entry and self._clock() - entry[0] < ttl:
            return entry[1]

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._entries.get(key)
            if entry and self._clock() - entry[0] < ttl:
                return entry[1]
            value = await loader()
            self._entries[key] = (self._clock(), value)
            logger.debug(f"Seed cache loaded {key} ({len(value)} rows)")
            return value

    async def get_active_skills(self) -> List[Any]:
        """Active skill definitions (snapshot objects)."""
        return await self._get("skills", self._skills_ttl, self._load_skills)

    async def get_benchmarks(self, industry: str) -> List[Any]:
        """Benchmark rows for one industry."""
        return await self._get(
            f"benchmarks:{industry}",
            self._benchmarks_ttl,
            lambda: self._load_benchmarks(industry),
        )

    def invalidate(self, key: Optional[str] = None):
        """
        Drop cached entries.

        Args:
            key: ``"skills"``, ``"benchmarks:<industry>"``, or None for everything
        """
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
        logger.info(f"Seed cache invalidated: {key or 'all'}")
