"""
URL Profile Resolution

Maps a submitted URL to its profile and decides whether a recent result
can be reused instead of running the pipeline again.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..database.models import utcnow
from ..utils.urls import normalize_url, extract_domain

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 300

__all__ = [
    "normalize_url",
    "extract_domain",
    "is_within_cooldown",
    "find_cooldown_run",
    "DEFAULT_COOLDOWN_SECONDS",
]


def is_within_cooldown(
    last_analyzed_at: Optional[datetime],
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
    now: Optional[datetime] = None,
) -> bool:
    """True when the profile finished a run less than ``cooldown_seconds`` ago."""
    if last_analyzed_at is None or cooldown_seconds <= 0:
        return False
    now = now or utcnow()
    return now - last_analyzed_at < timedelta(seconds=cooldown_seconds)


def find_cooldown_run(
    repository,
    profile: Dict[str, Any],
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """
    Return the run to reuse for ``profile``, or None to run the pipeline.

    Only runs that left a viewable result (complete or timed out) are
    reused; runs still in flight never are.
    """
    if not is_within_cooldown(profile.get("last_analyzed_at"), cooldown_seconds, now):
        return None

    run = repository.get_latest_result_run(profile["id"])
    if run is not None:
        logger.info(f"Cooldown hit for {profile['url']}, reusing run {run['id']}")
    return run
