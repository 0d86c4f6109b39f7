"""
Redesign Pipeline

Orchestrates one analysis from URL to three generated layouts and exposes
its progress as events (optionally streamed as NDJSON).
"""

from .events import (
    ProgressEvent,
    StartedEvent,
    AnalyzingEvent,
    ScoringEvent,
    GeneratingEvent,
    RetryingEvent,
    DoneEvent,
    ErrorEvent,
    KeepaliveEvent,
)
from .orchestrator import AnalysisOrchestrator, AnalysisOutcome, user_message_for
from .streaming import NDJSON_MEDIA_TYPE, encode_event, stream_analysis
from .url_profile import find_cooldown_run, is_within_cooldown

__all__ = [
    "ProgressEvent",
    "StartedEvent",
    "AnalyzingEvent",
    "ScoringEvent",
    "GeneratingEvent",
    "RetryingEvent",
    "DoneEvent",
    "ErrorEvent",
    "KeepaliveEvent",
    "AnalysisOrchestrator",
    "AnalysisOutcome",
    "user_message_for",
    "NDJSON_MEDIA_TYPE",
    "encode_event",
    "stream_analysis",
    "find_cooldown_run",
    "is_within_cooldown",
]
