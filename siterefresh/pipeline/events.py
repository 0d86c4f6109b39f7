"""
Progress Events

Events the orchestrator emits while a run progresses. The streaming
transport serializes each one as a single NDJSON line; ``keepalive`` is
emitted by the transport only.
"""

from dataclasses import dataclass
from typing import Any, Dict
from uuid import UUID


@dataclass
class ProgressEvent:
    """Base event; ``type`` is the wire tag, ``message`` is display text."""
    type: str = ""
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type}
        if self.message:
            data["message"] = self.message
        return data

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


@dataclass
class StartedEvent(ProgressEvent):
    type: str = "started"
    message: str = "Fetching your website..."


@dataclass
class AnalyzingEvent(ProgressEvent):
    type: str = "analyzing"
    message: str = "Analyzing design, industry and SEO..."


@dataclass
class ScoringEvent(ProgressEvent):
    type: str = "scoring"
    message: str = "Scoring across 8 dimensions..."


@dataclass
class GeneratingEvent(ProgressEvent):
    type: str = "generating"
    message: str = "Generating 3 layout proposals..."


@dataclass
class RetryingEvent(ProgressEvent):
    type: str = "retrying"
    delay_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "delay_ms": self.delay_ms,
            "message": f"Analysis paused due to API limits. Retrying in {round(self.delay_ms / 1000)} seconds...",
        }


@dataclass
class DoneEvent(ProgressEvent):
    type: str = "done"
    run_id: str = ""
    access_token: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "run_id": self.run_id, "access_token": self.access_token}

    @classmethod
    def for_run(cls, run_id: UUID, access_token: str) -> "DoneEvent":
        return cls(run_id=str(run_id), access_token=access_token)


@dataclass
class ErrorEvent(ProgressEvent):
    type: str = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message}


@dataclass
class KeepaliveEvent(ProgressEvent):
    type: str = "keepalive"
