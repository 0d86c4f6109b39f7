"""
Tests for NDJSON progress streaming.
"""

import asyncio
import json
from uuid import uuid4

import pytest

from siterefresh.cache.seed_cache import SeedCache
from siterefresh.errors import FetchError
from siterefresh.pipeline.events import (
    AnalyzingEvent,
    DoneEvent,
    KeepaliveEvent,
    RetryingEvent,
    StartedEvent,
)
from siterefresh.pipeline.orchestrator import AnalysisOrchestrator, AnalysisOutcome
from siterefresh.pipeline.streaming import encode_event, stream_analysis
from siterefresh.utils.config import Settings

from conftest import SAMPLE_HTML, FakeBuilder, FakeFetcher


class ScriptedOrchestrator:
    """Emits fixed events with pauses, then returns or raises."""

    def __init__(self, pause: float = 0.0, error: Exception = None):
        self.settings = Settings(KEEPALIVE_SECONDS=0.05, _env_file=None)
        self.pause = pause
        self.error = error
        self.run_id = uuid4()

    async def run_analysis(self, url, on_progress=None, on_run_created=None):
        await on_progress(StartedEvent())
        await asyncio.sleep(self.pause)
        await on_progress(AnalyzingEvent())
        if self.error is not None:
            raise self.error
        return AnalysisOutcome(run_id=self.run_id, access_token="tok", status="complete")


async def _collect(orchestrator, **kwargs):
    return [json.loads(line) async for line in stream_analysis(orchestrator, "smiledental.com", **kwargs)]


class TestEncodeEvent:
    """Test NDJSON encoding."""

    def test_one_line_per_event(self):
        line = encode_event(StartedEvent())
        assert line.endswith("\n")
        assert line.count("\n") == 1
        assert json.loads(line) == {"type": "started", "message": "Fetching your website..."}

    def test_retrying_carries_delay(self):
        data = RetryingEvent(delay_ms=30_000).to_dict()
        assert data["delay_ms"] == 30_000
        assert "Retrying in 30 seconds" in data["message"]

    def test_done_event(self):
        run_id = uuid4()
        event = DoneEvent.for_run(run_id, "tok")
        assert event.to_dict() == {"type": "done", "run_id": str(run_id), "access_token": "tok"}
        assert event.is_terminal

    def test_keepalive_not_terminal(self):
        assert KeepaliveEvent().to_dict() == {"type": "keepalive"}
        assert not KeepaliveEvent().is_terminal


class TestStreamAnalysis:
    """Test the stream lifecycle."""

    @pytest.mark.asyncio
    async def test_success_ends_with_done(self):
        orchestrator = ScriptedOrchestrator()

        lines = await _collect(orchestrator, keepalive_seconds=5)

        assert [line["type"] for line in lines] == ["started", "analyzing", "done"]
        assert lines[-1]["run_id"] == str(orchestrator.run_id)
        assert lines[-1]["access_token"] == "tok"

    @pytest.mark.asyncio
    async def test_keepalive_during_idle_stage(self):
        """Idle gaps longer than the interval produce keepalive lines."""
        lines = await _collect(ScriptedOrchestrator(pause=0.3))

        types = [line["type"] for line in lines]
        assert types[0] == "started"
        assert "keepalive" in types
        assert types[-1] == "done"

    @pytest.mark.asyncio
    async def test_error_ends_with_user_message(self):
        error = FetchError(FetchError.BLOCKED, "This website blocks automated access.", detail="HTTP 403")

        lines = await _collect(ScriptedOrchestrator(error=error), keepalive_seconds=5)

        assert lines[-1] == {"type": "error", "message": "This website blocks automated access."}
        assert sum(1 for line in lines if line["type"] in ("done", "error")) == 1

    @pytest.mark.asyncio
    async def test_internal_error_detail_hidden(self):
        lines = await _collect(ScriptedOrchestrator(error=KeyError("creative_brief")), keepalive_seconds=5)

        assert lines[-1]["message"] == "Analysis failed. Please try again in a few minutes."
        assert "creative_brief" not in json.dumps(lines)


class TestStreamDeadline:
    """Test streaming a real pipeline that runs past its deadline."""

    @pytest.mark.asyncio
    async def test_deadline_ends_with_done_for_created_run(self, repository, agents):
        """Slow creatives: the stream still finishes with done for the stored run."""
        for agent in agents.creatives:
            agent.delay = 10.0

        async def no_skills():
            return []

        async def no_benchmarks(industry):
            return []

        created = []
        orchestrator = AnalysisOrchestrator(
            repository,
            SeedCache(no_skills, no_benchmarks),
            FakeBuilder(agents),
            FakeFetcher(html=SAMPLE_HTML),
            settings=Settings(
                ANTHROPIC_API_KEY="test-key",
                PIPELINE_DEADLINE_SECONDS=1.0,
                KEEPALIVE_SECONDS=0.2,
                _env_file=None,
            ),
        )
        run_analysis = orchestrator.run_analysis

        async def recording_run(url, on_progress=None, on_run_created=None):
            return await run_analysis(url, on_progress=on_progress, on_run_created=created.append)

        orchestrator.run_analysis = recording_run

        lines = await _collect(orchestrator)

        types = [line["type"] for line in lines]
        assert types[:4] == ["started", "analyzing", "scoring", "generating"]
        assert "keepalive" in types
        assert lines[-1]["type"] == "done"
        assert lines[-1]["run_id"] == str(created[0])
        assert sum(1 for t in types if t in ("done", "error")) == 1

        run = repository.get_run(created[0])
        assert run["status"] == "timed_out"
        assert run["access_token"] == lines[-1]["access_token"]
        assert run["scores"]["overall"] == 62
        assert run["layouts"] == []
