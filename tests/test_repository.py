"""
Tests for the repository layer against a temporary SQLite database.

These tests verify:
- Profile upsert deduplicates URL spellings, including concurrent callers
- Profile aggregates and locked fields
- Runs: creation, guarded updates, terminal immutability
- Layout slots and token-checked reads
- Skills, benchmarks and prompt logs
"""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from siterefresh.agents.skills import DEFAULT_SKILLS
from siterefresh.database import (
    PromptLog,
    RunStatus,
    TIMED_OUT_MESSAGE,
    UrlProfile,
    get_db_context,
)
from siterefresh.errors import InvalidURLError
from siterefresh.persistence import PromptLogEntry


# =============================================================================
# PROFILES
# =============================================================================

class TestProfiles:
    """Test profile upsert and aggregates."""

    def test_equivalent_urls_share_profile(self, repository):
        first = repository.find_or_create_profile("https://www.SmileDental.com/?utm_source=ad")
        second = repository.find_or_create_profile("smiledental.com")

        assert first["id"] == second["id"]
        assert first["url"] == "smiledental.com"
        assert first["domain"] == "smiledental.com"
        assert first["analysis_count"] == 0

    def test_invalid_url(self, repository):
        with pytest.raises(InvalidURLError):
            repository.find_or_create_profile("not a url")

    @pytest.mark.asyncio
    async def test_concurrent_upsert_creates_one_row(self, repository):
        """Parallel first requests for one URL end up on the same profile."""
        spellings = ["smiledental.com", "https://smiledental.com/", "http://www.smiledental.com", "SMILEDENTAL.COM/", "smiledental.com/?ref=x"]

        profiles = await asyncio.gather(
            *(asyncio.to_thread(repository.find_or_create_profile, url) for url in spellings)
        )

        assert len({p["id"] for p in profiles}) == 1
        with get_db_context(repository._session_factory) as db:
            count = db.execute(select(func.count()).select_from(UrlProfile)).scalar_one()
        assert count == 1

    def test_update_after_run(self, repository):
        profile = repository.find_or_create_profile("smiledental.com")

        repository.update_profile_after_run(profile["id"], overall_score=55, industry="Dentists", cms="WordPress")
        repository.update_profile_after_run(profile["id"], overall_score=48)

        updated = repository.get_profile(profile["id"])
        assert updated["analysis_count"] == 2
        assert updated["latest_score"] == 48
        assert updated["best_score"] == 55
        assert updated["industry"] == "Dentists"
        assert updated["cms"] == "WordPress"
        assert updated["first_analyzed_at"] <= updated["last_analyzed_at"]

    def test_locked_fields_not_overwritten(self, repository):
        profile = repository.find_or_create_profile("smiledental.com")
        with get_db_context(repository._session_factory) as db:
            row = db.get(UrlProfile, profile["id"])
            row.industry = "Dentists"
            row.industry_locked = True

        repository.update_profile_after_run(profile["id"], overall_score=60, industry="General Business", cms="Wix")

        updated = repository.get_profile(profile["id"])
        assert updated["industry"] == "Dentists"
        assert updated["cms"] == "Wix"


# =============================================================================
# RUNS
# =============================================================================

@pytest.fixture
def profile(repository):
    return repository.find_or_create_profile("smiledental.com")


@pytest.fixture
def run(repository, profile):
    run_id, token = repository.create_run(profile["id"], "https://smiledental.com/", {"score": 1})
    return run_id, token


class TestRuns:
    """Test run lifecycle."""

    def test_create_run(self, repository, run):
        run_id, token = run
        data = repository.get_run(run_id)

        assert data["status"] == "pending"
        assert data["current_stage"] == "created"
        assert data["skill_versions"] == {"score": 1}
        assert data["access_token"] == token
        assert len(token) >= 32
        assert data["layouts"] == []

    def test_tokens_unique(self, repository, profile):
        tokens = {repository.create_run(profile["id"], "https://smiledental.com/")[1] for _ in range(5)}
        assert len(tokens) == 5

    def test_update_and_finish(self, repository, run):
        run_id, _ = run
        assert repository.update_run(run_id, status=RunStatus.RUNNING, overall_score=61, current_stage="scored")

        assert repository.finish_run(run_id, RunStatus.COMPLETE, screenshot_url="file:///tmp/x.png")

        data = repository.get_run(run_id)
        assert data["status"] == "complete"
        assert data["current_stage"] == "complete"
        assert data["scores"]["overall"] == 61
        assert data["screenshot_url"] == "file:///tmp/x.png"
        assert data["completed_at"] is not None
        assert data["duration_seconds"] >= 0

    def test_terminal_run_is_immutable(self, repository, run):
        """No writes land after a terminal status."""
        run_id, _ = run
        repository.mark_run_failed(run_id, "Analysis failed. Please try again in a few minutes.")

        assert repository.update_run(run_id, overall_score=99) is False
        assert repository.mark_run_timed_out(run_id) is False
        assert repository.finish_run(run_id, RunStatus.COMPLETE) is False

        data = repository.get_run(run_id)
        assert data["status"] == "failed"
        assert data["scores"]["overall"] == 0
        assert data["error_message"] == "Analysis failed. Please try again in a few minutes."

    def test_timed_out_message(self, repository, run):
        run_id, _ = run
        assert repository.mark_run_timed_out(run_id)
        data = repository.get_run(run_id)
        assert data["status"] == "timed_out"
        assert data["error_message"] == TIMED_OUT_MESSAGE

    def test_finish_requires_terminal_status(self, repository, run):
        with pytest.raises(ValueError):
            repository.finish_run(run[0], RunStatus.RUNNING)

    def test_token_checked_read(self, repository, run):
        run_id, token = run
        assert repository.get_run_for_token(run_id, token)["id"] == run_id
        assert repository.get_run_for_token(run_id, "wrong") is None
        assert repository.get_run_for_token(run_id, None) is None

    def test_latest_result_run_skips_in_flight(self, repository, profile):
        done_id, _ = repository.create_run(profile["id"], "https://smiledental.com/")
        repository.finish_run(done_id, RunStatus.COMPLETE)
        repository.create_run(profile["id"], "https://smiledental.com/")
        failed_id, _ = repository.create_run(profile["id"], "https://smiledental.com/")
        repository.mark_run_failed(failed_id, "boom")

        latest = repository.get_latest_result_run(profile["id"])

        assert latest["id"] == done_id
        assert "layouts" not in latest


class TestLayouts:
    """Test layout slots."""

    def test_layouts_ordered_by_slot(self, repository, run):
        run_id, _ = run
        repository.save_layout(run_id, 3, "creative-unique", "<html>3</html>")
        repository.save_layout(run_id, 1, "creative-modern", "<html>1</html>", leak_matches=[{"pattern": "x"}])

        layouts = repository.get_run(run_id)["layouts"]

        assert [layout["slot"] for layout in layouts] == [1, 3]
        assert layouts[0]["leak_matches"] == [{"pattern": "x"}]
        assert layouts[1]["leak_matches"] == []

    @pytest.mark.parametrize("slot", [0, 7])
    def test_slot_range(self, repository, run, slot):
        with pytest.raises(ValueError):
            repository.save_layout(run[0], slot, "creative-modern", "<html></html>")

    def test_no_layouts_after_terminal(self, repository, run):
        run_id, _ = run
        repository.mark_run_timed_out(run_id)

        assert repository.save_layout(run_id, 1, "creative-modern", "<html></html>") is False
        assert repository.get_run(run_id)["layouts"] == []

    def test_missing_run_rejected(self, repository):
        assert repository.save_layout(uuid4(), 1, "creative-modern", "<html></html>") is False

    def test_layout_provenance_stored(self, repository, run):
        run_id, _ = run
        repository.save_layout(run_id, 2, "creative-classy", "<html>2</html>", extraction_method="direct", truncated=True)

        layout = repository.get_run(run_id)["layouts"][0]

        assert layout["extraction_method"] == "direct"
        assert layout["truncated"] is True

    @pytest.mark.asyncio
    async def test_saves_racing_timeout_stay_consistent(self, repository, run):
        """Every stored layout was accepted, and nothing is accepted after the timeout."""
        run_id, _ = run
        slots = range(1, 7)

        *accepted, _ = await asyncio.gather(
            *(asyncio.to_thread(repository.save_layout, run_id, slot, "creative-modern", f"<html>{slot}</html>") for slot in slots),
            asyncio.to_thread(repository.mark_run_timed_out, run_id),
        )

        stored = {layout["slot"] for layout in repository.get_run(run_id)["layouts"]}
        assert stored == {slot for slot, ok in zip(slots, accepted) if ok}
        assert repository.get_run(run_id)["status"] == "timed_out"
        assert repository.save_layout(run_id, 1, "creative-modern", "<html>late</html>") is False


# =============================================================================
# SKILLS, BENCHMARKS, PROMPT LOGS
# =============================================================================

class TestReferenceData:
    """Test skills, benchmarks and prompt logs."""

    def test_seed_default_skills_once(self, repository):
        assert repository.seed_default_skills() == len(DEFAULT_SKILLS)
        assert repository.seed_default_skills() == 0

        skills = repository.load_active_skills()
        assert {s.slug for s in skills} == set(DEFAULT_SKILLS)
        assert all(s.version == 1 for s in skills)

    def test_seed_skips_existing_slug(self, repository):
        repository.add_skill("score", 4, "custom score prompt", temperature=0.2)

        assert repository.seed_default_skills() == len(DEFAULT_SKILLS) - 1
        score = [s for s in repository.load_active_skills() if s.slug == "score"]
        assert [(s.version, s.temperature) for s in score] == [(4, 0.2)]

    def test_inactive_skills_not_loaded(self, repository):
        repository.add_skill("score", 2, "retired", is_active=False)
        assert repository.load_active_skills() == []

    def test_benchmarks_by_industry(self, repository):
        repository.add_benchmark_row("Dentists", "https://a.example", {"overall": 70, "clarity": 65})
        repository.add_benchmark_row("Lawyers", "https://b.example", {"overall": 50})

        rows = repository.load_benchmarks("Dentists")

        assert len(rows) == 1
        assert rows[0]["overall_score"] == 70
        assert rows[0]["clarity_score"] == 65
        assert rows[0]["trust_score"] == 0
        assert repository.load_benchmarks("Restaurants") == []

    def test_prompt_log_written(self, repository, run):
        repository.create_prompt_log(PromptLogEntry(
            step="score", model="claude", prompt="p", response="r",
            input_tokens=10, output_tokens=20, latency_ms=5, run_id=run[0],
        ))
        with get_db_context(repository._session_factory) as db:
            row = db.execute(select(PromptLog)).scalar_one()
            assert (row.step, row.input_tokens, row.run_id) == ("score", 10, run[0])
