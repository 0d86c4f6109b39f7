"""
Repository Layer - Clean Interface for Data Operations

Provides simple methods to store and retrieve pipeline data.
Handles all SQLAlchemy complexity internally and returns plain dicts,
IDs and snapshots so callers never hold live sessions.

All methods are blocking; the async orchestrator calls them through
``asyncio.to_thread``.
"""

import logging
import secrets
from typing import List, Dict, Any, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker, selectinload

from .models import (
    UrlProfile, AnalysisRun, RunLayout, AgentSkill, IndustryBenchmark, PromptLog,
    RunStatus, TERMINAL_STATUSES, RESULT_STATUSES, MAX_LAYOUT_SLOTS, utcnow,
)
from .session import get_db_context
from ..agents.skills import DEFAULT_SKILLS, SkillSnapshot
from ..persistence.prompt_log import PromptLogEntry
from ..utils.urls import normalize_url, extract_domain

logger = logging.getLogger(__name__)

SCORE_COLUMNS = (
    "overall_score", "clarity_score", "visual_score", "hierarchy_score", "trust_score",
    "conversion_score", "content_score", "mobile_score", "performance_score",
)

TIMED_OUT_MESSAGE = "Timed out, partial result"


# =============================================================================
# SERIALIZERS
# =============================================================================

def _profile_to_dict(p: UrlProfile) -> Dict[str, Any]:
    return {
        "id": p.id,
        "url": p.url,
        "domain": p.domain,
        "industry": p.industry,
        "industry_locked": p.industry_locked,
        "cms": p.cms,
        "cms_locked": p.cms_locked,
        "analysis_count": p.analysis_count,
        "first_analyzed_at": p.first_analyzed_at,
        "last_analyzed_at": p.last_analyzed_at,
        "latest_score": p.latest_score,
        "best_score": p.best_score,
    }


def _layout_to_dict(layout: RunLayout) -> Dict[str, Any]:
    return {
        "slot": layout.slot,
        "direction": layout.direction,
        "html": layout.html,
        "css": layout.css,
        "rationale": layout.rationale,
        "leak_matches": layout.leak_matches or [],
        "extraction_method": layout.extraction_method,
        "truncated": bool(layout.truncated),
    }


def _run_to_dict(run: AnalysisRun, include_layouts: bool = True) -> Dict[str, Any]:
    data = {
        "id": run.id,
        "profile_id": run.profile_id,
        "target_url": run.target_url,
        "access_token": run.access_token,
        "status": run.status.value,
        "current_stage": run.current_stage,
        "screenshot_url": run.screenshot_url,
        "skill_versions": run.skill_versions or {},
        "screenshot_analysis": run.screenshot_analysis,
        "industry_seo": run.industry_seo,
        "brand_assets": run.brand_assets,
        "industry": run.industry,
        "industry_confidence": run.industry_confidence,
        "scores": {col[:-len("_score")]: getattr(run, col) for col in SCORE_COLUMNS},
        "scoring_details": run.scoring_details or [],
        "creative_brief": run.creative_brief,
        "benchmark_comparison": run.benchmark_comparison,
        "started_at": run.started_at,
        "completed_at": run.completed_at,
        "duration_seconds": run.duration_seconds,
        "error_message": run.error_message,
    }
    if include_layouts:
        data["layouts"] = [_layout_to_dict(layout) for layout in run.layouts]
    return data


def _skill_to_snapshot(skill: AgentSkill) -> SkillSnapshot:
    return SkillSnapshot(
        slug=skill.slug,
        version=skill.version,
        system_prompt=skill.system_prompt,
        model=skill.model,
        temperature=skill.temperature,
        max_tokens=skill.max_tokens,
    )


def _benchmark_to_dict(b: IndustryBenchmark) -> Dict[str, Any]:
    data = {"industry": b.industry, "url": b.url}
    for col in SCORE_COLUMNS:
        data[col] = getattr(b, col)
    return data


# =============================================================================
# REPOSITORY
# =============================================================================

class Repository:
    """
    Data access for profiles, runs, layouts, skills, benchmarks and prompt logs.

    Usage:
        repo = Repository()
        profile = repo.find_or_create_profile("https://www.example.com/")
        run_id, token = repo.create_run(profile["id"], profile["url"], {"score": 1})
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory

    def _session(self):
        return get_db_context(self._session_factory)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def find_or_create_profile(self, raw_url: str) -> Dict[str, Any]:
        """
        Resolve a raw URL to its profile, creating it when missing.

        A single ``INSERT ... ON CONFLICT DO NOTHING`` followed by a select,
        so concurrent callers for the same URL end up on the same row.

        Raises:
            InvalidURLError: URL cannot be normalized
        """
        url = normalize_url(raw_url)
        domain = extract_domain(raw_url)

        with self._session() as db:
            dialect = db.get_bind().dialect.name
            if dialect == "postgresql":
                stmt = postgresql.insert(UrlProfile)
            else:
                stmt = sqlite.insert(UrlProfile)
            stmt = stmt.values(url=url, domain=domain).on_conflict_do_nothing(index_elements=["url"])
            result = db.execute(stmt)

            profile = db.execute(select(UrlProfile).where(UrlProfile.url == url)).scalar_one()
            if result.rowcount:
                logger.info(f"Created profile {profile.id} for {url}")
            return _profile_to_dict(profile)

    def get_profile(self, profile_id: UUID) -> Optional[Dict[str, Any]]:
        with self._session() as db:
            profile = db.get(UrlProfile, profile_id)
            return _profile_to_dict(profile) if profile else None

    def update_profile_after_run(
        self,
        profile_id: UUID,
        overall_score: Optional[int] = None,
        industry: Optional[str] = None,
        cms: Optional[str] = None,
    ):
        """
        Roll a finished run into the profile aggregates.

        Industry and CMS are only written when the profile field is not locked.
        """
        with self._session() as db:
            profile = db.execute(
                select(UrlProfile).where(UrlProfile.id == profile_id).with_for_update()
            ).scalar_one_or_none()
            if not profile:
                logger.warning(f"Profile {profile_id} not found for aggregate update")
                return

            now = utcnow()
            profile.analysis_count = (profile.analysis_count or 0) + 1
            if profile.first_analyzed_at is None:
                profile.first_analyzed_at = now
            profile.last_analyzed_at = now

            if overall_score is not None:
                profile.latest_score = overall_score
                if profile.best_score is None or overall_score > profile.best_score:
                    profile.best_score = overall_score

            if industry and not profile.industry_locked:
                profile.industry = industry
            if cms and not profile.cms_locked:
                profile.cms = cms

    def get_latest_result_run(self, profile_id: UUID) -> Optional[Dict[str, Any]]:
        """Most recent run of the profile that left a viewable result, if any."""
        with self._session() as db:
            run = db.execute(
                select(AnalysisRun)
                .where(
                    AnalysisRun.profile_id == profile_id,
                    AnalysisRun.status.in_(RESULT_STATUSES),
                )
                .order_by(AnalysisRun.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _run_to_dict(run, include_layouts=False) if run else None

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    def create_run(
        self,
        profile_id: UUID,
        target_url: str,
        skill_versions: Optional[Dict[str, int]] = None,
    ) -> Tuple[UUID, str]:
        """
        Create a placeholder run in ``pending`` status.

        Returns:
            (run_id, access_token)
        """
        access_token = secrets.token_urlsafe(24)
        with self._session() as db:
            run = AnalysisRun(
                profile_id=profile_id,
                target_url=target_url,
                access_token=access_token,
                status=RunStatus.PENDING,
                current_stage="created",
                skill_versions=skill_versions or {},
                started_at=utcnow(),
            )
            db.add(run)
            db.flush()
            run_id = run.id

        logger.info(f"Created analysis run {run_id} for {target_url}")
        return run_id, access_token

    def _guarded_update(self, db: Session, run_id: UUID, values: Dict[str, Any]) -> bool:
        result = db.execute(
            update(AnalysisRun)
            .where(
                AnalysisRun.id == run_id,
                AnalysisRun.status.notin_(TERMINAL_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def update_run(self, run_id: UUID, **fields) -> bool:
        """
        Update columns of a non-terminal run.

        Returns:
            False when the run is missing or already terminal (nothing written)
        """
        with self._session() as db:
            updated = self._guarded_update(db, run_id, fields)
        if not updated:
            logger.warning(f"Ignored update to terminal or missing run {run_id}: {sorted(fields)}")
        return updated

    def finish_run(
        self,
        run_id: UUID,
        status: RunStatus,
        error_message: Optional[str] = None,
        **fields,
    ) -> bool:
        """Move a run to a terminal status, recording completion time and duration."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status} is not a terminal status")

        completed_at = utcnow()
        values = dict(fields)
        values.update(status=status, completed_at=completed_at, current_stage=status.value)
        if error_message is not None:
            values["error_message"] = error_message

        # Write first so SQLite takes the write lock before any read
        with self._session() as db:
            updated = self._guarded_update(db, run_id, values)
            if updated:
                run = db.get(AnalysisRun, run_id)
                if run.started_at:
                    run.duration_seconds = (completed_at - run.started_at).total_seconds()

        if updated:
            log = logger.error if status == RunStatus.FAILED else logger.info
            log(f"Run {run_id} finished: {status.value}" + (f" ({error_message})" if error_message else ""))
        else:
            logger.warning(f"Run {run_id} missing or already terminal, {status.value} ignored")
        return updated

    def mark_run_failed(self, run_id: UUID, error_message: str) -> bool:
        return self.finish_run(run_id, RunStatus.FAILED, error_message=error_message)

    def mark_run_timed_out(self, run_id: UUID) -> bool:
        return self.finish_run(run_id, RunStatus.TIMED_OUT, error_message=TIMED_OUT_MESSAGE)

    def save_layout(
        self,
        run_id: UUID,
        slot: int,
        direction: str,
        html: str,
        css: str = "",
        rationale: str = "",
        leak_matches: Optional[List[Dict[str, Any]]] = None,
        extraction_method: str = "tagged",
        truncated: bool = False,
    ) -> bool:
        """
        Store one generated layout in its slot.

        The run row is claimed with a guarded UPDATE in the same transaction
        as the insert, so a layout cannot land after the run turned terminal.

        Returns:
            False when the run is missing or terminal
        """
        if not 1 <= slot <= MAX_LAYOUT_SLOTS:
            raise ValueError(f"Layout slot must be 1..{MAX_LAYOUT_SLOTS}, got {slot}")

        with self._session() as db:
            if not self._guarded_update(db, run_id, {"current_stage": "generating"}):
                logger.warning(f"Layout {slot} for run {run_id} dropped (run missing or terminal)")
                return False

            db.add(RunLayout(
                run_id=run_id,
                slot=slot,
                direction=direction,
                html=html,
                css=css,
                rationale=rationale,
                leak_matches=leak_matches or [],
                extraction_method=extraction_method,
                truncated=truncated,
            ))

        logger.debug(f"Saved layout {slot} ({direction}) for run {run_id}")
        return True

    def get_run(self, run_id: UUID) -> Optional[Dict[str, Any]]:
        """Full run data including layouts."""
        with self._session() as db:
            run = db.execute(
                select(AnalysisRun)
                .options(selectinload(AnalysisRun.layouts))
                .where(AnalysisRun.id == run_id)
            ).scalar_one_or_none()
            return _run_to_dict(run) if run else None

    def get_run_for_token(self, run_id: UUID, access_token: str) -> Optional[Dict[str, Any]]:
        """Run data only when ``access_token`` matches."""
        run = self.get_run(run_id)
        if run is None or not secrets.compare_digest(run["access_token"], access_token or ""):
            return None
        return run

    # -------------------------------------------------------------------------
    # Skills & benchmarks
    # -------------------------------------------------------------------------

    def load_active_skills(self) -> List[SkillSnapshot]:
        with self._session() as db:
            rows = db.execute(
                select(AgentSkill).where(AgentSkill.is_active.is_(True))
            ).scalars().all()
            return [_skill_to_snapshot(row) for row in rows]

    def add_skill(
        self,
        slug: str,
        version: int,
        system_prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        is_active: bool = True,
    ):
        with self._session() as db:
            db.add(AgentSkill(
                slug=slug,
                version=version,
                system_prompt=system_prompt,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                is_active=is_active,
            ))

    def seed_default_skills(self) -> int:
        """
        Insert version 1 of every built-in skill that has no rows yet.

        Returns:
            Number of skills inserted
        """
        inserted = 0
        with self._session() as db:
            existing = set(db.execute(select(AgentSkill.slug).distinct()).scalars().all())
            for slug, skill in DEFAULT_SKILLS.items():
                if slug in existing:
                    continue
                db.add(AgentSkill(slug=slug, version=1, system_prompt=skill.system_prompt, is_active=True))
                inserted += 1

        if inserted:
            logger.info(f"Seeded {inserted} default agent skills")
        return inserted

    def load_benchmarks(self, industry: str) -> List[Dict[str, Any]]:
        with self._session() as db:
            rows = db.execute(
                select(IndustryBenchmark).where(IndustryBenchmark.industry == industry)
            ).scalars().all()
            return [_benchmark_to_dict(row) for row in rows]

    def add_benchmark_row(self, industry: str, url: str, scores: Dict[str, int]):
        """
        Store one reference site.

        Args:
            scores: {"overall": 70, "clarity": 65, ...}
        """
        with self._session() as db:
            db.add(IndustryBenchmark(
                industry=industry,
                url=url,
                **{f"{name}_score": value for name, value in scores.items()},
            ))

    # -------------------------------------------------------------------------
    # Prompt logs
    # -------------------------------------------------------------------------

    def create_prompt_log(self, entry: PromptLogEntry):
        with self._session() as db:
            db.add(PromptLog(
                run_id=entry.run_id,
                step=entry.step,
                model=entry.model,
                prompt=entry.prompt,
                response=entry.response,
                input_tokens=entry.input_tokens,
                output_tokens=entry.output_tokens,
                latency_ms=entry.latency_ms,
            ))
