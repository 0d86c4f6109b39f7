"""
Analysis Orchestrator - Runs the 5-stage redesign pipeline.

Stages:
0. Validate URL, resolve profile, cooldown check, create run, fetch page
1. Structure analysis + industry/SEO + asset extraction (fail-fast)
2. Scoring against industry benchmarks
3. Three creative layouts (fail-soft, at least one must succeed)
4. Screenshot upload, benchmark comparison, finalize, profile aggregates

The whole run is raced against a deadline. When it expires after the run
record exists, the run is marked ``timed_out`` and whatever already landed
is kept. This is the only layer that writes a terminal ``failed`` status.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from ..agents.registry import AgentBuilder, AgentSet
from ..agents.skills import DEFAULT_SKILLS, SkillSnapshot, resolve_skills, skill_versions
from ..agents.types import CreativeLayout, ScoreResult
from ..analyzer.retry import is_quota_error
from ..cache.seed_cache import SeedCache
from ..collector.assets import BrandAssets, extract_assets
from ..collector.cms import detect_cms
from ..collector.fetcher import NullScreenshotCapture, PageFetcher, RawPage
from ..database.models import RunStatus
from ..database.repository import Repository
from ..errors import (
    GENERIC_FAILURE_MESSAGE,
    CreativeGenerationError,
    FetchError,
    PipelineError,
    PipelineTimeoutError,
)
from ..persistence.storage import BlobStorage
from ..quality.leak_scanner import scan_for_leaks, log_leak_warnings
from ..scoring.benchmarks import compare_to_benchmarks
from ..utils.config import Settings, get_settings
from ..utils.urls import normalize_url
from .events import (
    AnalyzingEvent,
    GeneratingEvent,
    ProgressEvent,
    RetryingEvent,
    ScoringEvent,
    StartedEvent,
)
from .url_profile import find_cooldown_run

logger = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[ProgressEvent], Any]]
RunCreatedCallback = Optional[Callable[[UUID], Any]]

QUOTA_MESSAGE = "Our analysis service is temporarily unavailable. Please try again later."


@dataclass
class AnalysisOutcome:
    """What a caller gets back from a run (or a cooldown hit)."""
    run_id: UUID
    access_token: str
    status: str
    from_cooldown: bool = False


@dataclass
class _RunState:
    """Mutable state shared between the deadline wrapper and the stages."""
    run_id: Optional[UUID] = None
    access_token: Optional[str] = None
    failed: bool = False


def user_message_for(error: BaseException) -> str:
    """Short, non-technical message for an error that ended a run."""
    if isinstance(error, PipelineError):
        return error.user_message
    if is_quota_error(error):
        return QUOTA_MESSAGE
    return GENERIC_FAILURE_MESSAGE


async def _maybe_await(value: Any):
    if inspect.isawaitable(value):
        await value


async def _gather_fail_fast(*aws: Awaitable[Any]) -> List[Any]:
    """Run concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


class AnalysisOrchestrator:
    """
    Coordinates agents, collectors and persistence for one analysis.

    All collaborators are injected so tests can substitute fakes.

    Usage:
        orchestrator = AnalysisOrchestrator(repository, seed_cache, agent_builder, fetcher)
        outcome = await orchestrator.run_analysis("example.com", on_progress=print)
    """

    def __init__(
        self,
        repository: Repository,
        seed_cache: SeedCache,
        agent_builder: AgentBuilder,
        fetcher: PageFetcher,
        screenshotter: Any = None,
        blob_storage: Optional[BlobStorage] = None,
        asset_extractor: Callable[[str, str, str], BrandAssets] = extract_assets,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.seed_cache = seed_cache
        self.agent_builder = agent_builder
        self.fetcher = fetcher
        self.screenshotter = screenshotter or NullScreenshotCapture()
        self.blob_storage = blob_storage
        self.asset_extractor = asset_extractor
        self.settings = settings or get_settings()

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def run_analysis(
        self,
        url: str,
        on_progress: ProgressCallback = None,
        on_run_created: RunCreatedCallback = None,
    ) -> AnalysisOutcome:
        """
        Run the pipeline for ``url`` under the deadline.

        Args:
            url: URL as submitted by the user
            on_progress: Receives ProgressEvents (sync or async)
            on_run_created: Receives the run id as soon as the record exists

        Returns:
            AnalysisOutcome (status ``complete``, ``timed_out``, or a reused run)

        Raises:
            InvalidURLError: URL rejected before any run was created
            FetchError: Page could not be fetched (no run created)
            PipelineTimeoutError: Deadline expired before a run existed
            Exception: Any other fatal error (run marked failed)
        """
        state = _RunState()
        deadline = self.settings.PIPELINE_DEADLINE_SECONDS

        try:
            return await asyncio.wait_for(
                self._execute(url, state, on_progress, on_run_created),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            if state.failed:
                raise
            if state.run_id is None:
                logger.error(f"Deadline of {deadline}s expired before a run existed for {url}")
                raise PipelineTimeoutError(f"Deadline of {deadline}s expired for {url}")

            logger.warning(f"[{state.run_id}] Deadline of {deadline}s expired, keeping partial result")
            await asyncio.to_thread(self.repository.mark_run_timed_out, state.run_id)
            return AnalysisOutcome(
                run_id=state.run_id,
                access_token=state.access_token,
                status=RunStatus.TIMED_OUT.value,
            )

    async def _emit(self, on_progress: ProgressCallback, event: ProgressEvent):
        if on_progress is None:
            return
        try:
            await _maybe_await(on_progress(event))
        except Exception as e:
            logger.warning(f"Progress callback failed for {event.type}: {e}")

    async def _execute(
        self,
        url: str,
        state: _RunState,
        on_progress: ProgressCallback,
        on_run_created: RunCreatedCallback,
    ) -> AnalysisOutcome:
        # Input errors surface before anything is written
        target = normalize_url(url)

        profile = await asyncio.to_thread(self.repository.find_or_create_profile, url)

        cached = await asyncio.to_thread(
            find_cooldown_run, self.repository, profile, self.settings.COOLDOWN_SECONDS
        )
        if cached is not None:
            return AnalysisOutcome(
                run_id=cached["id"],
                access_token=cached["access_token"],
                status=cached["status"],
                from_cooldown=True,
            )

        skills = await self._load_skills()
        agents = self.agent_builder.build(skills)

        # Unreachable pages are input errors and leave no run behind
        page, screenshot = await self._fetch_page(url)

        state.run_id, state.access_token = await asyncio.to_thread(
            self.repository.create_run, profile["id"], target, skill_versions(skills)
        )
        run_id = state.run_id

        try:
            if on_run_created is not None:
                await _maybe_await(on_run_created(run_id))
            await self._emit(on_progress, StartedEvent())

            async def on_retry(delay_ms: int):
                await self._emit(on_progress, RetryingEvent(delay_ms=delay_ms))

            await self._store_snapshot(run_id, page, screenshot)
            analysis, industry_seo, assets = await self._stage_analyze(
                run_id, agents, page, screenshot, on_progress, on_retry
            )
            industry = industry_seo.industry.name
            score, benchmarks = await self._stage_score(
                run_id, agents, analysis, industry_seo, on_progress, on_retry
            )
            await self._stage_generate(run_id, agents, score, industry, assets, on_progress, on_retry)
            await self._stage_finalize(run_id, profile, page, screenshot, score, benchmarks, industry)

        except Exception as e:
            state.failed = True
            message = user_message_for(e)
            logger.error(f"[{run_id}] Pipeline failed: {type(e).__name__}: {e}", exc_info=not isinstance(e, PipelineError))
            await asyncio.to_thread(self.repository.mark_run_failed, run_id, message)
            raise

        return AnalysisOutcome(
            run_id=run_id,
            access_token=state.access_token,
            status=RunStatus.COMPLETE.value,
        )

    async def _load_skills(self) -> Dict[str, SkillSnapshot]:
        active = await self.seed_cache.get_active_skills()
        skills = resolve_skills(active)
        missing = [slug for slug, skill in skills.items() if skill is DEFAULT_SKILLS.get(slug)]
        if missing:
            logger.warning(f"No active skill rows for {missing}, using built-in defaults")
        return skills

    # =========================================================================
    # STAGE 0: FETCH
    # =========================================================================

    async def _capture_screenshot(self, url: str) -> Optional[bytes]:
        try:
            return await self.screenshotter.capture(url)
        except Exception as e:
            logger.warning(f"Screenshot capture failed for {url}: {e}")
            return None

    async def _fetch_page(self, url: str):
        try:
            return await _gather_fail_fast(
                self.fetcher.fetch_raw_page(url),
                self._capture_screenshot(url),
            )
        except FetchError as e:
            logger.warning(f"Fetch failed for {url} ({e.kind}): {e}")
            raise

    async def _store_snapshot(self, run_id: UUID, page: RawPage, screenshot: Optional[bytes]):
        await asyncio.to_thread(
            self.repository.update_run,
            run_id,
            html=page.html,
            css=page.css,
            status=RunStatus.RUNNING,
            current_stage="fetched",
        )
        logger.info(f"[{run_id}] Stage 0 complete: page fetched, screenshot={'yes' if screenshot else 'no'}")

    # =========================================================================
    # STAGE 1: ANALYZE
    # =========================================================================

    async def _stage_analyze(
        self,
        run_id: UUID,
        agents: AgentSet,
        page: RawPage,
        screenshot: Optional[bytes],
        on_progress: ProgressCallback,
        on_retry,
    ):
        await self._emit(on_progress, AnalyzingEvent())

        analysis, industry_seo, assets = await _gather_fail_fast(
            agents.screenshot_analysis.run(page.html, screenshot, on_retry=on_retry, run_id=run_id),
            agents.industry_seo.run(page.html, page.css, on_retry=on_retry, run_id=run_id),
            asyncio.to_thread(self.asset_extractor, page.html, page.css, page.url),
        )
        analysis.used_screenshot = screenshot is not None

        await asyncio.to_thread(
            self.repository.update_run,
            run_id,
            screenshot_analysis=analysis.to_dict(),
            industry_seo=industry_seo.to_dict(),
            brand_assets=assets.to_dict(),
            industry=industry_seo.industry.name,
            industry_confidence=industry_seo.industry.confidence,
            current_stage="analyzed",
        )
        logger.info(
            f"[{run_id}] Stage 1 complete: {industry_seo.industry.name} "
            f"({industry_seo.industry.confidence:.2f}), density {analysis.visual_density}"
        )
        return analysis, industry_seo, assets

    # =========================================================================
    # STAGE 2: SCORE
    # =========================================================================

    async def _stage_score(
        self,
        run_id: UUID,
        agents: AgentSet,
        analysis,
        industry_seo,
        on_progress: ProgressCallback,
        on_retry,
    ):
        await self._emit(on_progress, ScoringEvent())

        benchmarks = await self.seed_cache.get_benchmarks(industry_seo.industry.name)
        score = await agents.score.run(analysis, industry_seo, benchmarks, on_retry=on_retry, run_id=run_id)

        await asyncio.to_thread(
            self.repository.update_run,
            run_id,
            scoring_details=[asdict(detail) for detail in score.scoring_details],
            creative_brief=score.creative_brief,
            current_stage="scored",
            **{f"{name}_score": value for name, value in score.scores.items()},
        )
        logger.info(f"[{run_id}] Stage 2 complete: overall {score.overall}")
        return score, benchmarks

    # =========================================================================
    # STAGE 3: GENERATE
    # =========================================================================

    async def _stage_generate(
        self,
        run_id: UUID,
        agents: AgentSet,
        score: ScoreResult,
        industry: str,
        assets: BrandAssets,
        on_progress: ProgressCallback,
        on_retry,
    ) -> List[CreativeLayout]:
        await self._emit(on_progress, GeneratingEvent())
        brand_input = assets.to_creative_input()

        async def generate(slot: int, agent) -> CreativeLayout:
            layout = await agent.run(score.creative_brief, industry, brand_input, on_retry=on_retry, run_id=run_id)

            scan = scan_for_leaks(layout.html)
            log_leak_warnings(scan, layout.direction, run_id=str(run_id))

            await asyncio.to_thread(
                self.repository.save_layout,
                run_id,
                slot,
                layout.direction,
                layout.html,
                layout.css,
                layout.rationale,
                [m.to_dict() for m in scan.matches],
                layout.extraction_method,
                layout.truncated,
            )
            return layout

        results = await asyncio.gather(
            *(generate(slot, agent) for slot, agent in enumerate(agents.creatives, start=1)),
            return_exceptions=True,
        )

        layouts = []
        for agent, result in zip(agents.creatives, results):
            if isinstance(result, BaseException):
                logger.warning(f"[{run_id}] {agent.slug} failed: {type(result).__name__}: {result}")
            else:
                layouts.append(result)

        if not layouts:
            raise CreativeGenerationError(f"All {len(results)} creative directions failed")

        logger.info(f"[{run_id}] Stage 3 complete: {len(layouts)}/{len(results)} layouts")
        return layouts

    # =========================================================================
    # STAGE 4: FINALIZE
    # =========================================================================

    async def _upload_screenshot(self, run_id: UUID, screenshot: Optional[bytes]) -> Optional[str]:
        if not screenshot or self.blob_storage is None:
            return None
        try:
            return await self.blob_storage.upload_blob(f"screenshots/{run_id}.png", screenshot, "image/png")
        except Exception as e:
            logger.warning(f"[{run_id}] Screenshot upload failed: {e}")
            return None

    async def _stage_finalize(
        self,
        run_id: UUID,
        profile: Dict[str, Any],
        page: RawPage,
        screenshot: Optional[bytes],
        score: ScoreResult,
        benchmarks,
        industry: str,
    ):
        screenshot_url = await self._upload_screenshot(run_id, screenshot)
        comparison = compare_to_benchmarks(score.scores, benchmarks)
        cms = detect_cms(page.html)

        await asyncio.to_thread(
            self.repository.finish_run,
            run_id,
            RunStatus.COMPLETE,
            screenshot_url=screenshot_url,
            benchmark_comparison=comparison,
        )
        await asyncio.to_thread(
            self.repository.update_profile_after_run,
            profile["id"],
            score.overall,
            industry,
            cms,
        )
        logger.info(f"[{run_id}] Stage 4 complete: run finished (cms={cms or 'unknown'})")
