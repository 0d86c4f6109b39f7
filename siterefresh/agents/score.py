"""
Score Agent

Scores the site on eight dimensions plus overall, using the stage-1
analyses and the industry's benchmark rows, and writes the creative brief
the three creative agents work from.
"""

import json
import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from ..scoring.benchmarks import benchmark_note
from .base import BaseAgent, OnRetry
from .skills import SCORE
from .types import IndustrySeo, ScoreResult, ScreenshotAnalysis

logger = logging.getLogger(__name__)


class ScoreAgent(BaseAgent):
    """Nine-score rubric plus creative brief."""

    MAX_OUTPUT_TOKENS = 8192
    TEMPERATURE = 0.3

    @property
    def slug(self) -> str:
        return SCORE

    async def run(
        self,
        screenshot_analysis: ScreenshotAnalysis,
        industry_seo: IndustrySeo,
        benchmarks: Sequence[Any] = (),
        on_retry: OnRetry = None,
        run_id: Optional[UUID] = None,
    ) -> ScoreResult:
        """
        Score the site.

        Args:
            screenshot_analysis: Stage-1 structure analysis
            industry_seo: Stage-1 classification and SEO signals
            benchmarks: Benchmark rows for the classified industry

        Returns:
            ScoreResult with clamped scores and the creative brief
        """
        payload = {
            "industry": industry_seo.industry.name,
            "screenshotAnalysis": screenshot_analysis.to_dict(),
            "industrySeo": industry_seo.to_dict(),
            "benchmarkNote": benchmark_note(benchmarks),
            "benchmarkCount": len(benchmarks),
        }
        user_content = json.dumps(payload, indent=2, default=str)
        _, max_tokens = self.fit_to_budget(user_content, "")

        response = await self.call(user_content, user_content, max_tokens=max_tokens, on_retry=on_retry, run_id=run_id)
        result = ScoreResult.from_dict(self.parse_json(response.content), agent=self.slug)

        logger.info(
            f"[{self.slug}] Overall {result.overall} for {industry_seo.industry.name} "
            f"({len(benchmarks)} benchmark rows)"
        )
        return result
