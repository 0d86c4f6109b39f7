"""
Agent Registry

Builds the full set of pipeline agents for one run from that run's skill
snapshot. The orchestrator takes a builder so tests can hand it fakes.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from .creative import CreativeAgent
from .industry_seo import IndustrySeoAgent
from .score import ScoreAgent
from .screenshot_analysis import ScreenshotAnalysisAgent
from .skills import CREATIVE_SLUGS, INDUSTRY_SEO, SCORE, SCREENSHOT_ANALYSIS, SkillSnapshot

if TYPE_CHECKING:
    from ..analyzer.client import ClaudeClient
    from ..persistence.prompt_log import PromptLogger


@dataclass
class AgentSet:
    """Agents for one pipeline run."""
    screenshot_analysis: ScreenshotAnalysisAgent
    industry_seo: IndustrySeoAgent
    score: ScoreAgent
    creatives: List[CreativeAgent]


class AgentBuilder:
    """Creates an AgentSet bound to a shared client and prompt logger."""

    def __init__(
        self,
        client: "ClaudeClient",
        prompt_logger: Optional["PromptLogger"] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.prompt_logger = prompt_logger
        self._sleep = sleep

    def build(self, skills: Dict[str, SkillSnapshot]) -> AgentSet:
        common = {"prompt_logger": self.prompt_logger, "sleep": self._sleep}
        return AgentSet(
            screenshot_analysis=ScreenshotAnalysisAgent(self.client, skills.get(SCREENSHOT_ANALYSIS), **common),
            industry_seo=IndustrySeoAgent(self.client, skills.get(INDUSTRY_SEO), **common),
            score=ScoreAgent(self.client, skills.get(SCORE), **common),
            creatives=[
                CreativeAgent(self.client, slug, skill=skills.get(slug), **common)
                for slug in CREATIVE_SLUGS
            ],
        )
