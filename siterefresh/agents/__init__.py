"""
Pipeline Agents

Four agent roles, each: build input -> provider call (with retry and a
token budget check) -> prompt log -> parse -> typed result.

- ScreenshotAnalysisAgent: design system from screenshot + HTML
- IndustrySeoAgent: constrained industry, SEO and copy signals
- ScoreAgent: nine scores and the creative brief
- CreativeAgent: one redesigned page per direction
"""

from .base import BaseAgent
from .creative import CreativeAgent
from .industry_seo import IndustrySeoAgent
from .registry import AgentBuilder, AgentSet
from .score import ScoreAgent
from .screenshot_analysis import ScreenshotAnalysisAgent
from .skills import (
    CREATIVE_SLUGS,
    DEFAULT_SKILLS,
    VALID_SLUGS,
    SkillSnapshot,
    resolve_skills,
    skill_versions,
)
from .types import (
    FALLBACK_INDUSTRY,
    INDUSTRIES,
    CreativeLayout,
    IndustryClassification,
    IndustrySeo,
    ScoreResult,
    ScoringDetail,
    ScreenshotAnalysis,
    constrain_industry,
)

__all__ = [
    "BaseAgent",
    "CreativeAgent",
    "IndustrySeoAgent",
    "ScoreAgent",
    "ScreenshotAnalysisAgent",
    "AgentBuilder",
    "AgentSet",
    "CREATIVE_SLUGS",
    "DEFAULT_SKILLS",
    "VALID_SLUGS",
    "SkillSnapshot",
    "resolve_skills",
    "skill_versions",
    "FALLBACK_INDUSTRY",
    "INDUSTRIES",
    "CreativeLayout",
    "IndustryClassification",
    "IndustrySeo",
    "ScoreResult",
    "ScoringDetail",
    "ScreenshotAnalysis",
    "constrain_industry",
]
