"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from siterefresh.agents.registry import AgentSet
from siterefresh.agents.skills import CREATIVE_SLUGS
from siterefresh.agents.types import CreativeLayout, IndustrySeo, ScoreResult, ScreenshotAnalysis
from siterefresh.analyzer import token_budget
from siterefresh.analyzer.client import CompletionResponse, TokenUsage
from siterefresh.collector.fetcher import RawPage
from siterefresh.database import Repository, create_db_engine, init_db, make_session_factory
from siterefresh.utils.config import Settings


# ============================================================================
# Token Estimation
# ============================================================================

@pytest.fixture(autouse=True)
def offline_token_estimates(monkeypatch):
    """Use the character estimate so tests never fetch BPE files."""
    monkeypatch.setattr(token_budget, "_get_encoder", lambda: None)


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite so worker threads share one database."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repository(db_engine) -> Repository:
    return Repository(make_session_factory(db_engine))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ANTHROPIC_API_KEY="test-key",
        PIPELINE_DEADLINE_SECONDS=5.0,
        COOLDOWN_SECONDS=300,
        KEEPALIVE_SECONDS=15.0,
        _env_file=None,
    )


# ============================================================================
# Provider Fakes
# ============================================================================

def make_response(
    content: str,
    stop_reason: str = "end_turn",
    input_tokens: int = 1200,
    output_tokens: int = 800,
) -> CompletionResponse:
    return CompletionResponse(
        content=content,
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        model="claude-sonnet-4-20250514",
        stop_reason=stop_reason,
        latency_ms=42,
    )


@pytest.fixture
def fake_client():
    """ClaudeClient stand-in; set ``fake_client.complete.return_value``/``side_effect``."""
    client = MagicMock()
    client.complete = AsyncMock()
    return client


async def no_sleep(seconds: float):
    return None


# ============================================================================
# Agent Output Fixtures
# ============================================================================

@pytest.fixture
def screenshot_analysis_payload() -> Dict[str, Any]:
    return {
        "colors": {"primary": "#1a4d8f", "secondary": "#f5f5f5", "accent": "#e07a1f"},
        "typography": {"headingFont": "Merriweather", "bodyFont": "Open Sans"},
        "layout": {"heroType": "image", "navStyle": "horizontal", "sectionCount": 6},
        "visualDensity": 7,
        "brandAssets": {"logoDetected": True},
        "qualityScore": 58,
    }


@pytest.fixture
def industry_seo_payload() -> Dict[str, Any]:
    return {
        "industry": {
            "name": "Dentists",
            "confidence": 0.92,
            "reasoning": "Appointment booking and dental services listed",
            "alternatives": [{"name": "General Business", "confidence": 0.1}],
        },
        "seo": {"titleTag": "Smile Dental", "h1Count": 1, "issues": ["missing meta description"]},
        "copy": {"headline": "Gentle care for the whole family", "ctas": ["Book now"]},
    }


@pytest.fixture
def score_payload() -> Dict[str, Any]:
    return {
        "scores": {
            "overall": 62, "clarity": 70, "visual": 55, "hierarchy": 60, "trust": 68,
            "conversion": 48, "content": 66, "mobile": 72, "performance": 57,
        },
        "scoringDetails": [
            {
                "dimension": "conversion",
                "score": 48,
                "issues": ["Booking button below the fold"],
                "recommendations": ["Move booking CTA into the hero"],
            }
        ],
        "benchmark": {"hasData": False},
        "creativeBrief": {
            "priorities": [{"dimension": "conversion", "priority": 1, "guidance": "Prominent booking"}],
            "strengths": ["Friendly tone"],
            "industryRequirements": ["Insurance info"],
            "contentDirection": "Warm and reassuring",
            "technicalRequirements": ["Mobile-first"],
        },
    }


def layout_text(direction: str = "modern") -> str:
    return (
        f"<layout_html><!DOCTYPE html><html><body><div class=\"hero\">{direction} "
        f"Gentle care for the whole family</div></body></html></layout_html>"
        f"<rationale>A {direction} take on the current site.</rationale>"
    )


# ============================================================================
# Pipeline Fakes
# ============================================================================

class FakeAgent:
    """Agent stand-in whose ``run`` returns or raises a fixed value."""

    def __init__(self, slug: str, result: Any = None, error: Optional[BaseException] = None, delay: float = 0.0):
        self.slug = slug
        self.direction = slug
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = 0

    async def run(self, *args, on_retry=None, run_id=None, **kwargs):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeFetcher:
    """PageFetcher stand-in."""

    def __init__(self, html: str = "", css: str = "", error: Optional[BaseException] = None):
        self.page = RawPage(url="https://smiledental.com/", html=html, css=css)
        self.error = error
        self.calls: List[str] = []

    async def fetch_raw_page(self, url: str):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.page

    async def close(self):
        pass


SAMPLE_HTML = """<!DOCTYPE html>
<html><head>
<title>Smile Dental</title>
<meta name="generator" content="WordPress 6.4">
<meta property="og:image" content="/images/hero.jpg">
<style>body { font-family: 'Open Sans', sans-serif; color: #333333; } h1 { color: #1a4d8f; }</style>
</head><body>
<header><img src="/images/logo.png" alt="Smile Dental logo"></header>
<nav><a href="/">Home</a><a href="/services">Services</a><a href="/contact">Contact</a></nav>
<h1>Gentle care for the whole family</h1>
<p>Book your checkup today.</p>
<script src="/wp-content/themes/smile/app.js"></script>
</body></html>"""


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML


def json_text(payload: Dict[str, Any]) -> str:
    return json.dumps(payload)


# ============================================================================
# Pipeline Fakes
# ============================================================================

class FakeBuilder:
    """AgentBuilder stand-in that hands out a prepared AgentSet."""

    def __init__(self, agents: AgentSet):
        self.agents = agents
        self.skills = None

    def build(self, skills):
        self.skills = skills
        return self.agents


def make_layout(slug: str, text: str = "Gentle care for the whole family") -> CreativeLayout:
    return CreativeLayout(direction=slug, html=f"<html><body><div>{text}</div></body></html>", rationale=slug)


@pytest.fixture
def agents(screenshot_analysis_payload, industry_seo_payload, score_payload) -> AgentSet:
    return AgentSet(
        screenshot_analysis=FakeAgent("screenshot-analysis", ScreenshotAnalysis.from_dict(screenshot_analysis_payload)),
        industry_seo=FakeAgent("industry-seo", IndustrySeo.from_dict(industry_seo_payload)),
        score=FakeAgent("score", ScoreResult.from_dict(score_payload)),
        creatives=[FakeAgent(slug, make_layout(slug)) for slug in CREATIVE_SLUGS],
    )
