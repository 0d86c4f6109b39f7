"""
Typed Agent Outputs

The parser only guarantees JSON-like data. Each agent result is checked
here for the fields the next stage reads, with numeric values clamped to
their legal ranges, before it is allowed downstream.
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional

from ..errors import AgentOutputError
from ..scoring.benchmarks import SCORE_DIMENSIONS

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

INDUSTRIES = (
    "Accountants",
    "Lawyers",
    "Golf Courses",
    "Beauty Salons",
    "Barbershops",
    "HOAs",
    "Veterinary Clinics",
    "Property Management",
    "Funeral Homes",
    "Daycares",
    "Lawn Care",
    "Insurance Agencies",
    "Gun Clubs",
    "Community Theatres",
    "Dentists",
    "Real Estate Agents",
    "Restaurants",
    "Fitness Studios",
    "Auto Repair",
    "General Contractors",
    "General Business",
)

FALLBACK_INDUSTRY = "General Business"
INDUSTRY_CONFIDENCE_THRESHOLD = 0.7
FALLBACK_CONFIDENCE_CEILING = 0.5

_INDUSTRY_LOOKUP = {name.lower(): name for name in INDUSTRIES}


# =============================================================================
# HELPERS
# =============================================================================

def _require_dict(data: Any, key: str, agent: str) -> Dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise AgentOutputError(agent, f"missing or invalid '{key}' object")
    return value


def _optional_dict(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _number(value: Any) -> Optional[float]:
    """Finite float from a model value, or None (NaN and infinities included)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _ensure_object(data: Any, agent: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise AgentOutputError(agent, f"expected a JSON object, got {type(data).__name__}")
    return data


# =============================================================================
# STRUCTURE / VISION ANALYSIS
# =============================================================================

@dataclass
class ScreenshotAnalysis:
    """Design tokens read from the page (and screenshot when available)."""
    colors: Dict[str, Any]
    typography: Dict[str, Any]
    layout: Dict[str, Any]
    visual_density: int  # 1-10
    brand_assets: Dict[str, Any] = field(default_factory=dict)
    quality_score: Optional[int] = None
    used_screenshot: bool = False

    @classmethod
    def from_dict(cls, data: Any, agent: str = "screenshot-analysis") -> "ScreenshotAnalysis":
        data = _ensure_object(data, agent)
        colors = _require_dict(data, "colors", agent)
        layout = _require_dict(data, "layout", agent)

        density = _number(data.get("visualDensity", data.get("visual_density")))
        if density is None:
            raise AgentOutputError(agent, "missing numeric 'visualDensity'")

        quality = _number(data.get("qualityScore", data.get("quality_score")))

        return cls(
            colors=colors,
            typography=_optional_dict(data, "typography"),
            layout=layout,
            visual_density=int(round(clamp(density, 1, 10))),
            brand_assets=_optional_dict(data, "brandAssets") or _optional_dict(data, "brand_assets"),
            quality_score=int(round(clamp(quality, 0, 100))) if quality is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# INDUSTRY + SEO
# =============================================================================

@dataclass
class IndustryClassification:
    """Industry label constrained to INDUSTRIES."""
    name: str
    confidence: float
    reasoning: str = ""
    alternatives: List[Dict[str, Any]] = field(default_factory=list)
    fallback_applied: bool = False


def constrain_industry(
    name: Any,
    confidence: Any,
    reasoning: str = "",
    alternatives: Optional[List[Dict[str, Any]]] = None,
) -> IndustryClassification:
    """
    Force unknown or low-confidence classifications to the fallback.

    Confidence is clamped to [0, 1]. A name outside INDUSTRIES, or a
    confidence under the threshold, becomes ``General Business`` with
    confidence capped at 0.5; the rejected guess is kept in alternatives.
    """
    alternatives = list(alternatives or [])
    value = _number(confidence)
    value = clamp(value, 0.0, 1.0) if value is not None else 0.0

    canonical = _INDUSTRY_LOOKUP.get(str(name).strip().lower()) if name is not None else None

    if canonical is None or value < INDUSTRY_CONFIDENCE_THRESHOLD:
        if canonical != FALLBACK_INDUSTRY and name:
            alternatives.insert(0, {"name": str(name), "confidence": value})
        return IndustryClassification(
            name=FALLBACK_INDUSTRY,
            confidence=min(value, FALLBACK_CONFIDENCE_CEILING),
            reasoning=reasoning,
            alternatives=alternatives,
            fallback_applied=canonical != FALLBACK_INDUSTRY,
        )

    return IndustryClassification(
        name=canonical,
        confidence=value,
        reasoning=reasoning,
        alternatives=alternatives,
    )


@dataclass
class IndustrySeo:
    """Industry classification plus extracted SEO and copy signals."""
    industry: IndustryClassification
    seo: Dict[str, Any]
    copy: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Any, agent: str = "industry-seo") -> "IndustrySeo":
        data = _ensure_object(data, agent)
        industry = _require_dict(data, "industry", agent)
        if not industry.get("name"):
            raise AgentOutputError(agent, "missing 'industry.name'")

        alternatives = [
            alt for alt in industry.get("alternatives") or []
            if isinstance(alt, dict) and alt.get("name")
        ]

        seo = data.get("seo", {})
        copy = data.get("copy", {})
        if not isinstance(seo, dict) or not isinstance(copy, dict):
            raise AgentOutputError(agent, "'seo' and 'copy' must be objects")

        return cls(
            industry=constrain_industry(
                industry.get("name"),
                industry.get("confidence"),
                reasoning=str(industry.get("reasoning") or ""),
                alternatives=alternatives,
            ),
            seo=seo,
            copy=copy,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# SCORING
# =============================================================================

@dataclass
class ScoringDetail:
    """Issues and recommendations for one dimension."""
    dimension: str
    score: int
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class ScoreResult:
    """Nine 0-100 scores, per-dimension detail and the creative brief."""
    scores: Dict[str, int]
    scoring_details: List[ScoringDetail]
    creative_brief: Dict[str, Any]
    benchmark: Dict[str, Any] = field(default_factory=dict)

    @property
    def overall(self) -> int:
        return self.scores["overall"]

    @classmethod
    def from_dict(cls, data: Any, agent: str = "score") -> "ScoreResult":
        data = _ensure_object(data, agent)
        raw_scores = _require_dict(data, "scores", agent)

        scores = {}
        for key in ("overall",) + SCORE_DIMENSIONS:
            value = _number(raw_scores.get(key))
            if value is None:
                raise AgentOutputError(agent, f"missing numeric score '{key}'")
            scores[key] = int(round(clamp(value, 0, 100)))

        details = []
        for item in data.get("scoringDetails", data.get("scoring_details")) or []:
            if not isinstance(item, dict) or not item.get("dimension"):
                continue
            score = _number(item.get("score"))
            details.append(ScoringDetail(
                dimension=str(item["dimension"]),
                score=int(round(clamp(score, 0, 100))) if score is not None else scores.get(str(item["dimension"]), 0),
                issues=_string_list(item.get("issues")),
                recommendations=_string_list(item.get("recommendations")),
            ))

        brief = data.get("creativeBrief", data.get("creative_brief"))
        if not isinstance(brief, dict):
            raise AgentOutputError(agent, "missing 'creativeBrief' object")

        return cls(
            scores=scores,
            scoring_details=details,
            creative_brief=brief,
            benchmark=_optional_dict(data, "benchmark"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# CREATIVE
# =============================================================================

@dataclass
class CreativeLayout:
    """One generated page document for a creative direction."""
    direction: str
    html: str
    rationale: str = ""
    css: str = ""
    extraction_method: str = "tagged"  # "tagged" or a parser method
    truncated: bool = False
