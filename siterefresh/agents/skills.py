"""
Agent Skill Definitions

A skill is the versioned configuration an agent runs with: system prompt,
model override, temperature and output ceiling. Rows live in the
``agent_skills`` table; one snapshot per slug is taken at the start of
each run and never changes mid-run.

The built-in defaults below are seeded on first start and used (version 0)
when no active row exists for a slug.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

SCREENSHOT_ANALYSIS = "screenshot-analysis"
INDUSTRY_SEO = "industry-seo"
SCORE = "score"
CREATIVE_MODERN = "creative-modern"
CREATIVE_CLASSY = "creative-classy"
CREATIVE_UNIQUE = "creative-unique"

CREATIVE_SLUGS = (CREATIVE_MODERN, CREATIVE_CLASSY, CREATIVE_UNIQUE)
VALID_SLUGS = frozenset((SCREENSHOT_ANALYSIS, INDUSTRY_SEO, SCORE) + CREATIVE_SLUGS)


@dataclass(frozen=True)
class SkillSnapshot:
    """Immutable view of one active skill row."""
    slug: str
    version: int
    system_prompt: str
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


_CREATIVE_FORMAT = (
    "Return the complete page inside <layout_html></layout_html> tags as a single "
    "self-contained HTML document with inline CSS, followed by a short explanation "
    "inside <rationale></rationale> tags. Use only the real brand assets provided: "
    "the logo URL, colors, fonts, navigation labels and copy. Never invent "
    "placeholder text or stock image URLs, and never mention scores, benchmarks "
    "or the analysis itself in the page copy."
)

DEFAULT_SKILLS: Dict[str, SkillSnapshot] = {
    SCREENSHOT_ANALYSIS: SkillSnapshot(
        slug=SCREENSHOT_ANALYSIS,
        version=0,
        system_prompt=(
            "You are a senior web designer auditing an existing website. From the "
            "screenshot (when provided) and HTML, extract the design system. Respond "
            "with JSON only: {\"colors\": {\"primary\", \"secondary\", \"accent\", "
            "\"background\", \"text\"}, \"typography\": {\"headingFont\", \"bodyFont\"}, "
            "\"layout\": {\"heroType\", \"navStyle\", \"sectionCount\", \"gridPattern\"}, "
            "\"visualDensity\": 1-10, \"brandAssets\": {\"logoDetected\", \"imageryStyle\"}, "
            "\"qualityScore\": 0-100}."
        ),
    ),
    INDUSTRY_SEO: SkillSnapshot(
        slug=INDUSTRY_SEO,
        version=0,
        system_prompt=(
            "You classify small-business websites and audit their on-page SEO. "
            "Respond with JSON only: {\"industry\": {\"name\", \"confidence\": 0-1, "
            "\"reasoning\", \"alternatives\": [{\"name\", \"confidence\"}]}, \"seo\": "
            "{\"titleTag\", \"metaDescription\", \"h1Count\", \"hasCanonical\", "
            "\"hasOpenGraph\", \"hasStructuredData\", \"issues\": [], \"score\"}, "
            "\"copy\": {\"headline\", \"valueProposition\", \"ctas\": [], "
            "\"toneOfVoice\", \"navLabels\": []}}. The industry name must be one of "
            "the industries listed in the request."
        ),
    ),
    SCORE: SkillSnapshot(
        slug=SCORE,
        version=0,
        system_prompt=(
            "You score websites from 0 to 100 on clarity, visual, hierarchy, trust, "
            "conversion, content, mobile and performance, plus an overall score. "
            "Respond with JSON only: {\"scores\": {...}, \"scoringDetails\": "
            "[{\"dimension\", \"score\", \"issues\": [], \"recommendations\": []}], "
            "\"benchmark\": {\"hasData\", \"percentile\"}, \"creativeBrief\": "
            "{\"priorities\": [{\"dimension\", \"userScore\", \"industryAvg\", "
            "\"gap\", \"priority\", \"guidance\"}], \"strengths\": [], "
            "\"industryRequirements\": [], \"contentDirection\", "
            "\"technicalRequirements\": []}}."
        ),
    ),
    CREATIVE_MODERN: SkillSnapshot(
        slug=CREATIVE_MODERN,
        version=0,
        system_prompt=(
            "You redesign small-business homepages in a clean, modern direction: "
            "generous whitespace, bold type, clear calls to action. " + _CREATIVE_FORMAT
        ),
    ),
    CREATIVE_CLASSY: SkillSnapshot(
        slug=CREATIVE_CLASSY,
        version=0,
        system_prompt=(
            "You redesign small-business homepages in a refined, classic direction: "
            "elegant serif headings, restrained palette, trust signals up front. "
            + _CREATIVE_FORMAT
        ),
    ),
    CREATIVE_UNIQUE: SkillSnapshot(
        slug=CREATIVE_UNIQUE,
        version=0,
        system_prompt=(
            "You redesign small-business homepages in a distinctive direction that "
            "still fits the industry: unexpected layout, strong personality, "
            "memorable hero. " + _CREATIVE_FORMAT
        ),
    ),
}


def resolve_skills(active: Iterable[SkillSnapshot]) -> Dict[str, SkillSnapshot]:
    """
    Map every valid slug to a snapshot, preferring active rows.

    When several active versions exist for a slug the highest wins.
    """
    resolved = dict(DEFAULT_SKILLS)
    best: Dict[str, SkillSnapshot] = {}
    for skill in active:
        if skill.slug not in VALID_SLUGS:
            continue
        current = best.get(skill.slug)
        if current is None or skill.version > current.version:
            best[skill.slug] = skill
    resolved.update(best)
    return resolved


def skill_versions(skills: Dict[str, SkillSnapshot]) -> Dict[str, int]:
    """Slug -> version, recorded on the run for reproducibility."""
    return {slug: skill.version for slug, skill in sorted(skills.items())}
