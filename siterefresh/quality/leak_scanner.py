"""
Content Leak Scanner for Generated Layouts

Creative agents see the scores and the creative brief. Occasionally that
vocabulary ends up in the page copy ("Clarity: 42", "15 points below the
industry average"). This scanner finds it in the visible text.

Advisory only: it never raises and never blocks persistence. Matches are
logged so prompt regressions get noticed.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


class LeakConfidence(Enum):
    """How likely a match is a real leak rather than normal copy."""
    HIGH = "high"
    MEDIUM = "medium"


@dataclass
class LeakMatch:
    """One suspicious phrase in the visible text."""
    pattern: str
    text: str
    confidence: LeakConfidence

    def to_dict(self) -> dict:
        return {"pattern": self.pattern, "text": self.text, "confidence": self.confidence.value}


@dataclass
class LeakScanResult:
    """Result of scanning one layout."""
    matches: List[LeakMatch] = field(default_factory=list)

    @property
    def has_high_confidence_leaks(self) -> bool:
        return any(m.confidence == LeakConfidence.HIGH for m in self.matches)


_DIMENSIONS = r'clarity|hierarchy|conversion|visual|trust|content|mobile|performance'

HIGH_CONFIDENCE_PATTERNS: List[Tuple[str, Pattern]] = [
    # Score fractions: "42/100", "65 out of 100"
    ("score-fraction", re.compile(r'\b\d{1,3}\s*/\s*100\b')),
    ("score-label", re.compile(r'\bscor(?:e|ed|ing)\s*[:=]?\s*\d{1,3}\b', re.IGNORECASE)),
    ("score-out-of", re.compile(r'\b\d{1,3}\s+out\s+of\s+100\b', re.IGNORECASE)),

    # Brief field names as visible text
    ("field-userScore", re.compile(r'\buserScore\b')),
    ("field-industryAvg", re.compile(r'\bindustryAvg\b')),
    ("field-creativeBrief", re.compile(r'\bcreativeBrief\b')),
    ("field-scoringDetails", re.compile(r'\bscoring\s*details?\b', re.IGNORECASE)),

    # Product branding
    ("branding-name", re.compile(r'\bSiteRefresh\b')),
    ("branding-words", re.compile(r'\bsite[-\s]refresh\b', re.IGNORECASE)),
    ("branding-domain", re.compile(r'\bsiterefresh\.(?:ai|com|io)\b', re.IGNORECASE)),

    # "clarity: 42"
    ("dimension-with-score", re.compile(r'\b(?:clarity|hierarchy|conversion|visual\s*density)\s*[:=]\s*\d', re.IGNORECASE)),

    ("industry-average-text", re.compile(r'\bindustry\s+average\b', re.IGNORECASE)),

    # "12 points below"
    ("benchmark-gap-language", re.compile(r'\d+\s+points?\s+(?:below|above|behind|ahead)\b', re.IGNORECASE)),

    # "conversion 65%"
    ("dimension-percentage", re.compile(rf'\b(?:{_DIMENSIONS})\s+\d{{1,3}}%', re.IGNORECASE)),
]

MEDIUM_CONFIDENCE_PATTERNS: List[Tuple[str, Pattern]] = [
    ("dimension-clarity", re.compile(r'\bclarity\b', re.IGNORECASE)),
    ("dimension-hierarchy", re.compile(r'\bhierarchy\b', re.IGNORECASE)),
    ("dimension-conversion", re.compile(r'\bconversion\b', re.IGNORECASE)),
    ("dimension-visual-density", re.compile(r'\bvisual\s+density\b', re.IGNORECASE)),
    ("term-benchmark", re.compile(r'\bbenchmark\b', re.IGNORECASE)),
    ("term-percentile", re.compile(r'\bpercentile\b', re.IGNORECASE)),
]

_STYLE_BLOCK = re.compile(r'<style[\s\S]*?</style>', re.IGNORECASE)
_SCRIPT_BLOCK = re.compile(r'<script[\s\S]*?</script>', re.IGNORECASE)
_TAG = re.compile(r'<[^>]+>')
_WHITESPACE = re.compile(r'\s+')


def extract_visible_text(html: str) -> str:
    """Strip style/script blocks and tags, collapse whitespace."""
    text = _STYLE_BLOCK.sub("", html)
    text = _SCRIPT_BLOCK.sub("", text)
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text)


class LeakScanner:
    """
    Scans generated HTML for leaked scoring vocabulary.

    Usage:
        result = LeakScanner().scan(layout_html)
        if result.has_high_confidence_leaks:
            ...
    """

    def __init__(self):
        self._tables = [
            (LeakConfidence.HIGH, HIGH_CONFIDENCE_PATTERNS),
            (LeakConfidence.MEDIUM, MEDIUM_CONFIDENCE_PATTERNS),
        ]

    def scan(self, html: str) -> LeakScanResult:
        if not isinstance(html, str) or not html:
            return LeakScanResult()

        visible = extract_visible_text(html)
        result = LeakScanResult()
        for confidence, table in self._tables:
            for label, pattern in table:
                for match in pattern.finditer(visible):
                    result.matches.append(LeakMatch(pattern=label, text=match.group(0), confidence=confidence))
        return result


_default_scanner = LeakScanner()


def scan_for_leaks(html: str) -> LeakScanResult:
    """Scan with the default pattern tables."""
    return _default_scanner.scan(html)


def log_leak_warnings(result: LeakScanResult, direction: str, run_id: Optional[str] = None) -> None:
    """Emit one warning enumerating matches; silent when clean."""
    if not result.matches:
        return
    summary = ", ".join(f"{m.pattern}='{m.text}'" for m in result.matches[:20])
    level = logging.WARNING if result.has_high_confidence_leaks else logging.INFO
    logger.log(
        level,
        f"[{run_id or '-'}] {direction} layout has {len(result.matches)} possible score leaks: {summary}",
    )
