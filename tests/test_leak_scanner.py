"""
Tests for the generated-layout leak scanner.

These tests verify:
- Score and brief vocabulary in visible text is flagged
- Markup, style and script content is ignored
- Confidence levels and logging
"""

import logging

import pytest

from siterefresh.quality import (
    LeakConfidence,
    LeakScanner,
    extract_visible_text,
    log_leak_warnings,
    scan_for_leaks,
)


CLEAN_HTML = """<!DOCTYPE html><html><body>
<div class="hero"><h1>Gentle care for the whole family</h1>
<a href="/book">Book now</a></div></body></html>"""


class TestVisibleText:
    """Test markup stripping."""

    def test_strips_style_and_script(self):
        html = "<style>.clarity { color: red }</style><p>Hello</p><script>var score = 42;</script>"
        assert extract_visible_text(html).strip() == "Hello"

    def test_tags_become_spaces(self):
        assert extract_visible_text("<b>one</b><i>two</i>").split() == ["one", "two"]


class TestLeakScanner:
    """Test pattern detection."""

    def test_clean_layout(self):
        result = scan_for_leaks(CLEAN_HTML)
        assert result.matches == []
        assert result.has_high_confidence_leaks is False

    @pytest.mark.parametrize(
        "copy,label",
        [
            ("Your site scored 42/100", "score-fraction"),
            ("Score: 65", "score-label"),
            ("Rated 70 out of 100", "score-out-of"),
            ("Clarity: 42", "dimension-with-score"),
            ("We are 15 points below the rest", "benchmark-gap-language"),
            ("Above the industry average", "industry-average-text"),
            ("Conversion 65% better", "dimension-percentage"),
            ("Built by SiteRefresh", "branding-name"),
            ("userScore", "field-userScore"),
        ],
    )
    def test_high_confidence_patterns(self, copy, label):
        result = scan_for_leaks(f"<html><body><p>{copy}</p></body></html>")
        labels = {m.pattern for m in result.matches if m.confidence == LeakConfidence.HIGH}
        assert label in labels
        assert result.has_high_confidence_leaks

    def test_medium_confidence_only(self):
        """Plain dimension words are suspicious but not conclusive."""
        result = scan_for_leaks("<p>Unmatched clarity in every smile</p>")
        assert [m.pattern for m in result.matches] == ["dimension-clarity"]
        assert result.has_high_confidence_leaks is False

    def test_leaks_inside_attributes_ignored(self):
        result = scan_for_leaks('<div class="score-42" data-benchmark="1">Welcome</div>')
        assert result.matches == []

    @pytest.mark.parametrize("html", [None, "", 42])
    def test_never_raises(self, html):
        assert LeakScanner().scan(html).matches == []

    def test_match_to_dict(self):
        match = scan_for_leaks("<p>42/100</p>").matches[0]
        assert match.to_dict() == {"pattern": "score-fraction", "text": "42/100", "confidence": "high"}


class TestLogLeakWarnings:
    """Test advisory logging."""

    def test_high_confidence_logs_warning(self, caplog):
        result = scan_for_leaks("<p>Clarity: 42</p>")
        with caplog.at_level(logging.INFO, logger="siterefresh.quality.leak_scanner"):
            log_leak_warnings(result, "creative-modern", run_id="run-1")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "creative-modern" in record.getMessage()
        assert "run-1" in record.getMessage()

    def test_medium_confidence_logs_info(self, caplog):
        result = scan_for_leaks("<p>A benchmark for care</p>")
        with caplog.at_level(logging.INFO, logger="siterefresh.quality.leak_scanner"):
            log_leak_warnings(result, "creative-classy")

        assert caplog.records[-1].levelno == logging.INFO

    def test_clean_result_is_silent(self, caplog):
        with caplog.at_level(logging.INFO, logger="siterefresh.quality.leak_scanner"):
            log_leak_warnings(scan_for_leaks(CLEAN_HTML), "creative-unique")
        assert caplog.records == []
