"""
Tests for URL canonicalization and cooldown decisions.
"""

from datetime import datetime, timedelta

import pytest

from siterefresh.errors import InvalidURLError
from siterefresh.pipeline.url_profile import is_within_cooldown
from siterefresh.utils.urls import ensure_scheme, extract_domain, normalize_url


class TestNormalizeUrl:
    """Test target identity normalization."""

    def test_equivalent_spellings_share_identity(self):
        """Scheme, www, case, trailing slash and tracking params are ignored."""
        variants = [
            "https://www.Example.com/?utm_source=x",
            "example.com",
            "http://example.com/",
            "EXAMPLE.COM/?fbclid=abc&gclid=def",
            "https://www.example.com?ref=newsletter",
        ]
        assert {normalize_url(v) for v in variants} == {"example.com"}

    def test_path_kept_without_trailing_slash(self):
        assert normalize_url("https://www.example.com/about/") == "example.com/about"

    def test_query_params_sorted(self):
        """Remaining parameters are sorted so order does not matter."""
        a = normalize_url("example.com/shop?b=2&a=1&utm_medium=email")
        b = normalize_url("example.com/shop?a=1&b=2")
        assert a == b == "example.com/shop?a=1&b=2"

    def test_non_default_port_kept(self):
        assert normalize_url("http://example.com:8080/") == "example.com:8080"

    def test_localhost_allowed(self):
        assert normalize_url("http://localhost:3000") == "localhost:3000"

    @pytest.mark.parametrize("raw", ["", "   ", "not a url", "ftp://example.com", "https://intranet/", "http://example.com:99999"])
    def test_invalid_urls(self, raw):
        with pytest.raises(InvalidURLError):
            normalize_url(raw)

    def test_invalid_url_has_user_message(self):
        with pytest.raises(InvalidURLError) as exc_info:
            normalize_url("nodot")
        assert exc_info.value.user_message == "Please enter a valid website address."


class TestHelpers:
    """Test scheme and domain helpers."""

    def test_ensure_scheme(self):
        assert ensure_scheme("example.com") == "https://example.com"
        assert ensure_scheme("http://example.com") == "http://example.com"

    def test_extract_domain(self):
        assert extract_domain("https://WWW.Example.co.uk/path") == "example.co.uk"


class TestCooldown:
    """Test the cooldown window."""

    def test_recent_analysis_in_window(self):
        now = datetime(2025, 1, 1, 12, 0, 0)
        assert is_within_cooldown(now - timedelta(seconds=120), 300, now=now)

    def test_old_analysis_outside_window(self):
        now = datetime(2025, 1, 1, 12, 0, 0)
        assert not is_within_cooldown(now - timedelta(seconds=301), 300, now=now)

    def test_never_analyzed(self):
        assert not is_within_cooldown(None, 300)

    def test_disabled(self):
        now = datetime(2025, 1, 1, 12, 0, 0)
        assert not is_within_cooldown(now, 0, now=now)
