"""
URL Canonicalization

Maps the many spellings of a site URL onto one target identity so repeat
requests dedupe onto the same profile:

    https://www.Example.com/about/?utm_source=x  ->  example.com/about
    example.com                                  ->  example.com
"""

import re
from typing import Tuple
from urllib.parse import urlsplit, parse_qsl, urlencode

from ..errors import InvalidURLError

STRIP_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",
    "gclid",
    "ref",
})

_SCHEME = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*://')


def ensure_scheme(raw_url: str) -> str:
    """Prepend https:// when the URL has no scheme."""
    raw_url = raw_url.strip()
    if _SCHEME.match(raw_url):
        return raw_url
    return f"https://{raw_url}"


def _split(raw_url: str) -> Tuple[str, str, str]:
    if not isinstance(raw_url, str) or not raw_url.strip():
        raise InvalidURLError("empty URL")

    parsed = urlsplit(ensure_scheme(raw_url))
    if parsed.scheme.lower() not in ("http", "https"):
        raise InvalidURLError(f"unsupported scheme: {parsed.scheme}")

    try:
        port = parsed.port
    except ValueError as e:
        raise InvalidURLError(f"invalid port in {raw_url!r}") from e

    host = (parsed.hostname or "").lower().rstrip(".")
    if not host or ("." not in host and host != "localhost") or " " in host:
        raise InvalidURLError(f"invalid host in {raw_url!r}")

    if host.startswith("www."):
        host = host[4:]
    if port and port not in (80, 443):
        host = f"{host}:{port}"

    return host, parsed.path, parsed.query


def extract_domain(raw_url: str) -> str:
    """Lowercase host without ``www.``."""
    host, _, _ = _split(raw_url)
    return host


def normalize_url(raw_url: str) -> str:
    """
    Canonical target identity for a raw URL.

    Lowercases the host, strips ``www.``, the scheme, a trailing slash and
    tracking parameters; remaining query parameters are sorted.

    Raises:
        InvalidURLError: The URL cannot be parsed into a web host
    """
    host, path, query = _split(raw_url)

    path = path.rstrip("/")

    params = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key.lower() not in STRIP_PARAMS
    ]
    params.sort()
    query_string = urlencode(params)

    return f"{host}{path}" + (f"?{query_string}" if query_string else "")
