"""
Page Fetcher

Fetches the raw HTML (and linked stylesheets) of the page to redesign.
Failures are classified into user-facing categories the orchestrator
reports verbatim:

- blocked:     401/403, the site refuses automated access
- unreachable: DNS/connection errors, 5xx, other HTTP errors
- non_html:    the URL does not serve a web page
- timeout:     no response within the fetch timeout
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from ..errors import FetchError
from ..utils.urls import ensure_scheme

logger = logging.getLogger(__name__)

CHROME_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

MESSAGES = {
    FetchError.BLOCKED: "This website blocks automated access.",
    FetchError.UNREACHABLE: "We couldn't reach this website. Check the URL or try again later.",
    FetchError.NON_HTML: "This URL did not return HTML. We can only analyze web pages.",
    FetchError.TIMEOUT: "This URL took too long to respond. Try again or use a simpler page.",
}

MAX_STYLESHEETS = 5
MAX_CSS_CHARS = 200_000


@dataclass
class RawPage:
    """Fetched page snapshot."""
    url: str
    html: str
    css: str = ""
    stylesheet_urls: List[str] = field(default_factory=list)


@dataclass
class PreflightResult:
    """Outcome of a reachability check."""
    ok: bool
    kind: Optional[str] = None
    message: Optional[str] = None


def _fetch_error(kind: str, detail: str = "") -> FetchError:
    return FetchError(kind, MESSAGES[kind], detail)


class PageFetcher:
    """
    Fetches pages with a browser-like user agent.

    Usage:
        fetcher = PageFetcher()
        page = await fetcher.fetch_raw_page("example.com")
        await fetcher.close()
    """

    def __init__(self, timeout: float = 15.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": CHROME_USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _get_html(self, url: str) -> httpx.Response:
        try:
            response = await self.client.get(url)
        except httpx.TimeoutException as e:
            raise _fetch_error(FetchError.TIMEOUT, str(e)) from e
        except httpx.RequestError as e:
            raise _fetch_error(FetchError.UNREACHABLE, str(e)) from e

        if response.status_code in (401, 403):
            raise _fetch_error(FetchError.BLOCKED, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise _fetch_error(FetchError.UNREACHABLE, f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type and "application/xhtml" not in content_type:
            raise _fetch_error(FetchError.NON_HTML, content_type or "no content-type")

        return response

    async def fetch_raw_page(self, url: str) -> RawPage:
        """
        Fetch HTML and up to five linked stylesheets.

        Raises:
            FetchError: Classified fetch failure
        """
        url = ensure_scheme(url)
        response = await self._get_html(url)
        html = response.text
        final_url = str(response.url)

        stylesheet_urls = self._stylesheet_urls(html, final_url)
        css = await self._fetch_css(stylesheet_urls, html)

        logger.info(f"Fetched {final_url}: {len(html)} chars HTML, {len(css)} chars CSS")
        return RawPage(url=final_url, html=html, css=css, stylesheet_urls=stylesheet_urls)

    async def preflight(self, url: str) -> PreflightResult:
        """Check that the page can be fetched, without raising."""
        try:
            await self._get_html(ensure_scheme(url))
        except FetchError as e:
            return PreflightResult(ok=False, kind=e.kind, message=e.user_message)
        return PreflightResult(ok=True)

    def _stylesheet_urls(self, html: str, base_url: str) -> List[str]:
        soup = BeautifulSoup(html, "html.parser")
        urls = []
        for link in soup.find_all("link", rel=lambda r: r and "stylesheet" in r):
            href = link.get("href")
            if href and not href.startswith("data:"):
                urls.append(urljoin(base_url, href))
        return urls[:MAX_STYLESHEETS]

    async def _fetch_css(self, urls: List[str], html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        parts = [style.get_text() for style in soup.find_all("style")]

        async def fetch_one(css_url: str) -> str:
            try:
                response = await self.client.get(css_url)
                if response.status_code == 200:
                    return response.text
            except httpx.HTTPError as e:
                logger.debug(f"Stylesheet fetch failed for {css_url}: {e}")
            return ""

        if urls:
            parts.extend(await asyncio.gather(*(fetch_one(u) for u in urls)))

        return "\n".join(p for p in parts if p)[:MAX_CSS_CHARS]


class NullScreenshotCapture:
    """Screenshot capture that is never available; the pipeline runs HTML-only."""

    async def capture(self, url: str) -> Optional[bytes]:
        return None
