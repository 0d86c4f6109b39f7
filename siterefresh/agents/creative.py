"""
Creative Agent

Generates one complete redesigned page for a creative direction
(modern, classy, unique) from the creative brief and the site's real
brand assets.

The page is read from <layout_html>/<rationale> tags first, which avoids
JSON-escaping a whole HTML document; a JSON {html, rationale} response is
accepted as a fallback.
"""

import json
import logging
import re
from typing import Any, Dict, Optional
from uuid import UUID

from ..errors import AgentOutputError
from ..output.parser import extract_tagged, safe_parse
from .base import BaseAgent, OnRetry
from .skills import CREATIVE_SLUGS, SkillSnapshot
from .types import CreativeLayout

logger = logging.getLogger(__name__)

_DOCUMENT_ELEMENT = re.compile(r"<(?:html|body|div)\b", re.IGNORECASE)


class CreativeAgent(BaseAgent):
    """One creative direction; instantiate once per slug."""

    MAX_OUTPUT_TOKENS = 32768
    TEMPERATURE = 0.7

    def __init__(self, client, direction: str, skill: Optional[SkillSnapshot] = None, **kwargs):
        if direction not in CREATIVE_SLUGS:
            raise ValueError(f"Unknown creative direction: {direction}")
        self.direction = direction
        super().__init__(client, skill=skill, **kwargs)

    @property
    def slug(self) -> str:
        return self.direction

    async def run(
        self,
        creative_brief: Dict[str, Any],
        industry: str,
        brand_assets: Dict[str, Any],
        on_retry: OnRetry = None,
        run_id: Optional[UUID] = None,
    ) -> CreativeLayout:
        """
        Generate a layout.

        Args:
            creative_brief: Brief from the score agent
            industry: Classified industry
            brand_assets: logoUrl, heroImageUrl, colors, fonts, navLinks, copy

        Returns:
            CreativeLayout

        Raises:
            AgentOutputError: Neither tags nor JSON yield an HTML document
        """
        user_content = json.dumps(
            {"creativeBrief": creative_brief, "industry": industry, "brandAssets": brand_assets},
            indent=2,
            default=str,
        )
        _, max_tokens = self.fit_to_budget(user_content, "")

        response = await self.call(user_content, user_content, max_tokens=max_tokens, on_retry=on_retry, run_id=run_id)

        truncated = response.stop_reason == "max_tokens"
        if truncated:
            logger.warning(
                f"[{self.slug}] hit max_tokens ({max_tokens}). Output likely truncated. "
                f"Tokens used: {response.usage.output_tokens}"
            )

        layout = self._extract(response.content)
        layout.truncated = truncated
        return layout

    def _extract(self, text: str) -> CreativeLayout:
        html = extract_tagged(text, "layout_html")
        if html:
            self._check_document(html)
            return CreativeLayout(
                direction=self.direction,
                html=html,
                rationale=extract_tagged(text, "rationale") or "",
            )

        parsed = safe_parse(text)
        if parsed.success and isinstance(parsed.data, dict):
            html = parsed.data.get("html")
            if isinstance(html, str) and html.strip():
                self._check_document(html)
                rationale = parsed.data.get("rationale")
                css = parsed.data.get("css")
                return CreativeLayout(
                    direction=self.direction,
                    html=html.strip(),
                    rationale=rationale if isinstance(rationale, str) else "",
                    css=css if isinstance(css, str) else "",
                    extraction_method=parsed.parse_method,
                )

        raise AgentOutputError(self.slug, "returned unparseable output (no tags, invalid JSON)")

    def _check_document(self, html: str):
        if not _DOCUMENT_ELEMENT.search(html):
            raise AgentOutputError(self.slug, "returned HTML without an <html>, <body> or <div> element")
