"""
Industry & SEO Agent

Classifies the business into a fixed industry list and extracts on-page
SEO and copy signals. Classifications outside the list, or under 0.7
confidence, are forced to "General Business" before they reach scoring.
"""

import logging
from typing import Optional
from uuid import UUID

from .base import BaseAgent, OnRetry
from .skills import INDUSTRY_SEO
from .types import INDUSTRIES, IndustrySeo

logger = logging.getLogger(__name__)

HTML_CHAR_LIMIT = 20_000
CSS_CHAR_LIMIT = 5_000


class IndustrySeoAgent(BaseAgent):
    """Industry classification plus SEO/copy extraction."""

    MAX_OUTPUT_TOKENS = 4096
    TEMPERATURE = 0.2

    @property
    def slug(self) -> str:
        return INDUSTRY_SEO

    async def run(
        self,
        html: str,
        css: str = "",
        on_retry: OnRetry = None,
        run_id: Optional[UUID] = None,
    ) -> IndustrySeo:
        """
        Classify industry and extract SEO signals.

        Args:
            html: Raw page HTML
            css: Concatenated page CSS

        Returns:
            IndustrySeo with a constrained industry
        """
        header = "Allowed industries: " + ", ".join(INDUSTRIES) + "\n\n"
        css_part = f"\n\nCSS (first {CSS_CHAR_LIMIT} chars):\n{css[:CSS_CHAR_LIMIT]}"
        html_slice, max_tokens = self.fit_to_budget(
            header + css_part,
            html[:HTML_CHAR_LIMIT],
        )
        context = f"{header}HTML (first {HTML_CHAR_LIMIT} chars):\n{html_slice}{css_part}"

        response = await self.call(context, context, max_tokens=max_tokens, on_retry=on_retry, run_id=run_id)
        result = IndustrySeo.from_dict(self.parse_json(response.content), agent=self.slug)

        if result.industry.fallback_applied:
            rejected = result.industry.alternatives[0] if result.industry.alternatives else {}
            logger.info(
                f"[{self.slug}] Classification '{rejected.get('name')}' "
                f"({rejected.get('confidence', 0):.2f}) replaced with {result.industry.name}"
            )
        return result
