"""
Screenshot Analysis Agent

Reads the page's design system (colors, typography, layout shape, density)
from a screenshot plus the start of the HTML. Without a screenshot the
same prompt runs on HTML alone.
"""

import base64
import logging
from typing import Optional
from uuid import UUID

from .base import BaseAgent, OnRetry
from .skills import SCREENSHOT_ANALYSIS
from .types import ScreenshotAnalysis

logger = logging.getLogger(__name__)

HTML_CHAR_LIMIT = 15_000


class ScreenshotAnalysisAgent(BaseAgent):
    """Vision + HTML structure analysis."""

    MAX_OUTPUT_TOKENS = 4096
    TEMPERATURE = 0.1

    @property
    def slug(self) -> str:
        return SCREENSHOT_ANALYSIS

    async def run(
        self,
        html: str,
        screenshot: Optional[bytes] = None,
        on_retry: OnRetry = None,
        run_id: Optional[UUID] = None,
    ) -> ScreenshotAnalysis:
        """
        Analyze page structure.

        Args:
            html: Raw page HTML
            screenshot: PNG bytes, or None when capture failed
            on_retry: Retry progress callback
            run_id: Run the prompt log belongs to

        Returns:
            ScreenshotAnalysis
        """
        html_slice = html[:HTML_CHAR_LIMIT]

        if screenshot:
            text = f"Analyze this website screenshot and HTML structure.\n\nHTML (first {HTML_CHAR_LIMIT} chars):\n"
            html_slice, max_tokens = self.fit_to_budget(text, html_slice)
            content = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": "image/png",
                        "data": base64.b64encode(screenshot).decode("ascii"),
                    },
                },
                {"type": "text", "text": text + html_slice},
            ]
            prompt_for_log = "[vision+text]\n" + text + html_slice
        else:
            logger.info(f"[{self.slug}] No screenshot, analyzing HTML only")
            text = "Analyze this website HTML structure.\n\n"
            html_slice, max_tokens = self.fit_to_budget(text, html_slice)
            content = text + html_slice
            prompt_for_log = content

        response = await self.call(content, prompt_for_log, max_tokens=max_tokens, on_retry=on_retry, run_id=run_id)
        result = ScreenshotAnalysis.from_dict(self.parse_json(response.content), agent=self.slug)
        result.used_screenshot = bool(screenshot)
        return result
