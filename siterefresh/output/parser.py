"""
Output Parser for Agent Responses

Turns free-text model responses into JSON-like data with a graduated
fallback chain:
1. direct    - the whole response parses as-is
2. trimmed   - markdown fences and surrounding prose removed
3. repaired  - trailing commas dropped, bare keys quoted
4. boundary  - first '{' to last '}' of the raw text, repaired

Parsing never raises. Callers get ``success=False`` and decide what that
means for their stage; it only guarantees valid data, not the expected
schema.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional, Tuple
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r'^\s*```(?:json|JSON)?\s*\n?')
_FENCE_CLOSE = re.compile(r'\n?\s*```\s*$')
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')
_BARE_KEY = re.compile(r'([{,])\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*:')


@dataclass
class ParseResult:
    """Result of parsing a model response."""
    success: bool
    data: Any = None
    parse_method: Optional[str] = None  # "direct", "trimmed", "repaired", "boundary"


def trim_wrapping(text: str) -> str:
    """Strip code fences and slice from the first opener to its last closer."""
    text = _FENCE_OPEN.sub("", text.strip())
    text = _FENCE_CLOSE.sub("", text).strip()

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text

    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end <= start:
        return text[start:]
    return text[start:end + 1]


def basic_repair(text: str) -> str:
    """Drop trailing commas before closers and quote bare identifier keys."""
    text = _TRAILING_COMMA.sub(r'\1', text)
    return _BARE_KEY.sub(r'\1"\2":', text)


def extract_tagged(text: str, tag: str) -> Optional[str]:
    """Return the stripped content between ``<tag>`` and ``</tag>``, if present."""
    if not isinstance(text, str):
        return None
    match = re.search(rf'<{tag}>(.*?)</{tag}>', text, re.DOTALL | re.IGNORECASE)
    if not match:
        return None
    return match.group(1).strip()


class OutputParser:
    """
    Parses structured output from agent responses.

    Usage:
        result = OutputParser().parse(raw_text)
        if result.success:
            use(result.data)
    """

    def parse(self, raw_output: Any) -> ParseResult:
        """
        Parse raw agent output into JSON-like data.

        Args:
            raw_output: Raw text from Claude

        Returns:
            ParseResult with data and the method that succeeded
        """
        if not isinstance(raw_output, str) or not raw_output.strip():
            return ParseResult(success=False)

        methods: List[Tuple[str, Callable[[str], Any]]] = [
            ("direct", self._parse_direct),
            ("trimmed", self._parse_trimmed),
            ("repaired", self._parse_repaired),
            ("boundary", self._parse_boundary),
        ]

        for method_name, parser_fn in methods:
            try:
                data = parser_fn(raw_output)
            except (ValueError, TypeError, RecursionError) as e:
                logger.debug(f"{method_name} parsing failed: {e}")
                continue
            if method_name != "direct":
                logger.debug(f"Parsed model output with {method_name}")
            return ParseResult(success=True, data=data, parse_method=method_name)

        logger.debug("All parsing methods failed")
        return ParseResult(success=False)

    def _parse_direct(self, text: str) -> Any:
        return json.loads(text)

    def _parse_trimmed(self, text: str) -> Any:
        return json.loads(trim_wrapping(text))

    def _parse_repaired(self, text: str) -> Any:
        return json.loads(basic_repair(trim_wrapping(text)))

    def _parse_boundary(self, text: str) -> Any:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("no object boundary in response")
        return json.loads(basic_repair(text[start:end + 1]))


_default_parser = OutputParser()


def safe_parse(raw_output: Any) -> ParseResult:
    """Parse a model response with the default fallback chain."""
    return _default_parser.parse(raw_output)
