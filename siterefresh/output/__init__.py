"""
Output Processing Module

Recovers structured data from model responses.

Components:
- OutputParser: direct/trimmed/repaired/boundary fallback chain
- safe_parse: module-level shortcut that never raises
- extract_tagged: pulls delimited sections out of free text
"""

from .parser import (
    OutputParser,
    ParseResult,
    safe_parse,
    extract_tagged,
    trim_wrapping,
    basic_repair,
)

__all__ = [
    "OutputParser",
    "ParseResult",
    "safe_parse",
    "extract_tagged",
    "trim_wrapping",
    "basic_repair",
]
