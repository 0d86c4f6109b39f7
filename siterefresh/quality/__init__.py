"""
Quality Checks for Generated Output

- LeakScanner: finds internal scoring vocabulary in generated layouts
"""

from .leak_scanner import (
    LeakConfidence,
    LeakMatch,
    LeakScanResult,
    LeakScanner,
    extract_visible_text,
    log_leak_warnings,
    scan_for_leaks,
)

__all__ = [
    "LeakConfidence",
    "LeakMatch",
    "LeakScanResult",
    "LeakScanner",
    "extract_visible_text",
    "log_leak_warnings",
    "scan_for_leaks",
]
