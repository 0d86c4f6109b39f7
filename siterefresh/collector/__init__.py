"""
Page Collection

Default implementations of the pipeline's page-facing collaborators:
- PageFetcher: HTML + CSS fetch with classified failures, preflight
- NullScreenshotCapture: capture disabled, pipeline runs HTML-only
- extract_assets: logo, colors, fonts, copy
- detect_cms: platform signatures
"""

from .assets import BrandAssets, extract_assets, extract_colors, extract_fonts
from .cms import detect_cms
from .fetcher import NullScreenshotCapture, PageFetcher, PreflightResult, RawPage

__all__ = [
    "BrandAssets",
    "extract_assets",
    "extract_colors",
    "extract_fonts",
    "detect_cms",
    "NullScreenshotCapture",
    "PageFetcher",
    "PreflightResult",
    "RawPage",
]
