"""
SiteRefresh Engine

Analyzes a live website and generates redesigned page variants:
1. Fetches the page and captures a screenshot
2. Analyzes structure, industry and SEO signals with Claude
3. Scores the site against industry benchmarks
4. Generates three independent redesign directions
"""

__version__ = "0.1.0"
