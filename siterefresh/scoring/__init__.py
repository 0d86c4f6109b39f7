"""
Scoring Module

Benchmark aggregation used by the score agent prompt and the final
comparison stored on each run.
"""

from .benchmarks import (
    SCORE_DIMENSIONS,
    ALL_DIMENSIONS,
    FULL_COMPARISON_MIN_ROWS,
    benchmark_averages,
    benchmark_note,
    compare_to_benchmarks,
    percentile_rank,
    top_decile_threshold,
)

__all__ = [
    "SCORE_DIMENSIONS",
    "ALL_DIMENSIONS",
    "FULL_COMPARISON_MIN_ROWS",
    "benchmark_averages",
    "benchmark_note",
    "compare_to_benchmarks",
    "percentile_rank",
    "top_decile_threshold",
]
