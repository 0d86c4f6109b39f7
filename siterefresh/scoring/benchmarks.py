"""
Industry Benchmark Aggregation

Read-only math over benchmark rows for one industry:
- Averages per dimension (prompt context for the score agent)
- Percentile and top-decile threshold for the final comparison

How much is claimed depends on sample size: three or more rows support a
full comparison, one or two only a directional note, none no comparison.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

SCORE_DIMENSIONS = (
    "clarity",
    "visual",
    "hierarchy",
    "trust",
    "conversion",
    "content",
    "mobile",
    "performance",
)
ALL_DIMENSIONS = ("overall",) + SCORE_DIMENSIONS

# Rows needed before averages and percentiles are reported
FULL_COMPARISON_MIN_ROWS = 3

LIMITED_DATA_NOTE = "Limited industry benchmark data (1-2 sites). Use general best practices."
NO_DATA_NOTE = "No benchmark data. Use absolute scoring with general industry knowledge."


def _row_score(row: Any, dimension: str) -> float:
    key = f"{dimension}_score"
    if isinstance(row, dict):
        value = row.get(key, 0)
    else:
        value = getattr(row, key, 0)
    return float(value or 0)


def benchmark_averages(rows: Sequence[Any]) -> Dict[str, int]:
    """Rounded mean per dimension (including overall)."""
    if not rows:
        return {}
    return {
        dim: round(sum(_row_score(row, dim) for row in rows) / len(rows))
        for dim in ALL_DIMENSIONS
    }


def benchmark_note(rows: Sequence[Any]) -> str:
    """Narrative for the score agent prompt, degraded by row count."""
    if len(rows) >= FULL_COMPARISON_MIN_ROWS:
        averages = benchmark_averages(rows)
        lines = [f"  {dim}: industry avg {averages[dim]}" for dim in ALL_DIMENSIONS]
        return f"Benchmark data: {len(rows)} scored sites.\nIndustry averages:\n" + "\n".join(lines)
    if rows:
        return LIMITED_DATA_NOTE
    return NO_DATA_NOTE


def percentile_rank(value: float, population: List[float]) -> int:
    """Share of the population strictly below ``value``, 0-100."""
    if not population:
        return 0
    below = sum(1 for item in population if item < value)
    return round(100 * below / len(population))


def top_decile_threshold(population: List[float]) -> Optional[int]:
    """Nearest-rank 90th percentile of the population."""
    if not population:
        return None
    ordered = sorted(population)
    rank = max(1, math.ceil(0.9 * len(ordered)))
    return round(ordered[rank - 1])


def compare_to_benchmarks(scores: Dict[str, int], rows: Sequence[Any]) -> Dict[str, Any]:
    """
    Compare a run's scores against benchmark rows.

    Returns:
        Dict with ``has_data``, ``sample_size``, ``level`` ("full",
        "directional", "none"), and for full comparisons the averages,
        per-dimension gaps, percentile and top-decile threshold.
    """
    count = len(rows)
    if count == 0:
        return {"has_data": False, "sample_size": 0, "level": "none"}

    averages = benchmark_averages(rows)
    if count < FULL_COMPARISON_MIN_ROWS:
        return {
            "has_data": True,
            "sample_size": count,
            "level": "directional",
            "note": LIMITED_DATA_NOTE,
        }

    overall_population = [_row_score(row, "overall") for row in rows]
    return {
        "has_data": True,
        "sample_size": count,
        "level": "full",
        "averages": averages,
        "gaps": {
            dim: scores.get(dim, 0) - averages[dim]
            for dim in ALL_DIMENSIONS
        },
        "percentile": percentile_rank(scores.get("overall", 0), overall_population),
        "top_decile_threshold": top_decile_threshold(overall_population),
    }
