"""
Core Web Vitals thresholds, rating and percentile helpers.
"""
import math

from vitalsman.models.cwv import Rating

# Google CWV thresholds: value <= good is good, value <= poor is needs-improvement
THRESHOLDS = {
    "LCP": {"good": 2500, "poor": 4000},
    "INP": {"good": 200, "poor": 500},
    "CLS": {"good": 0.1, "poor": 0.25},
    "FCP": {"good": 1800, "poor": 3000},
    "TTFB": {"good": 800, "poor": 1800},
}

UNKNOWN_RATING = "unknown"


def get_rating(metric: str, value: float) -> str:
    """Classify a metric value as good, needs-improvement or poor."""
    thresholds = THRESHOLDS.get(metric)
    if thresholds is None:
        return UNKNOWN_RATING

    if value <= thresholds["good"]:
        return Rating.GOOD.value
    elif value <= thresholds["poor"]:
        return Rating.NEEDS_IMPROVEMENT.value
    return Rating.POOR.value


def percentile(values: list[float], pct: int = 75) -> float | None:
    """Nearest-rank percentile. Returns None for an empty list."""
    if not values:
        return None

    ordered = sorted(values)
    index = math.ceil(len(ordered) * pct / 100) - 1
    return ordered[max(index, 0)]
