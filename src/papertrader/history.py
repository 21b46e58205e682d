"""
Portfolio history sampling

One point per portfolio read. Reads that land within the coalescing interval
of the latest point overwrite its value (keeping its timestamp) instead of
appending, and only the most recent `max_points` points are retained.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from .models import PortfolioHistoryPoint

APPEND = "append"
OVERWRITE = "overwrite"


def plan_sample(
    latest: Optional[PortfolioHistoryPoint],
    now: datetime,
    interval_seconds: int,
) -> str:
    """Decide whether a new sample taken at `now` appends or overwrites."""
    if latest is None:
        return APPEND
    if now - latest.timestamp < timedelta(seconds=interval_seconds):
        return OVERWRITE
    return APPEND


def trim(points: List[PortfolioHistoryPoint], max_points: int) -> List[PortfolioHistoryPoint]:
    """Keep the `max_points` most recent points, oldest first."""
    ordered = sorted(points, key=lambda p: (p.timestamp, p.id or 0))
    if len(ordered) <= max_points:
        return ordered
    return ordered[len(ordered) - max_points:]
