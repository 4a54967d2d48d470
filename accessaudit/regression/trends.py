"""Score history statistics and trend direction for one target."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from ..core.config import RegressionThresholds
from ..core.models import ScanRecord
from ..core.utils import round_half_up
from .detector import detect_regression

HISTORY_WINDOW = 30
TREND_WINDOW = 5
TREND_BAND = 2.0


@dataclass(frozen=True)
class HistoryStats:
    latest_score: int
    average_score: int
    min_score: int
    max_score: int
    trend: str
    total_scans: int
    regression_count: int
    latest_scan_at: datetime


@dataclass(frozen=True)
class HistoryComparison:
    comparison: str
    is_good: bool
    message: str
    average_score: Optional[int] = None


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values)


def trend_direction(scores_newest_first: Sequence[int]) -> str:
    """``improving``/``declining``/``stable`` for the recent vs. previous window."""

    recent = scores_newest_first[:TREND_WINDOW]
    older = scores_newest_first[TREND_WINDOW : TREND_WINDOW * 2]
    if not recent or not older:
        return "stable"
    recent_avg, older_avg = _mean(recent), _mean(older)
    if recent_avg > older_avg + TREND_BAND:
        return "improving"
    if recent_avg < older_avg - TREND_BAND:
        return "declining"
    return "stable"


def history_statistics(
    records: Sequence[ScanRecord],
    thresholds: Optional[RegressionThresholds] = None,
) -> Optional[HistoryStats]:
    """Summarize the last 30 records (given oldest first, as stored).

    The regression count replays the detector over consecutive pairs, so it
    reflects ``thresholds`` rather than whatever was in force at scan time.
    """

    window: List[ScanRecord] = list(records)[-HISTORY_WINDOW:]
    if not window:
        return None
    scores = [record.score for record in window]
    regressions = sum(
        1
        for previous, current in zip(window, window[1:])
        if detect_regression(current, previous, thresholds).is_regression
    )
    latest = window[-1]
    return HistoryStats(
        latest_score=latest.score,
        average_score=round_half_up(_mean(scores)),
        min_score=min(scores),
        max_score=max(scores),
        trend=trend_direction(scores[::-1]),
        total_scans=len(window),
        regression_count=regressions,
        latest_scan_at=latest.created_at,
    )


def compare_with_history(records: Sequence[ScanRecord], score: int) -> HistoryComparison:
    stats = history_statistics(records)
    if stats is None:
        return HistoryComparison("first_scan", True, "First scan - establishing baseline")
    average = stats.average_score
    if score >= average + 5:
        return HistoryComparison(
            "above_average", True, f"Score is {score - average} points above average", average
        )
    if score >= average - 5:
        return HistoryComparison("average", True, "Score is within normal range", average)
    if score < average - 10:
        return HistoryComparison(
            "below_average", False, f"Score is {average - score} points below average", average
        )
    return HistoryComparison(
        "slightly_below", True, "Score is slightly below average but acceptable", average
    )


__all__ = [
    "HistoryComparison",
    "HistoryStats",
    "compare_with_history",
    "history_statistics",
    "trend_direction",
]
