"""Regression detection and score history trends."""

from .detector import detect_regression
from .trends import HistoryComparison, HistoryStats, compare_with_history, history_statistics

__all__ = [
    "HistoryComparison",
    "HistoryStats",
    "compare_with_history",
    "detect_regression",
    "history_statistics",
]
