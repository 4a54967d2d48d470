"""Scan engine: browser driver, rule evaluator and orchestration."""

from .evaluator import AxeEvaluator, parse_raw_result
from .orchestrator import run_scan, run_scan_attempts, run_scan_sync
from .pool import ScanPool

__all__ = [
    "AxeEvaluator",
    "ScanPool",
    "parse_raw_result",
    "run_scan",
    "run_scan_attempts",
    "run_scan_sync",
]
