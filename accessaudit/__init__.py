"""accessaudit core package."""

from .core.models import (
    Impact,
    Outcome,
    RawEvaluationResult,
    RegressionVerdict,
    ScanAttempt,
    ScanRecord,
    ScanTarget,
    ScoreSummary,
    Severity,
    Violation,
)

__all__ = [
    "Impact",
    "Outcome",
    "RawEvaluationResult",
    "RegressionVerdict",
    "ScanAttempt",
    "ScanRecord",
    "ScanTarget",
    "ScoreSummary",
    "Severity",
    "Violation",
]

__version__ = "0.1.0"
