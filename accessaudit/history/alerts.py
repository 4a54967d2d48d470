"""Regression alert hand-off. Delivery itself is someone else's job."""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ..core.models import RegressionVerdict

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    def on_regression_detected(self, verdict: RegressionVerdict) -> None:
        ...


class LoggingAlertSink:
    """Emit regressions as WARNING log records."""

    def on_regression_detected(self, verdict: RegressionVerdict) -> None:
        logger.warning(
            "Regression (%s) on %s: %s",
            verdict.severity.value,
            verdict.target.target_id,
            verdict.reason,
        )


class CollectingAlertSink:
    """Keep verdicts in memory; handy for batch runs and tests."""

    def __init__(self) -> None:
        self.verdicts: List[RegressionVerdict] = []

    def on_regression_detected(self, verdict: RegressionVerdict) -> None:
        self.verdicts.append(verdict)


def dispatch_alert(sink: Optional[AlertSink], verdict: RegressionVerdict) -> bool:
    """Fire-and-forget notification; sink failures are logged, never raised."""

    if sink is None:
        return False
    try:
        sink.on_regression_detected(verdict)
    except Exception:
        logger.exception("Alert sink failed for %s", verdict.target.target_id)
        return False
    return True


__all__ = ["AlertSink", "CollectingAlertSink", "LoggingAlertSink", "dispatch_alert"]
