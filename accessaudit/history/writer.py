"""Single writer per target: load baseline, append, detect, alert."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from ..core.config import RegressionThresholds
from ..core.models import RegressionVerdict, ScanAttempt, ScanRecord, ScoreSummary
from ..regression.detector import detect_regression
from .alerts import AlertSink, dispatch_alert
from .store import ScanRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    record: ScanRecord
    verdict: RegressionVerdict


class RecordWriter:
    """Serialize record appends per target.

    The baseline read and the append happen under the same per-target lock,
    so two scans finishing together never compare against the same previous
    record. Different targets commit in parallel.
    """

    def __init__(
        self,
        store: ScanRecordStore,
        thresholds: Optional[RegressionThresholds] = None,
        alert_sink: Optional[AlertSink] = None,
    ) -> None:
        self.store = store
        self.thresholds = (thresholds or RegressionThresholds()).validate()
        self.alert_sink = alert_sink
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, target_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(target_id)
            if lock is None:
                lock = self._locks[target_id] = threading.Lock()
            return lock

    def commit(self, attempt: ScanAttempt, summary: ScoreSummary) -> CommitResult:
        record = ScanRecord.from_attempt(attempt, summary)
        target_id = record.target.target_id
        with self._lock_for(target_id):
            baseline = self.store.load_latest_scan_record(target_id)
            self.store.append_scan_record(record)
            verdict = detect_regression(record, baseline, self.thresholds)
        logger.info("Recorded %s score=%d (%s)", target_id, record.score, verdict.reason)
        if verdict.is_regression:
            dispatch_alert(self.alert_sink, verdict)
        return CommitResult(record=record, verdict=verdict)


__all__ = ["CommitResult", "RecordWriter"]
