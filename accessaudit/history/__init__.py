"""Scan history persistence, single-writer commits and alert hand-off."""

from .alerts import AlertSink, CollectingAlertSink, LoggingAlertSink, dispatch_alert
from .store import InMemoryRecordStore, JsonlRecordStore, ScanRecordStore
from .writer import CommitResult, RecordWriter

__all__ = [
    "AlertSink",
    "CollectingAlertSink",
    "CommitResult",
    "InMemoryRecordStore",
    "JsonlRecordStore",
    "LoggingAlertSink",
    "RecordWriter",
    "ScanRecordStore",
    "dispatch_alert",
]
