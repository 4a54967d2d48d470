"""Append-only scan record stores keyed by target id."""
from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol

from ..core.models import ScanRecord

logger = logging.getLogger(__name__)


class ScanRecordStore(Protocol):
    """Persistence collaborator. Records are returned in append order."""

    def load_latest_scan_record(self, target_id: str) -> Optional[ScanRecord]:
        ...

    def append_scan_record(self, record: ScanRecord) -> None:
        ...

    def list_scan_records(self, target_id: str, limit: Optional[int] = None) -> List[ScanRecord]:
        ...


def _tail(records: List[ScanRecord], limit: Optional[int]) -> List[ScanRecord]:
    if limit is None:
        return list(records)
    if limit <= 0:
        return []
    return list(records[-limit:])


class InMemoryRecordStore:
    """Thread-safe store for tests and single-process use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, List[ScanRecord]] = defaultdict(list)

    def load_latest_scan_record(self, target_id: str) -> Optional[ScanRecord]:
        with self._lock:
            records = self._records.get(target_id)
            return records[-1] if records else None

    def append_scan_record(self, record: ScanRecord) -> None:
        with self._lock:
            self._records[record.target.target_id].append(record)

    def list_scan_records(self, target_id: str, limit: Optional[int] = None) -> List[ScanRecord]:
        with self._lock:
            return _tail(self._records.get(target_id, []), limit)


_SLUG = re.compile(r"[^a-zA-Z0-9]+")


class JsonlRecordStore:
    """One JSON-lines file per target under ``directory``; lines are never rewritten."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def path_for(self, target_id: str) -> Path:
        slug = _SLUG.sub("-", target_id).strip("-")[:60] or "target"
        digest = hashlib.sha256(target_id.encode("utf-8")).hexdigest()[:12]
        return self.directory / f"{slug}-{digest}.jsonl"

    def _read(self, target_id: str) -> Iterator[ScanRecord]:
        path = self.path_for(target_id)
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield ScanRecord.from_dict(json.loads(line))
                except (ValueError, KeyError, TypeError):
                    logger.warning("Skipping unreadable record %s:%d", path, number)

    def load_latest_scan_record(self, target_id: str) -> Optional[ScanRecord]:
        latest = None
        with self._lock:
            for record in self._read(target_id):
                latest = record
        return latest

    def append_scan_record(self, record: ScanRecord) -> None:
        line = json.dumps(record.to_dict(), sort_keys=True)
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self.path_for(record.target.target_id).open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def list_scan_records(self, target_id: str, limit: Optional[int] = None) -> List[ScanRecord]:
        with self._lock:
            records = list(self._read(target_id))
        return _tail(records, limit)


__all__ = ["InMemoryRecordStore", "JsonlRecordStore", "ScanRecordStore"]
