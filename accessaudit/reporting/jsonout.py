"""JSON reporting."""
from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Dict

from ..core.models import RegressionVerdict, ScanAttempt, ScanRecord
from ..core.pipeline import AuditResult
from ..core.utils import json_dump


def attempt_to_dict(attempt: ScanAttempt) -> Dict[str, Any]:
    raw = attempt.raw
    return {
        "target": {"url": attempt.target.url, "page_id": attempt.target.page_id},
        "attempt": attempt.attempt,
        "outcome": attempt.outcome.value,
        "started_at": attempt.started_at.isoformat(),
        "finished_at": attempt.finished_at.isoformat(),
        "duration_ms": attempt.duration_ms,
        "degraded": attempt.degraded,
        "error": attempt.error,
        "error_kind": attempt.error_kind,
        "retryable": attempt.retryable,
        "engine": {
            "name": raw.engine_name if raw else None,
            "version": raw.engine_version if raw else None,
        },
        "page_title": raw.page_title if raw else None,
    }


def verdict_to_dict(verdict: RegressionVerdict) -> Dict[str, Any]:
    baseline = verdict.baseline
    return {
        "target_id": verdict.target.target_id,
        "is_regression": verdict.is_regression,
        "severity": verdict.severity.value,
        "reason": verdict.reason,
        "score_delta": verdict.score_delta,
        "current_score": verdict.current.score,
        "baseline_score": baseline.score if baseline else None,
        "current_record_id": verdict.current.record_id,
        "baseline_record_id": baseline.record_id if baseline else None,
        "new_rule_ids": sorted(verdict.new_rule_ids),
        "resolved_rule_ids": sorted(verdict.resolved_rule_ids),
    }


def _convert(obj: Any) -> Any:
    if isinstance(obj, AuditResult):
        return {
            "attempt": attempt_to_dict(obj.attempt),
            "summary": _convert(obj.summary),
            "compliance": _convert(obj.compliance),
            "record_id": obj.record.record_id if obj.record else None,
            "regression": verdict_to_dict(obj.verdict) if obj.verdict else None,
        }
    if isinstance(obj, RegressionVerdict):
        return verdict_to_dict(obj)
    if isinstance(obj, ScanRecord):
        return obj.to_dict()
    if isinstance(obj, ScanAttempt):
        return attempt_to_dict(obj)
    if is_dataclass(obj):
        return {k: _convert(v) for k, v in asdict(obj).items()}
    if isinstance(obj, (list, tuple)):
        return [_convert(item) for item in obj]
    return obj


def to_json(result: Any) -> str:
    """Serialize an audit result, record, verdict or summary to JSON."""

    return json_dump(_convert(result))


__all__ = ["attempt_to_dict", "to_json", "verdict_to_dict"]
