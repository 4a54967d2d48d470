"""Core data models for accessaudit."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Sequence
from urllib.parse import urlparse

from .errors import InvalidTargetError


class Impact(str, Enum):
    """Severity an accessibility rule assigns to a violation."""

    MINOR = "minor"
    MODERATE = "moderate"
    SERIOUS = "serious"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: object) -> "Impact":
        if isinstance(value, Impact):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.MODERATE

    @property
    def rank(self) -> int:
        return _IMPACT_RANK[self]


_IMPACT_RANK = {
    Impact.MINOR: 1,
    Impact.MODERATE: 2,
    Impact.SERIOUS: 3,
    Impact.CRITICAL: 4,
}


class Outcome(str, Enum):
    """Terminal state of a scan attempt."""

    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed-out"
    FAILED = "failed"
    DEGRADED = "degraded"
    CANCELLED = "cancelled"

    @property
    def has_result(self) -> bool:
        return self in (Outcome.SUCCEEDED, Outcome.DEGRADED)


class Severity(str, Enum):
    """Regression severity."""

    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ScanTarget:
    """A page to audit: an absolute http(s) URL plus an optional page identifier."""

    url: str
    page_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise InvalidTargetError("Target URL must be a non-empty string")
        parsed = urlparse(self.url.strip())
        if parsed.scheme not in {"http", "https"}:
            raise InvalidTargetError(f"Target URL must use http or https: {self.url!r}")
        if not parsed.hostname:
            raise InvalidTargetError(f"Target URL has no host: {self.url!r}")
        object.__setattr__(self, "url", self.url.strip())

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def target_id(self) -> str:
        if self.page_id:
            return f"{self.url}::{self.page_id}"
        return self.url


@dataclass(frozen=True)
class NodeRef:
    """A DOM node affected by a rule."""

    target: Sequence[str] = field(default_factory=tuple)
    html: str | None = None

    @property
    def selector(self) -> str | None:
        return self.target[0] if self.target else None


@dataclass(frozen=True)
class Violation:
    """A failed rule check and the nodes it affects."""

    id: str
    impact: Impact
    help: str = ""
    description: str = ""
    nodes: Sequence[NodeRef] = field(default_factory=tuple)

    @property
    def node_count(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True)
class RuleCheck:
    """A rule that passed, was incomplete or did not apply."""

    id: str
    description: str = ""
    node_count: int = 0


@dataclass(frozen=True)
class RawEvaluationResult:
    """Output of the rule evaluator for one rendered page."""

    violations: Sequence[Violation] = field(default_factory=tuple)
    passes: Sequence[RuleCheck] = field(default_factory=tuple)
    incomplete: Sequence[RuleCheck] = field(default_factory=tuple)
    inapplicable: Sequence[RuleCheck] = field(default_factory=tuple)
    engine_name: str | None = None
    engine_version: str | None = None
    page_title: str | None = None


@dataclass(frozen=True)
class ScanAttempt:
    """One execution of the orchestrator against a target."""

    target: ScanTarget
    attempt: int
    started_at: datetime
    finished_at: datetime
    outcome: Outcome
    raw: RawEvaluationResult | None = None
    error: str | None = None
    error_kind: str | None = None
    retryable: bool = False
    degraded: bool = False

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)


@dataclass(frozen=True)
class RankedViolation:
    """A violation entry in the ranked summary."""

    rule_id: str
    impact: Impact
    help: str
    node_count: int
    sample_targets: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class ScoreSummary:
    """Normalized score and ranked summary derived from a raw result."""

    score: int
    weighted_load: float
    total_nodes: int
    violation_count: int
    pass_count: int
    incomplete_count: int
    inapplicable_count: int
    impact_counts: Mapping[str, int] = field(default_factory=dict)
    top_violations: Sequence[RankedViolation] = field(default_factory=tuple)
    rule_impacts: Mapping[str, Impact] = field(default_factory=dict)


@dataclass(frozen=True)
class ScanRecord:
    """The persisted unit of scan history."""

    target: ScanTarget
    outcome: Outcome
    summary: ScoreSummary
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempt: int = 1

    @property
    def score(self) -> int:
        return self.summary.score

    @property
    def degraded(self) -> bool:
        return self.outcome is Outcome.DEGRADED

    @classmethod
    def from_attempt(cls, attempt: ScanAttempt, summary: ScoreSummary) -> "ScanRecord":
        if not attempt.outcome.has_result or attempt.raw is None:
            raise ValueError(
                f"Attempt outcome '{attempt.outcome.value}' carries no result to record"
            )
        return cls(
            target=attempt.target,
            outcome=attempt.outcome,
            summary=summary,
            created_at=attempt.finished_at,
            attempt=attempt.attempt,
        )

    def to_dict(self) -> dict[str, Any]:
        summary = self.summary
        return {
            "record_id": self.record_id,
            "target": {"url": self.target.url, "page_id": self.target.page_id},
            "outcome": self.outcome.value,
            "attempt": self.attempt,
            "created_at": self.created_at.isoformat(),
            "summary": {
                "score": summary.score,
                "weighted_load": summary.weighted_load,
                "total_nodes": summary.total_nodes,
                "violation_count": summary.violation_count,
                "pass_count": summary.pass_count,
                "incomplete_count": summary.incomplete_count,
                "inapplicable_count": summary.inapplicable_count,
                "impact_counts": dict(summary.impact_counts),
                "rule_impacts": {k: v.value for k, v in summary.rule_impacts.items()},
                "top_violations": [
                    {
                        "rule_id": item.rule_id,
                        "impact": item.impact.value,
                        "help": item.help,
                        "node_count": item.node_count,
                        "sample_targets": list(item.sample_targets),
                    }
                    for item in summary.top_violations
                ],
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScanRecord":
        target = data["target"]
        summary = data["summary"]
        return cls(
            record_id=str(data["record_id"]),
            target=ScanTarget(url=target["url"], page_id=target.get("page_id")),
            outcome=Outcome(data["outcome"]),
            attempt=int(data.get("attempt", 1)),
            created_at=datetime.fromisoformat(data["created_at"]),
            summary=ScoreSummary(
                score=int(summary["score"]),
                weighted_load=float(summary["weighted_load"]),
                total_nodes=int(summary["total_nodes"]),
                violation_count=int(summary["violation_count"]),
                pass_count=int(summary["pass_count"]),
                incomplete_count=int(summary["incomplete_count"]),
                inapplicable_count=int(summary["inapplicable_count"]),
                impact_counts=dict(summary.get("impact_counts", {})),
                rule_impacts={
                    k: Impact.parse(v) for k, v in summary.get("rule_impacts", {}).items()
                },
                top_violations=tuple(
                    RankedViolation(
                        rule_id=item["rule_id"],
                        impact=Impact.parse(item["impact"]),
                        help=item.get("help", ""),
                        node_count=int(item["node_count"]),
                        sample_targets=tuple(item.get("sample_targets", ())),
                    )
                    for item in summary.get("top_violations", ())
                ),
            ),
        )


@dataclass(frozen=True)
class RegressionVerdict:
    """Comparison of a scan record against its baseline."""

    target: ScanTarget
    current: ScanRecord
    baseline: ScanRecord | None
    score_delta: int | None
    new_rule_ids: frozenset[str]
    resolved_rule_ids: frozenset[str]
    severity: Severity
    is_regression: bool
    reason: str


__all__ = [
    "Impact",
    "Outcome",
    "Severity",
    "ScanTarget",
    "NodeRef",
    "Violation",
    "RuleCheck",
    "RawEvaluationResult",
    "ScanAttempt",
    "RankedViolation",
    "ScoreSummary",
    "ScanRecord",
    "RegressionVerdict",
]
