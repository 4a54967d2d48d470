"""Compare a scan record against its baseline and flag meaningful drift."""
from __future__ import annotations

from typing import List, Optional

from ..core.config import RegressionThresholds
from ..core.models import Impact, RegressionVerdict, ScanRecord, Severity

_DEFAULT_THRESHOLDS = RegressionThresholds()
_FLAGGED_IMPACTS = (Impact.CRITICAL, Impact.SERIOUS)


def _classify(
    delta: int,
    by_score: bool,
    new_critical: bool,
    thresholds: RegressionThresholds,
) -> Severity:
    if delta >= thresholds.critical_drop or new_critical:
        return Severity.CRITICAL
    if by_score:
        return Severity.MAJOR
    return Severity.MINOR


def detect_regression(
    current: ScanRecord,
    baseline: Optional[ScanRecord],
    thresholds: Optional[RegressionThresholds] = None,
) -> RegressionVerdict:
    """Return the verdict for ``current`` against ``baseline``.

    ``baseline`` is the most recently completed record for the same target or
    ``None`` on the first scan, in which case no regression is possible. The
    new and resolved rule sets are always populated.
    """

    thresholds = thresholds or _DEFAULT_THRESHOLDS
    current_rules = current.summary.rule_impacts
    if baseline is None:
        return RegressionVerdict(
            target=current.target,
            current=current,
            baseline=None,
            score_delta=None,
            new_rule_ids=frozenset(current_rules),
            resolved_rule_ids=frozenset(),
            severity=Severity.NONE,
            is_regression=False,
            reason="no baseline",
        )
    if baseline.target.target_id != current.target.target_id:
        raise ValueError(
            f"Baseline belongs to {baseline.target.target_id!r}, "
            f"not {current.target.target_id!r}"
        )

    baseline_rules = baseline.summary.rule_impacts
    new_ids = frozenset(rule for rule in current_rules if rule not in baseline_rules)
    resolved_ids = frozenset(rule for rule in baseline_rules if rule not in current_rules)
    delta = baseline.score - current.score

    by_score = delta >= thresholds.score_drop_threshold
    flagged_rules = sorted(rule for rule in new_ids if current_rules[rule] in _FLAGGED_IMPACTS)
    by_rules = thresholds.new_critical_or_serious_counts_as_regression and bool(flagged_rules)
    is_regression = by_score or by_rules

    reasons: List[str] = []
    if by_score:
        reasons.append(f"score dropped {delta} points ({baseline.score} -> {current.score})")
    if by_rules:
        reasons.append("new critical/serious rules: " + ", ".join(flagged_rules))

    if is_regression:
        new_critical = any(current_rules[rule] is Impact.CRITICAL for rule in new_ids)
        severity = _classify(delta, by_score, new_critical, thresholds)
        reason = "; ".join(reasons)
    else:
        severity = Severity.NONE
        if delta < 0:
            reason = f"score improved {-delta} points"
        elif delta > 0:
            reason = f"score dropped {delta} points, below threshold {thresholds.score_drop_threshold}"
        else:
            reason = "no significant change"

    return RegressionVerdict(
        target=current.target,
        current=current,
        baseline=baseline,
        score_delta=delta,
        new_rule_ids=new_ids,
        resolved_rule_ids=resolved_ids,
        severity=severity,
        is_regression=is_regression,
        reason=reason,
    )


__all__ = ["detect_regression"]
