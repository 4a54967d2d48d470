"""Scoring engine: raw evaluator result -> 0..100 score and ranked summary.

Violations are weighted by impact before normalization so that one severe
issue is not outweighed by many trivial ones::

    weighted_load = sum(weight(impact) * node_count)
    total_nodes   = sum(node_count)
    penalty       = min(100, rnd(log10(1 + weighted_load) * 20 + total_nodes * 0.5))
    score         = max(0, 100 - penalty)

The logarithmic term keeps the function sub-linear in the number of issues;
the linear node term keeps breadth from being masked by the compression.
"""
from __future__ import annotations

import math
from collections import Counter
from typing import Dict, List, Optional

from ..core.config import ScoringConfig
from ..core.models import Impact, RankedViolation, RawEvaluationResult, ScoreSummary, Violation
from ..core.utils import round_half_up

_DEFAULT_CONFIG = ScoringConfig()


def impact_weight(impact: Impact, config: ScoringConfig = _DEFAULT_CONFIG) -> float:
    weights = config.weights
    return float(weights.get(impact.value, weights["moderate"]))


def penalty_for(weighted_load: float, total_nodes: int, config: ScoringConfig = _DEFAULT_CONFIG) -> int:
    raw = math.log10(1 + weighted_load) * config.log_factor + total_nodes * config.node_factor
    rounded = round_half_up(raw) if config.rounding == "half-up" else int(math.floor(raw))
    return min(config.max_penalty, rounded)


def _rank(violations: List[Violation], config: ScoringConfig) -> tuple[RankedViolation, ...]:
    # sorted() is stable, so equal node counts keep evaluator order.
    ordered = sorted(violations, key=lambda v: v.node_count, reverse=True)
    ranked = []
    for violation in ordered[: config.top_n]:
        samples = [
            node.selector for node in violation.nodes[: config.sample_targets] if node.selector
        ]
        ranked.append(
            RankedViolation(
                rule_id=violation.id,
                impact=violation.impact,
                help=violation.help,
                node_count=violation.node_count,
                sample_targets=tuple(samples),
            )
        )
    return tuple(ranked)


def _rule_impacts(violations: List[Violation]) -> Dict[str, Impact]:
    impacts: Dict[str, Impact] = {}
    for violation in violations:
        known = impacts.get(violation.id)
        if known is None or violation.impact.rank > known.rank:
            impacts[violation.id] = violation.impact
    return impacts


def score(raw: RawEvaluationResult, config: Optional[ScoringConfig] = None) -> ScoreSummary:
    """Compute the :class:`ScoreSummary` for ``raw``. Pure and thread-safe."""

    config = config or _DEFAULT_CONFIG
    violations = list(raw.violations)
    weighted_load = sum(impact_weight(v.impact, config) * v.node_count for v in violations)
    total_nodes = sum(v.node_count for v in violations)
    penalty = penalty_for(weighted_load, total_nodes, config)

    counts = Counter(v.impact.value for v in violations)
    impact_counts = {impact.value: counts.get(impact.value, 0) for impact in Impact}

    return ScoreSummary(
        score=max(0, 100 - penalty),
        weighted_load=weighted_load,
        total_nodes=total_nodes,
        violation_count=len(violations),
        pass_count=len(raw.passes),
        incomplete_count=len(raw.incomplete),
        inapplicable_count=len(raw.inapplicable),
        impact_counts=impact_counts,
        top_violations=_rank(violations, config),
        rule_impacts=_rule_impacts(violations),
    )


__all__ = ["impact_weight", "penalty_for", "score"]
