"""Rough WCAG AA/AAA conformance estimate derived from a score summary."""
from __future__ import annotations

from dataclasses import dataclass

from ..core.models import ScoreSummary
from ..core.utils import round_half_up


@dataclass(frozen=True)
class ComplianceEstimate:
    wcag_aa: int
    wcag_aaa: int


def _clamp(value: float) -> float:
    return min(100.0, max(0.0, value))


def estimate_compliance(summary: ScoreSummary) -> ComplianceEstimate:
    """Estimate conformance percentages.

    Critical and serious violations weigh on AA; AAA is stricter and is
    penalized by every violation, then scaled to 85% of the adjusted score.
    """

    critical = summary.impact_counts.get("critical", 0)
    serious = summary.impact_counts.get("serious", 0)
    aa = _clamp(summary.score - critical * 3 - serious * 2)
    aaa = _clamp(summary.score - summary.violation_count * 1.5) * 0.85
    return ComplianceEstimate(wcag_aa=round_half_up(aa), wcag_aaa=round_half_up(aaa))


__all__ = ["ComplianceEstimate", "estimate_compliance"]
