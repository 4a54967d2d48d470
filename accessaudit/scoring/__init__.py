"""Scoring engine and derived estimates."""

from .compliance import ComplianceEstimate, estimate_compliance
from .engine import impact_weight, penalty_for, score

__all__ = ["ComplianceEstimate", "estimate_compliance", "impact_weight", "penalty_for", "score"]
