"""SARIF output generation."""
from __future__ import annotations

from ..core.models import Impact, RankedViolation
from ..core.pipeline import AuditResult
from ..core.utils import json_dump

_IMPACT_TO_LEVEL = {
    Impact.CRITICAL: "error",
    Impact.SERIOUS: "error",
    Impact.MODERATE: "warning",
    Impact.MINOR: "note",
}

_RULE_HELP_URI = "https://dequeuniversity.com/rules/axe/4.10/{rule_id}"


def _locations(item: RankedViolation) -> list:
    return [
        {
            "logicalLocations": [{"fullyQualifiedName": target, "kind": "element"}],
        }
        for target in item.sample_targets
    ]


def to_sarif(result: AuditResult) -> str:
    """Convert an audit result into SARIF v2.1.0 format."""

    attempt = result.attempt
    rules = []
    sarif_results = []
    violations = result.summary.top_violations if result.summary else ()
    for item in violations:
        rules.append(
            {
                "id": item.rule_id,
                "name": item.rule_id,
                "shortDescription": {"text": item.help or item.rule_id},
                "helpUri": _RULE_HELP_URI.format(rule_id=item.rule_id),
            }
        )
        sarif_results.append(
            {
                "ruleId": item.rule_id,
                "level": _IMPACT_TO_LEVEL.get(item.impact, "warning"),
                "message": {"text": f"{item.help or item.rule_id} ({item.node_count} nodes)"},
                "locations": _locations(item),
                "properties": {
                    "impact": item.impact.value,
                    "nodeCount": item.node_count,
                },
            }
        )

    properties = {
        "target": attempt.target.target_id,
        "outcome": attempt.outcome.value,
    }
    if result.summary is not None:
        properties["score"] = result.summary.score
    if result.verdict is not None:
        properties["regression"] = result.verdict.is_regression
        properties["regressionSeverity"] = result.verdict.severity.value

    driver = {"name": "accessaudit", "rules": rules}
    if attempt.raw is not None and attempt.raw.engine_version:
        driver["semanticVersion"] = attempt.raw.engine_version

    sarif = {
        "$schema": "https://json.schemastore.org/sarif-2.1.0.json",
        "version": "2.1.0",
        "runs": [
            {
                "tool": {"driver": driver},
                "results": sarif_results,
                "invocations": [
                    {
                        "executionSuccessful": attempt.outcome.has_result,
                        "startTimeUtc": attempt.started_at.isoformat(),
                        "endTimeUtc": attempt.finished_at.isoformat(),
                    }
                ],
                "properties": properties,
            }
        ],
    }
    return json_dump(sarif)


__all__ = ["to_sarif"]
