"""Markdown reporting."""
from __future__ import annotations

from typing import List

from ..core.models import Impact, RankedViolation, RegressionVerdict
from ..core.pipeline import AuditResult


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _violations_table(violations: List[RankedViolation]) -> List[str]:
    lines = ["| Rule | Impact | Nodes | Sample targets |", "| --- | --- | --- | --- |"]
    for item in violations:
        samples = ", ".join(f"`{target}`" for target in item.sample_targets) or "-"
        lines.append(
            f"| {_cell(item.rule_id)} | {item.impact.value} | {item.node_count} | {_cell(samples)} |"
        )
    return lines


def _regression_section(verdict: RegressionVerdict) -> List[str]:
    status = "Regression detected" if verdict.is_regression else "No regression"
    lines = [
        "## Regression",
        "",
        f"**{status}** ({verdict.severity.value}): {verdict.reason}",
        "",
    ]
    if verdict.baseline is not None:
        lines.append(
            f"- **Baseline score:** {verdict.baseline.score} "
            f"(delta {verdict.score_delta:+d})"
        )
    if verdict.new_rule_ids:
        lines.append(f"- **New rules:** {', '.join(sorted(verdict.new_rule_ids))}")
    if verdict.resolved_rule_ids:
        lines.append(f"- **Resolved rules:** {', '.join(sorted(verdict.resolved_rule_ids))}")
    return lines


def to_markdown(result: AuditResult) -> str:
    """Render an audit result to a Markdown report."""

    attempt = result.attempt
    lines: List[str] = [
        "# Accessibility Audit Report",
        "",
        f"**Target:** {attempt.target.target_id}",
        f"**Outcome:** {attempt.outcome.value} (attempt {attempt.attempt})",
    ]
    if attempt.raw is not None and attempt.raw.page_title:
        lines.append(f"**Page title:** {attempt.raw.page_title}")
    lines.append("")

    summary = result.summary
    if summary is None:
        lines.extend(["## Scan failed", "", attempt.error or "No result was produced."])
        return "\n".join(lines)

    lines.extend(
        [
            f"## Score: {summary.score}/100",
            "",
            f"- **Violations:** {summary.violation_count} rules, {summary.total_nodes} nodes",
            f"- **Passes:** {summary.pass_count}",
            f"- **Incomplete:** {summary.incomplete_count}",
        ]
    )
    if result.compliance is not None:
        lines.append(
            f"- **Estimated WCAG AA / AAA:** {result.compliance.wcag_aa}% / "
            f"{result.compliance.wcag_aaa}%"
        )
    lines.extend(["", "## Impact Overview"])
    for impact in reversed(list(Impact)):
        lines.append(f"- **{impact.value.title()}:** {summary.impact_counts.get(impact.value, 0)}")
    lines.extend(["", "## Top Violations", ""])
    if summary.top_violations:
        lines.extend(_violations_table(list(summary.top_violations)))
    else:
        lines.append("No violations were found.")

    if result.verdict is not None:
        lines.append("")
        lines.extend(_regression_section(result.verdict))
    return "\n".join(lines)


__all__ = ["to_markdown"]
