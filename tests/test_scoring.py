from accessaudit.core.config import ScoringConfig
from accessaudit.core.models import Impact, NodeRef, RawEvaluationResult, Violation
from accessaudit.scoring import estimate_compliance, impact_weight, score


def test_clean_page_scores_100(make_raw) -> None:
    summary = score(make_raw(passes=4))
    assert summary.score == 100
    assert summary.weighted_load == 0
    assert summary.total_nodes == 0
    assert summary.pass_count == 4
    assert summary.top_violations == ()


def test_single_critical_node(make_raw) -> None:
    summary = score(make_raw(("image-alt", "critical", 1)))
    assert summary.weighted_load == 12
    assert summary.total_nodes == 1
    assert summary.score == 78
    assert summary.impact_counts == {"minor": 0, "moderate": 0, "serious": 0, "critical": 1}


def test_half_up_rounding_is_configurable(make_raw) -> None:
    summary = score(make_raw(("image-alt", "critical", 1)), ScoringConfig(rounding="half-up"))
    assert summary.score == 77


def test_unknown_impact_uses_moderate_weight() -> None:
    violation = Violation(id="odd", impact=Impact.parse("catastrophic"), nodes=(NodeRef(("#a",)),))
    summary = score(RawEvaluationResult(violations=(violation,)))
    assert violation.impact is Impact.MODERATE
    assert summary.weighted_load == impact_weight(Impact.MODERATE) == 3


def test_score_never_below_zero(make_raw) -> None:
    summary = score(make_raw(("color-contrast", "critical", 300)))
    assert summary.score == 0


def test_adding_violations_never_raises_score(make_raw) -> None:
    specs = [
        ("a", "minor", 1),
        ("b", "moderate", 3),
        ("c", "serious", 2),
        ("d", "critical", 5),
        ("e", "minor", 40),
        ("f", "serious", 12),
    ]
    previous = 100
    for count in range(1, len(specs) + 1):
        current = score(make_raw(*specs[:count])).score
        assert 0 <= current <= previous
        previous = current


def test_score_is_pure(make_raw) -> None:
    raw = make_raw(("label", "serious", 2), ("region", "moderate", 7))
    assert score(raw) == score(raw)


def test_top_violations_ranked_and_truncated(make_raw) -> None:
    specs = [(f"rule-{i}", "minor", i % 4 + 1) for i in range(12)]
    summary = score(make_raw(*specs))
    ranked = summary.top_violations
    assert len(ranked) == 10
    counts = [item.node_count for item in ranked]
    assert counts == sorted(counts, reverse=True)
    # Ties keep evaluator order.
    assert [item.rule_id for item in ranked[:3]] == ["rule-3", "rule-7", "rule-11"]


def test_sample_targets_limited_to_three(make_raw) -> None:
    summary = score(make_raw(("list", "moderate", 5)))
    assert summary.top_violations[0].sample_targets == ("#list-0", "#list-1", "#list-2")


def test_rule_impacts_keep_most_severe() -> None:
    raw = RawEvaluationResult(
        violations=(
            Violation(id="aria", impact=Impact.MINOR, nodes=(NodeRef(("#x",)),)),
            Violation(id="aria", impact=Impact.SERIOUS, nodes=(NodeRef(("#y",)),)),
        )
    )
    assert score(raw).rule_impacts == {"aria": Impact.SERIOUS}


def test_weights_come_from_config(make_raw) -> None:
    config = ScoringConfig(weights={"minor": 1, "moderate": 3, "serious": 7, "critical": 0})
    summary = score(make_raw(("image-alt", "critical", 1)), config)
    assert summary.weighted_load == 0
    assert summary.score == 100


def test_compliance_estimate(make_raw) -> None:
    summary = score(
        make_raw(("image-alt", "critical", 1), ("label", "serious", 1), ("link-name", "serious", 1))
    )
    estimate = estimate_compliance(summary)
    assert estimate.wcag_aa == max(0, summary.score - 3 - 4)
    expected_aaa = int((summary.score - 4.5) * 0.85 + 0.5)
    assert estimate.wcag_aaa == expected_aaa
    assert estimate_compliance(score(make_raw())).wcag_aa == 100
    assert estimate_compliance(score(make_raw())).wcag_aaa == 85
