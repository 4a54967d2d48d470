import pytest

from accessaudit.core.config import RegressionThresholds
from accessaudit.core.models import ScanTarget, Severity
from accessaudit.regression import detect_regression


def test_ten_point_drop_is_major_regression(make_record) -> None:
    verdict = detect_regression(
        make_record(70), make_record(80), RegressionThresholds(score_drop_threshold=5)
    )
    assert verdict.is_regression is True
    assert verdict.severity is Severity.MAJOR
    assert verdict.score_delta == 10
    assert "dropped 10 points" in verdict.reason


def test_identical_scans_are_not_a_regression(make_record) -> None:
    rules = {"label": "serious", "region": "moderate"}
    verdict = detect_regression(make_record(85, rules), make_record(85, rules))
    assert verdict.is_regression is False
    assert verdict.severity is Severity.NONE
    assert verdict.new_rule_ids == frozenset()
    assert verdict.resolved_rule_ids == frozenset()


def test_first_scan_has_no_baseline(make_record) -> None:
    verdict = detect_regression(make_record(40, {"label": "critical"}), None)
    assert verdict.is_regression is False
    assert verdict.reason == "no baseline"
    assert verdict.score_delta is None
    assert verdict.baseline is None


def test_large_drop_is_critical(make_record) -> None:
    verdict = detect_regression(make_record(60), make_record(85))
    assert verdict.severity is Severity.CRITICAL


def test_new_serious_rule_alone_is_minor_regression(make_record) -> None:
    verdict = detect_regression(
        make_record(90, {"label": "serious", "region": "moderate"}),
        make_record(90, {"region": "moderate"}),
    )
    assert verdict.is_regression is True
    assert verdict.severity is Severity.MINOR
    assert verdict.new_rule_ids == frozenset({"label"})
    assert "label" in verdict.reason


def test_new_critical_rule_is_critical(make_record) -> None:
    verdict = detect_regression(make_record(88, {"image-alt": "critical"}), make_record(90))
    assert verdict.is_regression is True
    assert verdict.severity is Severity.CRITICAL


def test_new_rule_flag_can_be_disabled(make_record) -> None:
    thresholds = RegressionThresholds(new_critical_or_serious_counts_as_regression=False)
    verdict = detect_regression(make_record(90, {"label": "serious"}), make_record(90), thresholds)
    assert verdict.is_regression is False
    assert verdict.new_rule_ids == frozenset({"label"})


def test_new_minor_rule_is_reported_but_not_flagged(make_record) -> None:
    verdict = detect_regression(
        make_record(97, {"region": "minor"}), make_record(100, {"list": "serious"})
    )
    assert verdict.is_regression is False
    assert verdict.new_rule_ids == frozenset({"region"})
    assert verdict.resolved_rule_ids == frozenset({"list"})
    assert "below threshold" in verdict.reason


def test_improvement_is_reported(make_record) -> None:
    verdict = detect_regression(make_record(95), make_record(80))
    assert verdict.is_regression is False
    assert verdict.score_delta == -15
    assert verdict.reason == "score improved 15 points"


def test_baseline_must_belong_to_same_target(make_record) -> None:
    other = make_record(80, target=ScanTarget(url="https://example.com/", page_id="pricing"))
    with pytest.raises(ValueError):
        detect_regression(make_record(70), other)


def test_drop_under_a_high_threshold_is_not_a_regression(make_record) -> None:
    thresholds = RegressionThresholds(score_drop_threshold=25)
    verdict = detect_regression(make_record(60), make_record(82), thresholds)
    assert verdict.is_regression is False
    assert verdict.score_delta == 22
    assert "below threshold 25" in verdict.reason
