import pytest

from accessaudit.regression.trends import compare_with_history, history_statistics, trend_direction


@pytest.fixture
def history(make_record):
    def build(*scores: int):
        return [make_record(score, minutes=i) for i, score in enumerate(scores)]

    return build


def test_statistics_of_empty_history() -> None:
    assert history_statistics([]) is None


def test_statistics_summarize_scores(history) -> None:
    stats = history_statistics(history(90, 80, 85))
    assert stats is not None
    assert stats.latest_score == 85
    assert stats.average_score == 85
    assert (stats.min_score, stats.max_score) == (80, 90)
    assert stats.total_scans == 3
    assert stats.regression_count == 1
    assert stats.trend == "stable"


def test_statistics_only_consider_last_thirty(history) -> None:
    stats = history_statistics(history(*([10] * 5 + [90] * 30)))
    assert stats is not None
    assert stats.total_scans == 30
    assert stats.min_score == 90


def test_trend_direction(history) -> None:
    assert history_statistics(history(*([60] * 5 + [80] * 5))).trend == "improving"
    assert history_statistics(history(*([80] * 5 + [60] * 5))).trend == "declining"
    assert trend_direction([81, 80, 80, 80, 80, 80]) == "stable"
    assert trend_direction([70]) == "stable"


def test_compare_with_history(history) -> None:
    assert compare_with_history([], 50).comparison == "first_scan"
    scans = history(80, 80)
    assert compare_with_history(scans, 86).comparison == "above_average"
    assert compare_with_history(scans, 78).comparison == "average"
    slight = compare_with_history(scans, 72)
    assert slight.comparison == "slightly_below"
    assert slight.is_good is True
    below = compare_with_history(scans, 69)
    assert below.comparison == "below_average"
    assert below.is_good is False
    assert below.average_score == 80
