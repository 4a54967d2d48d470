from pathlib import Path

import pytest

from accessaudit.core import config as config_module
from accessaudit.core.config import (
    RegressionThresholds,
    ScanConfig,
    ScoringConfig,
    load_config,
    with_overrides,
)
from accessaudit.core.errors import ConfigurationError


def _write_config(path: Path) -> Path:
    path.write_text(
        "\n".join(
            [
                "[accessaudit]",
                "workers = 4",
                'history_dir = "/var/lib/accessaudit"',
                "",
                "[accessaudit.scan]",
                "timeout_ms = 20000",
                "max_retries = 1",
                "unknown_key = 3",
                "",
                "[accessaudit.scoring]",
                "top_n = 5",
                "",
                "[accessaudit.regression]",
                "score_drop_threshold = 8",
            ]
        ),
        encoding="utf-8",
    )
    return path


def test_defaults_without_file() -> None:
    config = load_config()
    assert config.scan == ScanConfig()
    assert config.scan.timeout_ms == 45_000
    assert config.scan.max_retries == 2
    assert config.scoring.weights["critical"] == 12
    assert config.regression.score_drop_threshold == 5
    assert config.workers == 2
    assert config.verbose is False


def test_file_values_are_applied(tmp_path: Path) -> None:
    config = load_config(path=_write_config(tmp_path / "config.toml"))
    assert config.scan.timeout_ms == 20_000
    assert config.scan.max_retries == 1
    assert config.scoring.top_n == 5
    assert config.regression.score_drop_threshold == 8
    assert config.workers == 4
    assert config.history_dir == Path("/var/lib/accessaudit")


def test_default_path_is_used(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config_module, "CONFIG_PATH", _write_config(tmp_path / "config.toml"))
    assert load_config().workers == 4


def test_precedence_file_env_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.toml")
    monkeypatch.setenv("ACCESSAUDIT_TIMEOUT_MS", "30000")
    monkeypatch.setenv("ACCESSAUDIT_WORKERS", "6")
    monkeypatch.setenv("ACCESSAUDIT_DEGRADE", "yes")
    monkeypatch.setenv("ACCESSAUDIT_SCORE_DROP_THRESHOLD", "3")
    monkeypatch.setenv("ACCESSAUDIT_HISTORY_DIR", str(tmp_path / "env-history"))
    monkeypatch.setenv("ACCESSAUDIT_VERBOSE", "1")

    config = load_config(path=path)
    assert config.scan.timeout_ms == 30_000
    assert config.scan.max_retries == 1
    assert config.scan.degrade_on_persistent_failure is True
    assert config.regression.score_drop_threshold == 3
    assert config.workers == 6
    assert config.history_dir == tmp_path / "env-history"
    assert config.verbose is True

    config = load_config(
        path=path,
        cli_scan={"timeout_ms": 5_000, "max_retries": None},
        cli_workers=1,
        cli_history_dir=tmp_path / "cli-history",
        cli_verbose=False,
    )
    assert config.scan.timeout_ms == 5_000
    assert config.scan.max_retries == 1
    assert config.workers == 1
    assert config.history_dir == tmp_path / "cli-history"
    assert config.verbose is False


def test_bad_environment_values_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESSAUDIT_MAX_RETRIES", "many")
    with pytest.raises(ValueError, match="ACCESSAUDIT_MAX_RETRIES"):
        load_config()


@pytest.mark.parametrize(
    "overrides",
    [
        {"timeout_ms": 0},
        {"max_retries": -1},
        {"backoff_ms": -5},
        {"cancel_poll_ms": 0},
    ],
)
def test_invalid_scan_config(overrides) -> None:
    with pytest.raises(ConfigurationError):
        with_overrides(ScanConfig(), **overrides)


def test_invalid_scoring_config() -> None:
    with pytest.raises(ConfigurationError):
        ScoringConfig(weights={"minor": 1}).validate()
    with pytest.raises(ConfigurationError):
        ScoringConfig(rounding="bankers").validate()


def test_invalid_workers_from_cli() -> None:
    with pytest.raises(ConfigurationError):
        load_config(cli_workers=0)


def test_invalid_workers_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESSAUDIT_WORKERS", "0")
    with pytest.raises(ConfigurationError):
        load_config()


def test_drop_threshold_may_exceed_critical_drop(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    assert RegressionThresholds(score_drop_threshold=25).validate().critical_drop == 20

    path = tmp_path / "config.toml"
    path.write_text("[accessaudit.regression]\nscore_drop_threshold = 25\n", encoding="utf-8")
    assert load_config(path=path).regression.score_drop_threshold == 25

    monkeypatch.setenv("ACCESSAUDIT_SCORE_DROP_THRESHOLD", "25")
    assert load_config().regression.score_drop_threshold == 25


def test_fractional_drop_threshold_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCESSAUDIT_SCORE_DROP_THRESHOLD", "5.9")
    with pytest.raises(ValueError, match="ACCESSAUDIT_SCORE_DROP_THRESHOLD"):
        load_config()
