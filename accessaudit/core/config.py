"""Configuration loading for accessaudit."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import ConfigurationError
from .utils import env_bool, env_int

try:  # pragma: no cover - Python >=3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - optional dependency path
    try:
        import tomli as tomllib  # type: ignore[assignment]
    except ModuleNotFoundError:  # pragma: no cover - fallback when tomli missing
        tomllib = None  # type: ignore[assignment]


CONFIG_PATH = Path.home() / ".config" / "accessaudit" / "config.toml"
DEFAULT_HISTORY_DIR = Path.home() / ".local" / "share" / "accessaudit" / "history"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
AXE_CDN_URL = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"


@dataclass(frozen=True)
class ScanConfig:
    """Per-scan orchestration options."""

    timeout_ms: int = 45_000
    max_retries: int = 2
    backoff_ms: int = 1_000
    backoff_cap_ms: int = 30_000
    degrade_on_persistent_failure: bool = False
    preflight: bool = True
    settle_ms: int = 500
    cancel_poll_ms: int = 50
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = DEFAULT_USER_AGENT
    ignore_https_errors: bool = True
    bypass_csp: bool = True
    axe_script: Optional[str] = None
    axe_script_url: str = AXE_CDN_URL

    def validate(self) -> "ScanConfig":
        if self.timeout_ms <= 0:
            raise ConfigurationError("timeout_ms must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")
        if self.backoff_ms < 0 or self.backoff_cap_ms < 0:
            raise ConfigurationError("backoff values cannot be negative")
        if self.settle_ms < 0:
            raise ConfigurationError("settle_ms cannot be negative")
        if self.cancel_poll_ms <= 0:
            raise ConfigurationError("cancel_poll_ms must be positive")
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ConfigurationError("viewport dimensions must be positive")
        return self


@dataclass(frozen=True)
class ScoringConfig:
    """Constants of the penalty function."""

    weights: Mapping[str, float] = field(
        default_factory=lambda: {"minor": 1, "moderate": 3, "serious": 7, "critical": 12}
    )
    log_factor: float = 20.0
    node_factor: float = 0.5
    max_penalty: int = 100
    rounding: str = "floor"
    top_n: int = 10
    sample_targets: int = 3

    def validate(self) -> "ScoringConfig":
        for name in ("minor", "moderate", "serious", "critical"):
            if name not in self.weights:
                raise ConfigurationError(f"Missing impact weight '{name}'")
            if self.weights[name] < 0:
                raise ConfigurationError(f"Impact weight '{name}' cannot be negative")
        if self.log_factor < 0 or self.node_factor < 0:
            raise ConfigurationError("Penalty factors cannot be negative")
        if not 0 < self.max_penalty <= 100:
            raise ConfigurationError("max_penalty must be within (0, 100]")
        if self.rounding not in {"floor", "half-up"}:
            raise ConfigurationError("rounding must be 'floor' or 'half-up'")
        if self.top_n < 0 or self.sample_targets < 0:
            raise ConfigurationError("top_n and sample_targets cannot be negative")
        return self


@dataclass(frozen=True)
class RegressionThresholds:
    """Significance thresholds for the regression detector."""

    score_drop_threshold: int = 5
    new_critical_or_serious_counts_as_regression: bool = True
    critical_drop: int = 20

    def validate(self) -> "RegressionThresholds":
        if self.score_drop_threshold <= 0:
            raise ConfigurationError("score_drop_threshold must be positive")
        if self.critical_drop <= 0:
            raise ConfigurationError("critical_drop must be positive")
        return self


@dataclass(frozen=True)
class RuntimeConfig:
    """Computed runtime configuration values."""

    scan: ScanConfig
    scoring: ScoringConfig
    regression: RegressionThresholds
    workers: int
    history_dir: Path
    verbose: bool


def _load_file_config(path: Path | None = None) -> dict[str, Any]:
    path = path or CONFIG_PATH
    if not path.exists():
        return {}
    raw = path.read_bytes()
    if tomllib is None:
        return {}
    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except Exception:  # pragma: no cover - invalid toml edge case
        return {}
    section = data.get("accessaudit")
    if not isinstance(section, dict):
        return {}
    return section


def _known(cls: type, values: Mapping[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in values.items() if key in names}


def _table(section: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    table = section.get(name)
    return table if isinstance(table, dict) else {}


def _env_scan_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, env in (
        ("timeout_ms", "ACCESSAUDIT_TIMEOUT_MS"),
        ("max_retries", "ACCESSAUDIT_MAX_RETRIES"),
        ("backoff_ms", "ACCESSAUDIT_BACKOFF_MS"),
    ):
        value = env_int(env)
        if value is not None:
            overrides[key] = value
    if os.getenv("ACCESSAUDIT_DEGRADE") is not None:
        overrides["degrade_on_persistent_failure"] = env_bool("ACCESSAUDIT_DEGRADE")
    user_agent = os.getenv("ACCESSAUDIT_USER_AGENT")
    if user_agent:
        overrides["user_agent"] = user_agent
    axe_script = os.getenv("ACCESSAUDIT_AXE_SCRIPT")
    if axe_script:
        overrides["axe_script"] = axe_script
    return overrides


def load_config(
    *,
    path: Path | None = None,
    cli_scan: Optional[Mapping[str, Any]] = None,
    cli_workers: Optional[int] = None,
    cli_history_dir: Optional[Path] = None,
    cli_verbose: Optional[bool] = None,
) -> RuntimeConfig:
    """Compose runtime configuration respecting precedence.

    Defaults are overridden by the TOML file, then by ``ACCESSAUDIT_*``
    environment variables, then by explicit CLI values. ``None`` CLI values
    leave the lower layers untouched.
    """

    file_config = _load_file_config(path)

    scan_values = dict(_known(ScanConfig, _table(file_config, "scan")))
    scan_values.update(_env_scan_overrides())
    if cli_scan:
        scan_values.update({k: v for k, v in cli_scan.items() if v is not None})
    scan = ScanConfig(**_known(ScanConfig, scan_values)).validate()

    scoring = ScoringConfig(**_known(ScoringConfig, _table(file_config, "scoring"))).validate()

    regression_values = dict(_known(RegressionThresholds, _table(file_config, "regression")))
    drop = env_int("ACCESSAUDIT_SCORE_DROP_THRESHOLD")
    if drop is not None:
        regression_values["score_drop_threshold"] = drop
    regression = RegressionThresholds(**regression_values).validate()

    workers = int(file_config.get("workers", 2))
    env_workers = env_int("ACCESSAUDIT_WORKERS")
    if env_workers is not None:
        workers = env_workers
    if cli_workers is not None:
        workers = cli_workers
    if workers <= 0:
        raise ConfigurationError("workers must be positive")

    history_dir = Path(str(file_config.get("history_dir", DEFAULT_HISTORY_DIR))).expanduser()
    env_history = os.getenv("ACCESSAUDIT_HISTORY_DIR")
    if env_history:
        history_dir = Path(env_history).expanduser()
    if cli_history_dir is not None:
        history_dir = cli_history_dir

    file_verbose = bool(file_config.get("verbose", False))
    env_verbose = env_bool("ACCESSAUDIT_VERBOSE", file_verbose)
    verbose = cli_verbose if cli_verbose is not None else env_verbose

    return RuntimeConfig(
        scan=scan,
        scoring=scoring,
        regression=regression,
        workers=workers,
        history_dir=history_dir,
        verbose=verbose,
    )


def with_overrides(config: ScanConfig, **changes: Any) -> ScanConfig:
    """Return a validated copy of ``config`` with ``changes`` applied."""

    return replace(config, **{k: v for k, v in changes.items() if v is not None}).validate()


__all__ = [
    "AXE_CDN_URL",
    "CONFIG_PATH",
    "RegressionThresholds",
    "RuntimeConfig",
    "ScanConfig",
    "ScoringConfig",
    "load_config",
    "with_overrides",
]
