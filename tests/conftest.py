import asyncio
import os
import threading
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Sequence

import pytest

from accessaudit.core import config as config_module
from accessaudit.core.errors import EvaluatorError
from accessaudit.core.models import (
    Impact,
    NodeRef,
    Outcome,
    RawEvaluationResult,
    RuleCheck,
    ScanRecord,
    ScanTarget,
    ScoreSummary,
    Violation,
)
from accessaudit.engine.driver import RenderedContent

DEFAULT_TARGET = ScanTarget(url="https://example.com/", page_id="home")
RECORD_EPOCH = datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("ACCESSAUDIT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_PATH", tmp_path / "missing-config.toml")
    yield


def build_raw(*specs: tuple, passes: int = 0) -> RawEvaluationResult:
    """``specs`` are ``(rule_id, impact, node_count)`` tuples."""

    violations = []
    for rule_id, impact, count in specs:
        nodes = tuple(NodeRef(target=(f"#{rule_id}-{i}",)) for i in range(count))
        violations.append(
            Violation(id=rule_id, impact=Impact.parse(impact), help=f"Fix {rule_id}", nodes=nodes)
        )
    return RawEvaluationResult(
        violations=tuple(violations),
        passes=tuple(RuleCheck(id=f"pass-{i}") for i in range(passes)),
        engine_name="axe-core",
        engine_version="4.10.2",
        page_title="Example",
    )


@pytest.fixture
def make_raw() -> Callable[..., RawEvaluationResult]:
    return build_raw


class ScriptedSession:
    def __init__(self, factory: "ScriptedFactory", step: Any) -> None:
        self.factory = factory
        self.step = step

    async def navigate(self, url: str, *, degraded: bool = False) -> RenderedContent:
        self.factory.navigations.append((url, degraded))
        step = self.step(degraded) if callable(self.step) else self.step
        self.step = step
        if isinstance(step, (int, float)) and not isinstance(step, bool):
            await asyncio.sleep(step)
        if isinstance(step, BaseException) and not isinstance(step, EvaluatorError):
            raise step
        return RenderedContent(url=url, title="Example")

    async def evaluate(self, content: RenderedContent) -> RawEvaluationResult:
        if isinstance(self.step, EvaluatorError):
            raise self.step
        if isinstance(self.step, RawEvaluationResult):
            return self.step
        return build_raw()

    async def close(self) -> None:
        with self.factory.lock:
            self.factory.closed += 1


class ScriptedFactory:
    """Session factory replaying ``steps``; the last step repeats.

    A step is a :class:`RawEvaluationResult` (success), an exception raised
    from ``navigate`` (or from ``evaluate`` for ``EvaluatorError``), a number
    of seconds to hang in ``navigate``, or a callable taking the degraded
    flag and returning one of those.
    """

    def __init__(self, steps: Sequence[Any]) -> None:
        self.steps: List[Any] = list(steps)
        self.created = 0
        self.closed = 0
        self.navigations: List[tuple] = []
        self.lock = threading.Lock()

    def __call__(self, config: Any) -> ScriptedSession:
        with self.lock:
            index = min(self.created, len(self.steps) - 1)
            self.created += 1
        return ScriptedSession(self, self.steps[index])


@pytest.fixture
def scripted() -> Callable[[Sequence[Any]], ScriptedFactory]:
    return ScriptedFactory


def build_record(
    score: int,
    rules: Optional[Mapping[str, str]] = None,
    *,
    minutes: int = 0,
    target: Optional[ScanTarget] = None,
) -> ScanRecord:
    """A record whose summary carries ``rules`` as ``{rule_id: impact}``."""

    impacts = {rule: Impact.parse(impact) for rule, impact in (rules or {}).items()}
    summary = ScoreSummary(
        score=score,
        weighted_load=0.0,
        total_nodes=len(impacts),
        violation_count=len(impacts),
        pass_count=0,
        incomplete_count=0,
        inapplicable_count=0,
        rule_impacts=impacts,
    )
    return ScanRecord(
        target=target or DEFAULT_TARGET,
        outcome=Outcome.SUCCEEDED,
        summary=summary,
        created_at=RECORD_EPOCH + timedelta(minutes=minutes),
    )


@pytest.fixture
def make_record() -> Callable[..., ScanRecord]:
    return build_record
