"""Rule evaluator adapter around axe-core."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from ..core.config import AXE_CDN_URL
from ..core.errors import EvaluatorError
from ..core.models import Impact, NodeRef, RawEvaluationResult, RuleCheck, Violation

logger = logging.getLogger(__name__)

_AXE_RUN = """
async (options) => {
  if (!window.axe || !window.axe.run) {
    return { error: 'axe not loaded' };
  }
  return await window.axe.run(document, options || {});
}
"""


def _selector(part: Any) -> str:
    # Shadow DOM and iframe targets arrive as nested selector lists.
    if isinstance(part, (list, tuple)):
        return " >>> ".join(str(item) for item in part)
    return str(part)


def _parse_nodes(raw_nodes: Any) -> tuple[NodeRef, ...]:
    if not isinstance(raw_nodes, Sequence) or isinstance(raw_nodes, (str, bytes)):
        return ()
    nodes: List[NodeRef] = []
    for node in raw_nodes:
        if not isinstance(node, Mapping):
            continue
        target = node.get("target") or ()
        if isinstance(target, str):
            target = (target,)
        html = node.get("html")
        nodes.append(
            NodeRef(
                target=tuple(_selector(part) for part in target),
                html=html if isinstance(html, str) else None,
            )
        )
    return tuple(nodes)


def _parse_violations(entries: Any) -> tuple[Violation, ...]:
    violations: List[Violation] = []
    for index, entry in enumerate(_as_list(entries, "violations")):
        if not isinstance(entry, Mapping):
            logger.warning("Skipping malformed violation entry at index %d", index)
            continue
        rule_id = entry.get("id")
        violations.append(
            Violation(
                id=str(rule_id) if rule_id else f"unknown-rule-{index}",
                impact=Impact.parse(entry.get("impact")),
                help=str(entry.get("help") or ""),
                description=str(entry.get("description") or ""),
                nodes=_parse_nodes(entry.get("nodes")),
            )
        )
    return tuple(violations)


def _parse_checks(entries: Any, name: str) -> tuple[RuleCheck, ...]:
    checks: List[RuleCheck] = []
    for index, entry in enumerate(_as_list(entries, name)):
        if not isinstance(entry, Mapping):
            continue
        nodes = entry.get("nodes")
        checks.append(
            RuleCheck(
                id=str(entry.get("id") or f"unknown-rule-{index}"),
                description=str(entry.get("description") or ""),
                node_count=len(nodes) if isinstance(nodes, list) else 0,
            )
        )
    return tuple(checks)


def _as_list(value: Any, name: str) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    logger.warning("Evaluator field '%s' is not a list; treating as empty", name)
    return []


def parse_raw_result(
    payload: Any, *, page_title: Optional[str] = None
) -> RawEvaluationResult:
    """Convert an axe-core result payload into a :class:`RawEvaluationResult`.

    Missing or malformed fields degrade to defaults rather than failing the
    scan. Only a payload that is not an object, or one reporting an evaluator
    error, raises :class:`EvaluatorError`.
    """

    if not isinstance(payload, Mapping):
        raise EvaluatorError(f"Evaluator returned {type(payload).__name__}, expected an object")
    if payload.get("error"):
        raise EvaluatorError(f"Evaluator reported an error: {payload['error']}")

    engine = payload.get("testEngine")
    engine = engine if isinstance(engine, Mapping) else {}
    return RawEvaluationResult(
        violations=_parse_violations(payload.get("violations")),
        passes=_parse_checks(payload.get("passes"), "passes"),
        incomplete=_parse_checks(payload.get("incomplete"), "incomplete"),
        inapplicable=_parse_checks(payload.get("inapplicable"), "inapplicable"),
        engine_name=engine.get("name") or "axe-core",
        engine_version=engine.get("version"),
        page_title=page_title,
    )


class AxeEvaluator:
    """Injects axe-core into a Playwright page and runs it."""

    def __init__(
        self,
        script_path: Optional[str] = None,
        script_url: str = AXE_CDN_URL,
        run_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.script_path = script_path
        self.script_url = script_url
        self.run_options = dict(run_options or {})

    async def _inject(self, page: Any) -> None:
        if self.script_path:
            path = Path(self.script_path).expanduser()
            try:
                await page.add_script_tag(path=str(path))
                return
            except Exception as exc:
                logger.warning("Local axe script %s failed to load (%s); using CDN", path, exc)
        await page.add_script_tag(url=self.script_url)

    async def evaluate(self, page: Any, *, page_title: Optional[str] = None) -> RawEvaluationResult:
        try:
            await self._inject(page)
            payload = await page.evaluate(_AXE_RUN, self.run_options)
        except EvaluatorError:
            raise
        except Exception as exc:
            raise EvaluatorError(f"axe-core evaluation failed: {exc}") from exc
        return parse_raw_result(payload, page_title=page_title)


__all__ = ["AxeEvaluator", "parse_raw_result"]
