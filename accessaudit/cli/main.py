"""Command line interface for accessaudit."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..core.config import RuntimeConfig, load_config
from ..core.errors import ScanError
from ..core.models import Outcome, ScanAttempt, ScanRecord, ScanTarget
from ..core.pipeline import AuditResult, audit
from ..core.utils import json_dump, now_utc
from ..engine.evaluator import parse_raw_result
from ..engine.pool import ScanPool
from ..history.alerts import LoggingAlertSink
from ..history.store import JsonlRecordStore
from ..history.writer import RecordWriter
from ..regression.detector import detect_regression
from ..regression.trends import history_statistics
from ..reporting import to_json, to_markdown, to_sarif
from ..scoring.compliance import estimate_compliance
from ..scoring.engine import score

_FORMATTERS = {
    "json": to_json,
    "md": to_markdown,
    "sarif": to_sarif,
}

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_REGRESSION = 2


def _status(message: str) -> None:
    print(f"[accessaudit] {message}", file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="accessaudit",
        description="Accessibility audits with scoring and regression tracking",
    )
    parser.add_argument("--output", type=Path, help="Write report to file", default=None)
    parser.add_argument("--format", choices=sorted(_FORMATTERS), default="json")
    parser.add_argument("--config", type=Path, default=None, help="Alternate config.toml")
    parser.add_argument("--verbose", action="store_true")

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Audit live pages and record the results")
    scan_parser.add_argument("urls", nargs="+", metavar="url")
    scan_parser.add_argument("--page-id", dest="page_id", help="Only with a single URL")
    scan_parser.add_argument("--workers", type=int, help="Concurrent browser scans")
    scan_parser.add_argument("--timeout-ms", dest="timeout_ms", type=int)
    scan_parser.add_argument("--max-retries", dest="max_retries", type=int)
    scan_parser.add_argument("--backoff-ms", dest="backoff_ms", type=int)
    scan_parser.add_argument(
        "--degrade",
        action="store_true",
        default=None,
        help="Run one degraded scan when retries are exhausted",
    )
    scan_parser.add_argument("--no-preflight", dest="no_preflight", action="store_true")
    scan_parser.add_argument("--history-dir", dest="history_dir", type=Path)
    scan_parser.add_argument(
        "--no-record", dest="no_record", action="store_true", help="Do not append to history"
    )

    score_parser = subparsers.add_parser("score", help="Score a saved axe-core JSON result")
    score_parser.add_argument("path", type=Path)
    score_parser.add_argument("--url", help="Target URL when the file carries none")

    compare_parser = subparsers.add_parser("compare", help="Compare two saved axe-core results")
    compare_parser.add_argument("current", type=Path)
    compare_parser.add_argument("baseline", type=Path)
    compare_parser.add_argument("--url", help="Target URL when the files carry none")

    history_parser = subparsers.add_parser("history", help="Show score history and trend")
    history_parser.add_argument("url")
    history_parser.add_argument("--page-id", dest="page_id")
    history_parser.add_argument("--limit", type=int, default=None)
    history_parser.add_argument("--history-dir", dest="history_dir", type=Path)

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load(args: argparse.Namespace) -> RuntimeConfig:
    cli_scan: dict[str, Any] = {}
    if args.command == "scan":
        cli_scan = {
            "timeout_ms": args.timeout_ms,
            "max_retries": args.max_retries,
            "backoff_ms": args.backoff_ms,
            "degrade_on_persistent_failure": args.degrade,
            "preflight": False if args.no_preflight else None,
        }
    return load_config(
        path=args.config,
        cli_scan=cli_scan,
        cli_workers=getattr(args, "workers", None),
        cli_history_dir=getattr(args, "history_dir", None),
        cli_verbose=True if args.verbose else None,
    )


def _write_output(path: Path | None, content: str) -> None:
    if path is None:
        print(content)
    else:
        path.write_text(content, encoding="utf-8")
        _status(f"Report written to {path}")


def _read_payload(path: Path) -> Mapping[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not contain an axe-core result object")
    return payload


def _offline_attempt(payload: Mapping[str, Any], url: str | None) -> ScanAttempt:
    location = url or payload.get("url")
    if not location:
        raise ValueError("Result file has no 'url'; pass --url")
    raw = parse_raw_result(payload)
    stamp = now_utc()
    return ScanAttempt(
        target=ScanTarget(url=str(location)),
        attempt=1,
        started_at=stamp,
        finished_at=stamp,
        outcome=Outcome.SUCCEEDED,
        raw=raw,
    )


def _offline_result(attempt: ScanAttempt, config: RuntimeConfig) -> AuditResult:
    assert attempt.raw is not None
    summary = score(attempt.raw, config.scoring)
    return AuditResult(attempt=attempt, summary=summary, compliance=estimate_compliance(summary))


def _combined_report(fmt: str, results: Sequence[AuditResult]) -> str:
    if len(results) == 1:
        return _FORMATTERS[fmt](results[0])
    if fmt == "md":
        return "\n\n---\n\n".join(to_markdown(result) for result in results)
    if fmt == "sarif":
        documents = [json.loads(to_sarif(result)) for result in results]
        combined = documents[0]
        combined["runs"] = [run for document in documents for run in document["runs"]]
        return json_dump(combined)
    return json_dump([json.loads(to_json(result)) for result in results])


def _scan_exit_code(result: AuditResult) -> int:
    label = result.target.target_id
    if not result.succeeded:
        _status(f"Scan {result.attempt.outcome.value} for {label}: {result.attempt.error}")
        return EXIT_FAILED
    assert result.summary is not None
    _status(f"Score {result.summary.score}/100 for {label}")
    if result.is_regression:
        assert result.verdict is not None
        _status(f"Regression ({result.verdict.severity.value}) for {label}: {result.verdict.reason}")
        return EXIT_REGRESSION
    return EXIT_OK


def _cmd_scan(args: argparse.Namespace, config: RuntimeConfig) -> int:
    if args.page_id and len(args.urls) > 1:
        raise ValueError("--page-id applies to a single URL")
    targets = [ScanTarget(url=url, page_id=args.page_id) for url in args.urls]
    writer = None
    if not args.no_record:
        store = JsonlRecordStore(config.history_dir)
        writer = RecordWriter(store, config.regression, LoggingAlertSink())

    if len(targets) == 1:
        _status(f"Scanning {targets[0].url}")
        results = [asyncio.run(audit(targets[0], config, writer=writer))]
    else:
        workers = min(config.workers, len(targets))
        _status(f"Scanning {len(targets)} pages with {workers} workers")
        with ScanPool(workers) as pool:
            futures = [pool.submit_audit(target, config, writer=writer) for target in targets]
            results = [future.result() for future in futures]

    _write_output(args.output, _combined_report(args.format, results))
    codes = [_scan_exit_code(result) for result in results]
    if EXIT_FAILED in codes:
        return EXIT_FAILED
    if EXIT_REGRESSION in codes:
        return EXIT_REGRESSION
    return EXIT_OK


def _cmd_score(args: argparse.Namespace, config: RuntimeConfig) -> int:
    attempt = _offline_attempt(_read_payload(args.path), args.url)
    result = _offline_result(attempt, config)
    _write_output(args.output, _FORMATTERS[args.format](result))
    return EXIT_OK


def _cmd_compare(args: argparse.Namespace, config: RuntimeConfig) -> int:
    current_attempt = _offline_attempt(_read_payload(args.current), args.url)
    # Both files are compared as the same target.
    baseline_attempt = _offline_attempt(_read_payload(args.baseline), current_attempt.target.url)
    current = _offline_result(current_attempt, config)
    baseline = _offline_result(baseline_attempt, config)
    assert current.summary is not None and baseline.summary is not None
    current_record = ScanRecord.from_attempt(current_attempt, current.summary)
    baseline_record = ScanRecord.from_attempt(baseline_attempt, baseline.summary)
    verdict = detect_regression(current_record, baseline_record, config.regression)
    result = AuditResult(
        attempt=current_attempt,
        summary=current.summary,
        record=current_record,
        verdict=verdict,
        compliance=current.compliance,
    )
    _write_output(args.output, _FORMATTERS[args.format](result))
    if verdict.is_regression:
        _status(f"Regression ({verdict.severity.value}): {verdict.reason}")
        return EXIT_REGRESSION
    return EXIT_OK


def _history_markdown(target: ScanTarget, records: Sequence[ScanRecord], stats: Any) -> str:
    lines = [f"# Score History for {target.target_id}", ""]
    if stats is None:
        lines.append("No scans recorded yet.")
        return "\n".join(lines)
    lines.extend(
        [
            f"- **Latest:** {stats.latest_score}",
            f"- **Average:** {stats.average_score} (min {stats.min_score}, max {stats.max_score})",
            f"- **Trend:** {stats.trend}",
            f"- **Regressions:** {stats.regression_count} in {stats.total_scans} scans",
            "",
            "| Date | Score | Outcome |",
            "| --- | --- | --- |",
        ]
    )
    for record in records:
        lines.append(f"| {record.created_at.isoformat()} | {record.score} | {record.outcome.value} |")
    return "\n".join(lines)


def _cmd_history(args: argparse.Namespace, config: RuntimeConfig) -> int:
    if args.format == "sarif":
        raise ValueError("history supports the json and md formats")
    target = ScanTarget(url=args.url, page_id=args.page_id)
    records = JsonlRecordStore(config.history_dir).list_scan_records(target.target_id, args.limit)
    stats = history_statistics(records, config.regression)
    if args.format == "md":
        content = _history_markdown(target, records, stats)
    else:
        content = json_dump(
            {
                "target_id": target.target_id,
                "statistics": json.loads(to_json(stats)) if stats else None,
                "records": [
                    {
                        "record_id": record.record_id,
                        "created_at": record.created_at.isoformat(),
                        "score": record.score,
                        "outcome": record.outcome.value,
                    }
                    for record in records
                ],
            }
        )
    _write_output(args.output, content)
    return EXIT_OK


_COMMANDS = {
    "scan": _cmd_scan,
    "score": _cmd_score,
    "compare": _cmd_compare,
    "history": _cmd_history,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = _load(args)
        _configure_logging(config.verbose)
        if config.verbose:
            _status(f"History directory: {config.history_dir}")
        return _COMMANDS[args.command](args, config)
    except (ValueError, OSError, ScanError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
