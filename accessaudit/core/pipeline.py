"""End-to-end audit: scan -> score -> record -> detect -> alert."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..engine.driver import SessionFactory
from ..engine.orchestrator import run_scan
from ..history.writer import RecordWriter
from ..scoring.compliance import ComplianceEstimate, estimate_compliance
from ..scoring.engine import score
from .cancellation import CancellationToken
from .config import RuntimeConfig
from .models import RegressionVerdict, ScanAttempt, ScanRecord, ScanTarget, ScoreSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditResult:
    """Everything one audit produced. Only ``attempt`` is set when the scan failed."""

    attempt: ScanAttempt
    summary: Optional[ScoreSummary] = None
    record: Optional[ScanRecord] = None
    verdict: Optional[RegressionVerdict] = None
    compliance: Optional[ComplianceEstimate] = None

    @property
    def target(self) -> ScanTarget:
        return self.attempt.target

    @property
    def succeeded(self) -> bool:
        return self.summary is not None

    @property
    def is_regression(self) -> bool:
        return bool(self.verdict and self.verdict.is_regression)


async def audit(
    target: ScanTarget,
    config: RuntimeConfig,
    *,
    writer: Optional[RecordWriter] = None,
    session_factory: Optional[SessionFactory] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> AuditResult:
    """Run one scan and fold it into the target's history.

    Scans that end without a result are returned as-is; they are never
    scored, so a failure cannot masquerade as a perfect score. Without a
    ``writer`` the result is scored but not recorded.
    """

    attempt = await run_scan(
        target, config.scan, session_factory=session_factory, cancel_token=cancel_token
    )
    if not attempt.outcome.has_result or attempt.raw is None:
        logger.error(
            "Scan of %s ended %s after %d attempt(s): %s",
            target.url,
            attempt.outcome.value,
            attempt.attempt,
            attempt.error,
        )
        return AuditResult(attempt=attempt)

    summary = score(attempt.raw, config.scoring)
    compliance = estimate_compliance(summary)
    if writer is None:
        return AuditResult(attempt=attempt, summary=summary, compliance=compliance)

    committed = writer.commit(attempt, summary)
    return AuditResult(
        attempt=attempt,
        summary=summary,
        record=committed.record,
        verdict=committed.verdict,
        compliance=compliance,
    )


def audit_sync(
    target: ScanTarget,
    config: RuntimeConfig,
    *,
    writer: Optional[RecordWriter] = None,
    session_factory: Optional[SessionFactory] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> AuditResult:
    return asyncio.run(
        audit(
            target,
            config,
            writer=writer,
            session_factory=session_factory,
            cancel_token=cancel_token,
        )
    )


__all__ = ["AuditResult", "audit", "audit_sync"]
