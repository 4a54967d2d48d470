"""Bounded worker pool for concurrent scans.

Headless browsers are memory and CPU heavy, so the pool is the only gate on
scan concurrency. Each worker thread runs its own event loop and each scan
owns its browser session exclusively.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, List, Optional

from ..core.cancellation import CancellationToken
from ..core.config import RuntimeConfig, ScanConfig
from ..core.errors import ConfigurationError, ResourceExhausted
from ..core.models import ScanAttempt, ScanTarget
from .driver import SessionFactory
from .orchestrator import run_scan

if TYPE_CHECKING:  # pragma: no cover
    from ..core.pipeline import AuditResult
    from ..history.writer import RecordWriter

logger = logging.getLogger(__name__)


class ScanPool:
    """Run scans on at most ``workers`` browser slots at once."""

    def __init__(
        self,
        workers: int,
        *,
        block: bool = True,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        if workers <= 0:
            raise ConfigurationError("workers must be positive")
        self.workers = workers
        self.block = block
        self._session_factory = session_factory
        self._slots = threading.BoundedSemaphore(workers)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="accessaudit-scan")

    def __enter__(self) -> "ScanPool":
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    def _run(self, work: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return asyncio.run(work())
        finally:
            self._slots.release()

    def _submit(self, target: ScanTarget, work: Callable[[], Awaitable[Any]]) -> "Future[Any]":
        if not self._slots.acquire(blocking=self.block):
            logger.warning("Scan pool saturated (%d workers); rejecting %s", self.workers, target.url)
            raise ResourceExhausted(f"All {self.workers} scan slots are busy")
        try:
            return self._executor.submit(self._run, work)
        except RuntimeError:
            self._slots.release()
            raise

    def submit(
        self,
        target: ScanTarget,
        config: Optional[ScanConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "Future[ScanAttempt]":
        """Queue a scan; raise :class:`ResourceExhausted` if non-blocking and full."""

        config = (config or ScanConfig()).validate()
        return self._submit(
            target,
            lambda: run_scan(
                target,
                config,
                session_factory=self._session_factory,
                cancel_token=cancel_token,
            ),
        )

    def submit_audit(
        self,
        target: ScanTarget,
        config: RuntimeConfig,
        *,
        writer: Optional["RecordWriter"] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "Future[AuditResult]":
        """Queue a full audit (scan, score, record, detect) for ``target``."""

        from ..core.pipeline import audit

        config.scan.validate()
        return self._submit(
            target,
            lambda: audit(
                target,
                config,
                writer=writer,
                session_factory=self._session_factory,
                cancel_token=cancel_token,
            ),
        )

    def map_scan(
        self, targets: Iterable[ScanTarget], config: Optional[ScanConfig] = None
    ) -> List[ScanAttempt]:
        futures = [self.submit(target, config) for target in targets]
        return [future.result() for future in futures]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


__all__ = ["ScanPool"]
