"""Robust scan orchestration: timeouts, retries, backoff and degradation."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from ..core.cancellation import CancellationToken
from ..core.config import ScanConfig
from ..core.errors import (
    CancelledByCaller,
    EvaluatorError,
    NavigationError,
    RenderTimeout,
    ScanError,
)
from ..core.models import Outcome, ScanAttempt, ScanTarget
from ..core.utils import now_utc
from .driver import BrowserSession, SessionFactory, playwright_session_factory
from .preflight import probe

logger = logging.getLogger(__name__)

_TEARDOWN_TIMEOUT_S = 10.0
_PREFLIGHT_TIMEOUT_S = 10.0


def backoff_delay_ms(config: ScanConfig, retry_index: int) -> int:
    """Delay before the retry following attempt ``retry_index`` (zero based)."""

    return min(config.backoff_cap_ms, config.backoff_ms * (2 ** retry_index))


async def _navigate_and_evaluate(session: BrowserSession, url: str, degraded: bool):
    content = await session.navigate(url, degraded=degraded)
    return await session.evaluate(content)


async def _teardown(session: BrowserSession) -> None:
    try:
        await asyncio.wait_for(session.close(), timeout=_TEARDOWN_TIMEOUT_S)
    except Exception:
        logger.warning("Browser session teardown failed", exc_info=True)


async def _discard(task: "asyncio.Future[object]") -> None:
    if task.done():
        if not task.cancelled():
            task.exception()
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Abandoned attempt raised after cancellation", exc_info=True)


def _cancelled(
    target: ScanTarget,
    number: int,
    token: CancellationToken,
    *,
    started: Optional[datetime] = None,
) -> ScanAttempt:
    finished = now_utc()
    return ScanAttempt(
        target=target,
        attempt=number,
        started_at=started or finished,
        finished_at=finished,
        outcome=Outcome.CANCELLED,
        error=token.reason or "cancelled by caller",
        error_kind=CancelledByCaller.kind,
        retryable=False,
    )


async def _run_attempt(
    target: ScanTarget,
    config: ScanConfig,
    factory: SessionFactory,
    number: int,
    *,
    degraded: bool,
    cancel_token: Optional[CancellationToken],
) -> ScanAttempt:
    started = now_utc()
    session = factory(config)
    work = asyncio.ensure_future(_navigate_and_evaluate(session, target.url, degraded))
    cancel_waiter = None
    waiters = {work}
    if cancel_token is not None:
        cancel_waiter = asyncio.ensure_future(cancel_token.wait(config.cancel_poll_ms))
        waiters.add(cancel_waiter)

    def finish(outcome: Outcome, **extra) -> ScanAttempt:
        return ScanAttempt(
            target=target,
            attempt=number,
            started_at=started,
            finished_at=now_utc(),
            outcome=outcome,
            degraded=degraded,
            **extra,
        )

    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=config.timeout_ms / 1000,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if work in done:
            raw = work.result()
            return finish(Outcome.DEGRADED if degraded else Outcome.SUCCEEDED, raw=raw)
        if cancel_waiter is not None and cancel_waiter in done:
            assert cancel_token is not None
            return _cancelled(target, number, cancel_token, started=started)
        return finish(
            Outcome.TIMED_OUT,
            error=f"Attempt exceeded {config.timeout_ms} ms",
            error_kind=RenderTimeout.kind,
            retryable=True,
        )
    except RenderTimeout as exc:
        return finish(Outcome.TIMED_OUT, error=str(exc), error_kind=exc.kind, retryable=exc.retryable)
    except ScanError as exc:
        return finish(Outcome.FAILED, error=str(exc), error_kind=exc.kind, retryable=exc.retryable)
    except Exception as exc:
        logger.warning("Unexpected driver failure for %s", target.url, exc_info=True)
        return finish(
            Outcome.FAILED,
            error=f"{type(exc).__name__}: {exc}",
            error_kind="unexpected",
            retryable=True,
        )
    finally:
        await _discard(work)
        if cancel_waiter is not None:
            await _discard(cancel_waiter)
        await _teardown(session)


async def _preflight(target: ScanTarget, config: ScanConfig) -> Optional[ScanAttempt]:
    started = now_utc()
    timeout_s = min(_PREFLIGHT_TIMEOUT_S, config.timeout_ms / 1000)
    try:
        status = await asyncio.to_thread(probe, target.url, timeout_s, config.user_agent)
    except NavigationError as exc:
        if exc.retryable:
            logger.warning("Preflight for %s failed transiently: %s", target.url, exc)
            return None
        logger.error("Preflight rejected %s: %s", target.url, exc)
        return ScanAttempt(
            target=target,
            attempt=1,
            started_at=started,
            finished_at=now_utc(),
            outcome=Outcome.FAILED,
            error=str(exc),
            error_kind=exc.kind,
            retryable=False,
        )
    logger.debug("Preflight for %s returned HTTP %s", target.url, status)
    return None


async def run_scan_attempts(
    target: ScanTarget,
    config: Optional[ScanConfig] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> Sequence[ScanAttempt]:
    """Run a scan and return every attempt made; the last one is terminal."""

    if not isinstance(target, ScanTarget):
        raise TypeError(f"target must be a ScanTarget, got {type(target).__name__}")
    config = (config or ScanConfig()).validate()
    factory = session_factory or playwright_session_factory
    attempts: List[ScanAttempt] = []

    if config.preflight:
        rejected = await _preflight(target, config)
        if rejected is not None:
            return (rejected,)

    budget = config.max_retries + 1
    evaluator_failures = 0
    index = 0
    while index < budget:
        if cancel_token is not None and cancel_token.cancelled:
            attempts.append(_cancelled(target, index + 1, cancel_token))
            return tuple(attempts)

        logger.info("Scanning %s (attempt %d/%d)", target.url, index + 1, budget)
        attempt = await _run_attempt(
            target, config, factory, index + 1, degraded=False, cancel_token=cancel_token
        )
        attempts.append(attempt)
        if attempt.outcome in (Outcome.SUCCEEDED, Outcome.CANCELLED):
            logger.info("Attempt %d for %s: %s", attempt.attempt, target.url, attempt.outcome.value)
            return tuple(attempts)

        logger.warning(
            "Attempt %d for %s %s: %s",
            attempt.attempt,
            target.url,
            attempt.outcome.value,
            attempt.error,
        )
        if not attempt.retryable:
            return tuple(attempts)
        if attempt.error_kind == EvaluatorError.kind:
            evaluator_failures += 1
            if evaluator_failures > 1:
                logger.error("Rule evaluator failed repeatedly for %s; giving up", target.url)
                return tuple(attempts)

        index += 1
        if index < budget:
            delay = backoff_delay_ms(config, index - 1)
            logger.info("Retrying %s in %d ms", target.url, delay)
            if cancel_token is not None:
                if await cancel_token.sleep(delay, config.cancel_poll_ms):
                    attempts.append(_cancelled(target, index + 1, cancel_token))
                    return tuple(attempts)
            elif delay:
                await asyncio.sleep(delay / 1000)

    if config.degrade_on_persistent_failure:
        if cancel_token is not None and cancel_token.cancelled:
            attempts.append(_cancelled(target, len(attempts) + 1, cancel_token))
            return tuple(attempts)
        logger.warning("Retries exhausted for %s; running degraded scan", target.url)
        attempt = await _run_attempt(
            target,
            config,
            factory,
            len(attempts) + 1,
            degraded=True,
            cancel_token=cancel_token,
        )
        attempts.append(attempt)
    return tuple(attempts)


async def run_scan(
    target: ScanTarget,
    config: Optional[ScanConfig] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ScanAttempt:
    """Scan ``target`` and return the terminal attempt.

    Ordinary failures are reported through the attempt outcome; only a
    malformed target or configuration raises.
    """

    attempts = await run_scan_attempts(
        target, config, session_factory=session_factory, cancel_token=cancel_token
    )
    return attempts[-1]


def run_scan_sync(
    target: ScanTarget,
    config: Optional[ScanConfig] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ScanAttempt:
    return asyncio.run(
        run_scan(target, config, session_factory=session_factory, cancel_token=cancel_token)
    )


__all__ = ["backoff_delay_ms", "run_scan", "run_scan_attempts", "run_scan_sync"]
