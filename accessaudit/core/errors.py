"""Error taxonomy for scan orchestration.

Scan-time failures derive from :class:`ScanError` and carry a stable ``kind``
tag plus a ``retryable`` flag. The orchestrator catches them and encodes them
into :class:`~accessaudit.core.models.ScanAttempt` outcomes; they never cross
the ``run_scan`` boundary. Programmer and configuration mistakes derive from
``ValueError`` instead and are raised to the caller synchronously.
"""
from __future__ import annotations

from typing import Iterable

# Chromium network error codes that will not heal between attempts.
_PERSISTENT_NET_ERRORS = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_NAME_RESOLUTION_FAILED",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_ADDRESS_INVALID",
    "ERR_INVALID_URL",
    "ERR_UNKNOWN_URL_SCHEME",
    "ERR_DISALLOWED_URL_SCHEME",
    "ERR_CERT_",
    "ERR_SSL_",
    "ERR_BAD_SSL_CLIENT_AUTH_CERT",
    "ERR_BLOCKED_BY_CLIENT",
)


class ScanError(Exception):
    """Base class for failures raised while running a scan attempt."""

    kind = "scan-error"
    retryable = True

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class NavigationError(ScanError):
    """The page could not be reached or loaded."""

    kind = "navigation"
    retryable = False


class RenderTimeout(ScanError):
    """The page did not reach a stable render state in time."""

    kind = "render-timeout"
    retryable = True


class EvaluatorError(ScanError):
    """The rule evaluator crashed or returned an unusable payload."""

    kind = "evaluator"
    retryable = True


class BrowserUnavailable(ScanError):
    """The headless browser could not be launched at all."""

    kind = "browser-unavailable"
    retryable = False


class ResourceExhausted(ScanError):
    """Every worker slot is busy; callers should queue and retry later."""

    kind = "resource-exhausted"
    retryable = False


class CancelledByCaller(ScanError):
    """Raised inside an attempt when the caller cancelled the scan."""

    kind = "cancelled"
    retryable = False


class ConfigurationError(ValueError):
    """Configuration values are missing or out of range."""


class InvalidTargetError(ValueError):
    """The scan target URL is malformed."""


def _matches(message: str, needles: Iterable[str]) -> bool:
    return any(needle in message for needle in needles)


def classify_navigation_message(message: str) -> NavigationError:
    """Build a :class:`NavigationError` whose retry flag matches the browser error."""

    upper = message.upper()
    persistent = _matches(upper, _PERSISTENT_NET_ERRORS)
    return NavigationError(message, retryable=not persistent)


__all__ = [
    "ScanError",
    "NavigationError",
    "RenderTimeout",
    "EvaluatorError",
    "BrowserUnavailable",
    "ResourceExhausted",
    "CancelledByCaller",
    "ConfigurationError",
    "InvalidTargetError",
    "classify_navigation_message",
]
