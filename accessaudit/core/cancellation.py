"""Cooperative cancellation shared between a caller and a running scan."""
from __future__ import annotations

import asyncio
import threading


class CancellationToken:
    """Thread-safe cancellation flag.

    The caller may cancel from any thread; the scan observes the flag from its
    own event loop by polling at ``poll_ms`` granularity.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self, poll_ms: int = 50) -> None:
        """Return once the token is cancelled."""

        interval = poll_ms / 1000
        while not self._event.is_set():
            await asyncio.sleep(interval)

    async def sleep(self, delay_ms: int, poll_ms: int = 50) -> bool:
        """Sleep for ``delay_ms`` unless cancelled first; return True when cancelled."""

        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self.wait(poll_ms), timeout=delay_ms / 1000)
        except asyncio.TimeoutError:
            return False
        return True


__all__ = ["CancellationToken"]
