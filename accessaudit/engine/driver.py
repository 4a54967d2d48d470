"""Browser session driver.

A :class:`BrowserSession` owns one headless browser for exactly one scan
attempt. The orchestrator never reuses a session across attempts, so a
browser left in a bad state cannot poison a retry.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..core.config import ScanConfig
from ..core.errors import BrowserUnavailable, RenderTimeout, ScanError, classify_navigation_message
from ..core.models import RawEvaluationResult
from .evaluator import AxeEvaluator

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


@dataclass(frozen=True)
class RenderedContent:
    """A page that reached its render-wait condition."""

    url: str
    title: Optional[str]
    page: Any = None


class BrowserSession(Protocol):
    """Capability boundary between the orchestrator and a browser."""

    async def navigate(self, url: str, *, degraded: bool = False) -> RenderedContent:  # pragma: no cover - protocol
        ...

    async def evaluate(self, content: RenderedContent) -> RawEvaluationResult:  # pragma: no cover - protocol
        ...

    async def close(self) -> None:  # pragma: no cover - protocol
        ...


SessionFactory = Callable[[ScanConfig], BrowserSession]


class PlaywrightSession:
    """Headless Chromium session driven through Playwright."""

    def __init__(self, config: ScanConfig, evaluator: Optional[AxeEvaluator] = None) -> None:
        self.config = config
        self.evaluator = evaluator or AxeEvaluator(
            script_path=config.axe_script, script_url=config.axe_script_url
        )
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._closed = False

    async def _ensure_page(self) -> Any:
        if self._closed:
            raise ScanError("Session already closed", retryable=True)
        if self._page is not None:
            return self._page
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=_LAUNCH_ARGS,
                timeout=self.config.timeout_ms,
            )
            self._context = await self._browser.new_context(
                viewport={
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                },
                user_agent=self.config.user_agent,
                ignore_https_errors=self.config.ignore_https_errors,
                bypass_csp=self.config.bypass_csp,
            )
            self._page = await self._context.new_page()
        except PlaywrightError as exc:
            message = str(exc)
            if "Executable doesn't exist" in message or "playwright install" in message:
                raise BrowserUnavailable(f"Chromium is not installed: {message}") from exc
            raise ScanError(f"Browser launch failed: {message}", retryable=True) from exc
        return self._page

    async def navigate(self, url: str, *, degraded: bool = False) -> RenderedContent:
        page = await self._ensure_page()
        wait_until = "domcontentloaded" if degraded else "networkidle"
        try:
            await page.goto(url, wait_until=wait_until, timeout=self.config.timeout_ms)
            if not degraded and self.config.settle_ms:
                await page.wait_for_timeout(self.config.settle_ms)
        except PlaywrightTimeoutError as exc:
            raise RenderTimeout(f"Page did not reach '{wait_until}': {exc}") from exc
        except PlaywrightError as exc:
            raise classify_navigation_message(str(exc)) from exc
        try:
            title = await page.title()
        except PlaywrightError:
            title = None
        return RenderedContent(url=page.url, title=title, page=page)

    async def evaluate(self, content: RenderedContent) -> RawEvaluationResult:
        return await self.evaluator.evaluate(content.page, page_title=content.title)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for name in ("_context", "_browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while closing %s: %s", name.strip("_"), exc)
            setattr(self, name, None)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as exc:
                logger.debug("Ignoring error while stopping playwright: %s", exc)
            self._playwright = None
        self._page = None


def playwright_session_factory(config: ScanConfig) -> BrowserSession:
    return PlaywrightSession(config)


__all__ = [
    "BrowserSession",
    "PlaywrightSession",
    "RenderedContent",
    "SessionFactory",
    "playwright_session_factory",
]
