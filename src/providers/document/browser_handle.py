"""Process-wide headless browser handle.

One Chromium instance is shared by every rendered-page extraction.  The
handle owns it explicitly and moves through three states:

    DISCONNECTED --acquire()--> LAUNCHING --ok--> READY
         ^                          |               |
         +------ launch failed -----+               |
         +---------- browser "disconnected" --------+

All (re)launches happen under one ``asyncio.Lock``, so concurrent callers
that find the browser gone trigger a single relaunch and then share it.
A failed launch is raised to the caller that triggered it and leaves the
handle DISCONNECTED; the next ``acquire()`` tries again.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable

import structlog
from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from src.utils.errors import ExtractionError, FailureKind

logger = structlog.get_logger(logger_name=__name__)


class BrowserState(str, Enum):  # noqa: UP042
    DISCONNECTED = "disconnected"
    LAUNCHING = "launching"
    READY = "ready"


class BrowserHandle:
    """Owns the shared Playwright Chromium instance.

    Parameters
    ----------
    headless:
        Launch Chromium without a window.
    playwright_factory:
        Callable returning a Playwright context manager; defaults to
        ``async_playwright``.  Injected by tests.
    """

    def __init__(
        self,
        headless: bool = True,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._headless = headless
        self._playwright_factory = playwright_factory
        self._lock = asyncio.Lock()
        self._state = BrowserState.DISCONNECTED
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._launch_count = 0

    @property
    def state(self) -> BrowserState:
        return self._state

    @property
    def launch_count(self) -> int:
        return self._launch_count

    async def acquire(self) -> Browser:
        """Return a connected browser, launching one if needed.

        Raises
        ------
        src.utils.errors.ExtractionError
            With ``kind=browser`` if Chromium cannot be launched.
        """
        async with self._lock:
            if (
                self._state is BrowserState.READY
                and self._browser is not None
                and self._browser.is_connected()
            ):
                return self._browser

            await self._teardown()
            self._state = BrowserState.LAUNCHING
            logger.info("browser_launching", relaunch=self._launch_count > 0)
            try:
                self._playwright = await self._playwright_factory().start()
                self._browser = await self._playwright.chromium.launch(headless=self._headless)
            except (PlaywrightError, OSError) as exc:
                await self._teardown()
                self._state = BrowserState.DISCONNECTED
                logger.error("browser_launch_failed", error=str(exc))
                raise ExtractionError(
                    message=f"Could not launch headless browser: {exc}",
                    provider_name="playwright",
                    kind=FailureKind.BROWSER,
                ) from exc

            self._browser.on("disconnected", self._on_disconnected)
            self._launch_count += 1
            self._state = BrowserState.READY
            logger.info("browser_ready", launches=self._launch_count)
            return self._browser

    async def close(self) -> None:
        async with self._lock:
            await self._teardown()
            self._state = BrowserState.DISCONNECTED

    def _on_disconnected(self, _browser: Browser) -> None:
        logger.warning("browser_disconnected")
        self._state = BrowserState.DISCONNECTED

    async def _teardown(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None and browser.is_connected():
            try:
                await browser.close()
            except PlaywrightError as exc:
                logger.warning("browser_close_failed", error=str(exc))
        if playwright is not None:
            try:
                await playwright.stop()
            except PlaywrightError as exc:
                logger.warning("playwright_stop_failed", error=str(exc))
