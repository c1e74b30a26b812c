"""Unit tests for the shared headless browser handle."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from src.providers.document.browser_handle import BrowserHandle, BrowserState
from src.utils.errors import ExtractionError, FailureKind


class _FakePlaywright:
    """Records launches; each launch returns a fresh connected browser."""

    def __init__(self, launch_error: Exception | None = None) -> None:
        self.launch_error = launch_error
        self.browsers: list[MagicMock] = []
        self.stop = AsyncMock()
        self.chromium = MagicMock()
        self.chromium.launch = AsyncMock(side_effect=self._launch)

    async def _launch(self, headless: bool = True) -> MagicMock:
        await asyncio.sleep(0)
        if self.launch_error is not None:
            raise self.launch_error
        browser = MagicMock()
        browser.is_connected.return_value = True
        browser.close = AsyncMock()
        self.browsers.append(browser)
        return browser


def _factory(playwright: _FakePlaywright):
    def factory() -> MagicMock:
        manager = MagicMock()
        manager.start = AsyncMock(return_value=playwright)
        return manager

    return factory


class TestBrowserHandle:
    def test_starts_disconnected(self) -> None:
        handle = BrowserHandle(playwright_factory=_factory(_FakePlaywright()))
        assert handle.state is BrowserState.DISCONNECTED
        assert handle.launch_count == 0

    @pytest.mark.asyncio
    async def test_acquire_launches_once_and_reuses(self) -> None:
        playwright = _FakePlaywright()
        handle = BrowserHandle(headless=True, playwright_factory=_factory(playwright))

        first = await handle.acquire()
        second = await handle.acquire()

        assert first is second
        assert handle.state is BrowserState.READY
        assert handle.launch_count == 1
        playwright.chromium.launch.assert_awaited_once_with(headless=True)
        first.on.assert_called_once()
        assert first.on.call_args.args[0] == "disconnected"

    @pytest.mark.asyncio
    async def test_concurrent_acquire_triggers_single_launch(self) -> None:
        playwright = _FakePlaywright()
        handle = BrowserHandle(playwright_factory=_factory(playwright))

        browsers = await asyncio.gather(*(handle.acquire() for _ in range(5)))

        assert len({id(b) for b in browsers}) == 1
        assert handle.launch_count == 1

    @pytest.mark.asyncio
    async def test_relaunches_after_disconnect(self) -> None:
        playwright = _FakePlaywright()
        handle = BrowserHandle(playwright_factory=_factory(playwright))

        first = await handle.acquire()
        # Simulate Chromium crashing: the registered callback fires.
        on_disconnected = first.on.call_args.args[1]
        first.is_connected.return_value = False
        on_disconnected(first)
        assert handle.state is BrowserState.DISCONNECTED

        second = await handle.acquire()
        assert second is not first
        assert handle.launch_count == 2
        assert handle.state is BrowserState.READY

    @pytest.mark.asyncio
    async def test_launch_failure_raises_browser_kind(self) -> None:
        playwright = _FakePlaywright(launch_error=PlaywrightError("Executable doesn't exist"))
        handle = BrowserHandle(playwright_factory=_factory(playwright))

        with pytest.raises(ExtractionError) as exc_info:
            await handle.acquire()

        assert exc_info.value.kind is FailureKind.BROWSER
        assert handle.state is BrowserState.DISCONNECTED
        playwright.stop.assert_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_failed_launch(self) -> None:
        playwright = _FakePlaywright(launch_error=OSError("spawn failed"))
        handle = BrowserHandle(playwright_factory=_factory(playwright))

        with pytest.raises(ExtractionError):
            await handle.acquire()

        playwright.launch_error = None
        browser = await handle.acquire()
        assert browser.is_connected()
        assert handle.state is BrowserState.READY

    @pytest.mark.asyncio
    async def test_close_shuts_browser_down(self) -> None:
        playwright = _FakePlaywright()
        handle = BrowserHandle(playwright_factory=_factory(playwright))
        browser = await handle.acquire()

        await handle.close()

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert handle.state is BrowserState.DISCONNECTED
