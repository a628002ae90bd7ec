"""Chrome client — a narrow imperative interface to one browser page via Playwright."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from autopilot.models.config import DEFAULT_DEBUG_PORT
from autopilot.models.test_result import ConsoleLog, NetworkError

from .launcher import ChromeProcess, launch_chrome
from .overlay import Overlay
from .recorder import BrowserLogRecorder

logger = logging.getLogger(__name__)

NAVIGATE_TIMEOUT_MS = 30000
SELECTOR_TIMEOUT_MS = 5000


class BrowserNotConnectedError(RuntimeError):
    def __init__(self):
        super().__init__("Page not initialized; call connect() first")


class ElementNotFoundError(Exception):
    """A selector did not appear within its timeout."""

    def __init__(self, selector: str, timeout: int):
        self.selector = selector
        self.timeout = timeout
        super().__init__(f'waiting for selector "{selector}" failed: timeout {timeout}ms exceeded')


class ChromeClient:
    """Owns exactly one Chromium process and one page.

    The browser is started on a fixed debug port, so only one client
    (and one orchestrator) may run per host at a time.
    """

    def __init__(
        self,
        recorder: BrowserLogRecorder | None = None,
        overlay: Overlay | None = None,
        debug_port: int = DEFAULT_DEBUG_PORT,
        connect_settle_ms: int = 2000,
        click_settle_ms: int = 500,
    ):
        self.recorder = recorder or BrowserLogRecorder()
        self.overlay = overlay or Overlay()
        self.debug_port = debug_port
        self.connect_settle_ms = connect_settle_ms
        self.click_settle_ms = click_settle_ms
        self.slow_mo = 0
        self._playwright: Playwright | None = None
        self._chrome: ChromeProcess | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    async def connect(
        self,
        headless: bool = False,
        devtools: bool = True,
        slow_mo: int = 0,
        viewport: dict | None = None,
    ) -> None:
        """Launch Chrome, attach over CDP and open the page under test."""
        self.slow_mo = slow_mo
        try:
            self._playwright = await async_playwright().start()
            self._chrome = await launch_chrome(
                self._playwright.chromium.executable_path,
                port=self.debug_port,
                headless=headless,
                devtools=devtools,
            )
            logger.info("Chrome launched on port %d", self.debug_port)

            await asyncio.sleep(self.connect_settle_ms / 1000)

            self._browser = await self._playwright.chromium.connect_over_cdp(self._chrome.cdp_url)
            context = (
                self._browser.contexts[0]
                if self._browser.contexts
                else await self._browser.new_context(no_viewport=True)
            )
            self._page = await context.new_page()
            if viewport:
                await self._page.set_viewport_size(viewport)
            self.recorder.attach(self._page)
            logger.info("✓ Chrome client connected")
        except Exception as e:
            logger.error("Failed to connect to Chrome: %s", e)
            raise

    async def disconnect(self) -> None:
        """Close page, detach, and kill the browser. Never raises."""
        if self._page is not None:
            try:
                await self._page.close()
            except Exception as e:
                logger.warning("Failed to close page: %s", e)
            self._page = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning("Failed to detach from browser: %s", e)
            self._browser = None
        if self._chrome is not None:
            try:
                await self._chrome.terminate()
            except Exception as e:
                logger.warning("Failed to terminate Chrome: %s", e)
            self._chrome = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("Failed to stop Playwright: %s", e)
            self._playwright = None
        logger.info("✓ Chrome client disconnected")

    def is_connected(self) -> bool:
        return self._browser is not None and self._page is not None

    def _require_page(self) -> Page:
        if self._page is None:
            raise BrowserNotConnectedError()
        return self._page

    async def _wait_for(self, page: Page, selector: str, timeout: int) -> None:
        try:
            await page.wait_for_selector(selector, state="attached", timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundError(selector, timeout) from e

    async def navigate(self, url: str, timeout: int = NAVIGATE_TIMEOUT_MS) -> None:
        page = self._require_page()
        logger.debug("Navigating to %s...", url)
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        # Resolves at once if the load event already fired
        await page.wait_for_load_state("load", timeout=timeout)

    async def click(self, selector: str, timeout: int = SELECTOR_TIMEOUT_MS) -> None:
        page = self._require_page()
        await self._wait_for(page, selector, timeout)
        try:
            await self.overlay.highlight(page, selector)
        except PlaywrightError as e:
            logger.debug("Highlight failed for %s: %s", selector, e)
        if self.slow_mo > 0:
            await asyncio.sleep(self.slow_mo / 1000)
        logger.debug("Clicking: %s", selector)
        await page.click(selector, timeout=timeout)
        await asyncio.sleep(self.click_settle_ms / 1000)

    async def type(self, selector: str, text: str, timeout: int = SELECTOR_TIMEOUT_MS) -> None:
        page = self._require_page()
        await self._wait_for(page, selector, timeout)
        logger.debug("Typing into %s", selector)
        await page.type(selector, text, timeout=timeout)

    async def assert_element_exists(self, selector: str, timeout: int = SELECTOR_TIMEOUT_MS) -> bool:
        """Return whether ``selector`` appears within ``timeout``; never raises on absence."""
        page = self._require_page()
        try:
            await self._wait_for(page, selector, timeout)
        except ElementNotFoundError:
            return False
        return True

    async def screenshot(self, path: str) -> None:
        """Capture a full-page PNG, falling back to the viewport mid-transition."""
        page = self._require_page()
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            await page.screenshot(path=str(target), full_page=True)
        except PlaywrightError as e:
            logger.debug("Full-page screenshot failed (%s), retrying viewport capture", e)
            await asyncio.sleep(0.25)
            await page.screenshot(path=str(target), full_page=False)

    async def wait(self, ms: int) -> None:
        self._require_page()
        await asyncio.sleep(ms / 1000)

    async def update_overlay(
        self, test_label: str, step_label: str, status: str, retries: int, max_retries: int,
    ) -> None:
        """Refresh the operator progress callout. Failures are only logged."""
        if self._page is None:
            return
        try:
            await self.overlay.show_progress(
                self._page, test_label, step_label, status, retries, max_retries,
            )
        except PlaywrightError as e:
            logger.debug("Overlay update skipped: %s", e)

    def get_console_logs(self) -> list[ConsoleLog]:
        return self.recorder.console_logs

    def get_network_errors(self) -> list[NetworkError]:
        return self.recorder.network_errors

    def clear_logs(self) -> None:
        self.recorder.clear()
