"""Tests for ChromeClient against a mocked Playwright page."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from autopilot.browser.chrome_client import (
    BrowserNotConnectedError,
    ChromeClient,
    ElementNotFoundError,
)
from autopilot.browser.overlay import Overlay


def _mock_page() -> Mock:
    page = Mock()
    page.on = Mock()
    for name in ("goto", "wait_for_load_state", "wait_for_selector", "click", "type",
                 "screenshot", "evaluate", "close", "set_viewport_size"):
        setattr(page, name, AsyncMock())
    return page


def _client(page=None, overlay=None) -> ChromeClient:
    client = ChromeClient(overlay=overlay or Overlay(), connect_settle_ms=0, click_settle_ms=0)
    client._page = page
    return client


class TestNotConnected:
    @pytest.mark.asyncio
    async def test_operations_require_page(self):
        client = _client()
        with pytest.raises(BrowserNotConnectedError):
            await client.navigate("http://localhost")
        with pytest.raises(BrowserNotConnectedError):
            await client.click("#a")
        assert client.is_connected() is False

    @pytest.mark.asyncio
    async def test_update_overlay_without_page_is_noop(self):
        overlay = Mock(spec=Overlay)
        overlay.show_progress = AsyncMock()
        client = _client(overlay=overlay)
        await client.update_overlay("t", "s", "running", 0, 3)
        overlay.show_progress.assert_not_called()


class TestNavigate:
    @pytest.mark.asyncio
    async def test_waits_for_dom_then_load(self):
        page = _mock_page()
        await _client(page).navigate("http://localhost:3000", timeout=1234)
        page.goto.assert_awaited_once_with("http://localhost:3000", wait_until="domcontentloaded", timeout=1234)
        page.wait_for_load_state.assert_awaited_once_with("load", timeout=1234)


class TestClick:
    @pytest.mark.asyncio
    async def test_waits_highlights_and_clicks(self):
        page = _mock_page()
        overlay = Mock(spec=Overlay)
        overlay.highlight = AsyncMock()
        await _client(page, overlay).click("#submit", timeout=2000)
        page.wait_for_selector.assert_awaited_once_with("#submit", state="attached", timeout=2000)
        overlay.highlight.assert_awaited_once_with(page, "#submit")
        page.click.assert_awaited_once_with("#submit", timeout=2000)

    @pytest.mark.asyncio
    async def test_missing_element(self):
        page = _mock_page()
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded")
        with pytest.raises(ElementNotFoundError) as exc_info:
            await _client(page).click("#submit")
        assert 'waiting for selector "#submit" failed' in str(exc_info.value)
        assert exc_info.value.selector == "#submit"
        page.click.assert_not_called()

    @pytest.mark.asyncio
    async def test_highlight_failure_does_not_block_click(self):
        page = _mock_page()
        overlay = Mock(spec=Overlay)
        overlay.highlight = AsyncMock(side_effect=PlaywrightError("page navigated"))
        await _client(page, overlay).click("#go")
        page.click.assert_awaited_once()


class TestType:
    @pytest.mark.asyncio
    async def test_types_after_wait(self):
        page = _mock_page()
        await _client(page).type("#email", "a@b.c")
        page.type.assert_awaited_once_with("#email", "a@b.c", timeout=5000)


class TestAssertElementExists:
    @pytest.mark.asyncio
    async def test_present(self):
        assert await _client(_mock_page()).assert_element_exists(".ok") is True

    @pytest.mark.asyncio
    async def test_absent_returns_false(self):
        page = _mock_page()
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout")
        assert await _client(page).assert_element_exists(".ok", timeout=10) is False


class TestScreenshot:
    @pytest.mark.asyncio
    async def test_full_page_and_creates_dir(self, tmp_path):
        page = _mock_page()
        target = tmp_path / "shots" / "a.png"
        await _client(page).screenshot(str(target))
        assert target.parent.exists()
        page.screenshot.assert_awaited_once_with(path=str(target), full_page=True)

    @pytest.mark.asyncio
    async def test_falls_back_to_viewport(self, tmp_path):
        page = _mock_page()
        page.screenshot.side_effect = [PlaywrightError("Unable to capture"), None]
        target = tmp_path / "b.png"
        await _client(page).screenshot(str(target))
        assert page.screenshot.await_count == 2
        assert page.screenshot.await_args.kwargs["full_page"] is False


class TestOverlay:
    @pytest.mark.asyncio
    async def test_overlay_errors_are_swallowed(self):
        page = _mock_page()
        overlay = Mock(spec=Overlay)
        overlay.show_progress = AsyncMock(side_effect=PlaywrightError("Execution context was destroyed"))
        await _client(page, overlay).update_overlay("t", "s", "running", 1, 3)
        overlay.show_progress.assert_awaited_once_with(page, "t", "s", "running", 1, 3)


class TestConnectDisconnect:
    @pytest.mark.asyncio
    async def test_connect_attaches_over_cdp(self):
        page = _mock_page()
        context = Mock()
        context.new_page = AsyncMock(return_value=page)
        browser = Mock()
        browser.contexts = [context]
        pw = Mock()
        pw.chromium.executable_path = "/usr/bin/chromium"
        pw.chromium.connect_over_cdp = AsyncMock(return_value=browser)
        chrome = Mock(cdp_url="http://localhost:9333")

        with patch("autopilot.browser.chrome_client.async_playwright") as mock_ap, \
                patch("autopilot.browser.chrome_client.launch_chrome", AsyncMock(return_value=chrome)) as mock_launch:
            mock_ap.return_value.start = AsyncMock(return_value=pw)
            client = ChromeClient(debug_port=9333, connect_settle_ms=0)
            await client.connect(headless=True, devtools=False, viewport={"width": 800, "height": 600})

        mock_launch.assert_awaited_once_with("/usr/bin/chromium", port=9333, headless=True, devtools=False)
        pw.chromium.connect_over_cdp.assert_awaited_once_with("http://localhost:9333")
        page.set_viewport_size.assert_awaited_once_with({"width": 800, "height": 600})
        assert {c.args[0] for c in page.on.call_args_list} == {"console", "response"}
        assert client.is_connected()

    @pytest.mark.asyncio
    async def test_connect_failure_propagates(self):
        pw = Mock()
        pw.chromium.executable_path = "/usr/bin/chromium"
        with patch("autopilot.browser.chrome_client.async_playwright") as mock_ap, \
                patch("autopilot.browser.chrome_client.launch_chrome",
                      AsyncMock(side_effect=OSError("no such file"))):
            mock_ap.return_value.start = AsyncMock(return_value=pw)
            with pytest.raises(OSError):
                await ChromeClient(connect_settle_ms=0).connect()

    @pytest.mark.asyncio
    async def test_disconnect_never_raises(self):
        page = _mock_page()
        page.close.side_effect = PlaywrightError("already closed")
        browser = Mock()
        browser.close = AsyncMock(side_effect=PlaywrightError("gone"))
        chrome = Mock()
        chrome.terminate = AsyncMock()
        pw = Mock()
        pw.stop = AsyncMock()

        client = _client(page)
        client._browser = browser
        client._chrome = chrome
        client._playwright = pw
        await client.disconnect()

        chrome.terminate.assert_awaited_once()
        pw.stop.assert_awaited_once()
        assert client.is_connected() is False

    @pytest.mark.asyncio
    async def test_disconnect_when_never_connected(self):
        await _client().disconnect()


class TestLogs:
    def test_delegates_to_recorder(self):
        client = _client()
        client.recorder.on_console(Mock(type="error", text="boom"))
        assert [l.message for l in client.get_console_logs()] == ["boom"]
        client.clear_logs()
        assert client.get_console_logs() == []
        assert client.get_network_errors() == []
