"""Operator overlay — visual cues for a human watching the browser.

None of this affects control flow. Headless runs use the no-op ``Overlay``.
"""

from __future__ import annotations

import html

from playwright.async_api import Page

OVERLAY_ELEMENT_ID = "autopilot-overlay"

_HIGHLIGHT_SCRIPT = """
(selector) => {
    const element = document.querySelector(selector);
    if (!element) return;
    const original = element.style.border;
    element.style.border = '3px solid yellow';
    setTimeout(() => { element.style.border = original; }, 500);
}
"""

_OVERLAY_SCRIPT = """
([id, content]) => {
    const existing = document.getElementById(id);
    if (existing) existing.remove();
    const overlay = document.createElement('div');
    overlay.id = id;
    overlay.innerHTML = content;
    overlay.style.cssText = [
        'position: fixed', 'bottom: 20px', 'right: 20px',
        'background: rgba(0, 0, 0, 0.9)', 'color: white', 'padding: 15px',
        'border-radius: 8px', 'font-family: monospace', 'font-size: 12px',
        'z-index: 999999', 'min-width: 300px',
    ].join(';');
    document.body.appendChild(overlay);
}
"""


def render_progress(test_label: str, step_label: str, status: str, retries: int, max_retries: int) -> str:
    return (
        '<div style="margin-bottom: 10px; font-weight: bold; color: #4CAF50;">'
        "&#129302; Autonomous Test Runner</div>"
        f'<div style="margin-bottom: 5px;">Test: {html.escape(test_label)}</div>'
        f'<div style="margin-bottom: 5px;">Step: {html.escape(step_label)}</div>'
        f'<div style="margin-bottom: 5px;">Status: {html.escape(status)}</div>'
        f"<div>Retries: {retries}/{max_retries}</div>"
    )


class Overlay:
    """No-op observer hook."""

    async def highlight(self, page: Page, selector: str) -> None:
        pass

    async def show_progress(
        self, page: Page, test_label: str, step_label: str,
        status: str, retries: int, max_retries: int,
    ) -> None:
        pass


class OperatorOverlay(Overlay):
    """Flashes clicked elements and pins a progress callout to the page."""

    async def highlight(self, page: Page, selector: str) -> None:
        await page.evaluate(_HIGHLIGHT_SCRIPT, selector)

    async def show_progress(
        self, page: Page, test_label: str, step_label: str,
        status: str, retries: int, max_retries: int,
    ) -> None:
        content = render_progress(test_label, step_label, status, retries, max_retries)
        await page.evaluate(_OVERLAY_SCRIPT, [OVERLAY_ELEMENT_ID, content])
