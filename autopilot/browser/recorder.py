"""Log recorder — buffers console and network failures seen on the active page."""

from __future__ import annotations

import logging

from playwright.async_api import ConsoleMessage, Page, Response

from autopilot.models.base import utc_timestamp
from autopilot.models.test_result import ConsoleLog, NetworkError

logger = logging.getLogger(__name__)

_RECORDED_LEVELS = ("error", "warning")


class BrowserLogRecorder:
    """Owns the console/network buffers for one page.

    The listeners are the only writers. Readers get copies, and the
    orchestrator clears the buffers at the start of every attempt.
    """

    def __init__(self):
        self._console_logs: list[ConsoleLog] = []
        self._network_errors: list[NetworkError] = []

    def attach(self, page: Page) -> None:
        """Attach console and response listeners to a page."""
        page.on("console", self.on_console)
        page.on("response", self.on_response)

    def on_console(self, msg: ConsoleMessage) -> None:
        level = msg.type
        if level not in _RECORDED_LEVELS:
            return
        self._console_logs.append(ConsoleLog(
            level=level,
            message=msg.text,
            timestamp=utc_timestamp(),
        ))

    def on_response(self, response: Response) -> None:
        status = response.status
        if status < 400:
            return
        logger.debug("HTTP %d %s %s", status, response.request.method, response.url)
        self._network_errors.append(NetworkError(
            url=response.url,
            method=response.request.method,
            status=status,
            status_text=response.status_text,
            timestamp=utc_timestamp(),
        ))

    @property
    def console_logs(self) -> list[ConsoleLog]:
        return list(self._console_logs)

    @property
    def network_errors(self) -> list[NetworkError]:
        return list(self._network_errors)

    def console_errors(self) -> list[str]:
        """Messages of error-level console entries, in arrival order."""
        return [log.message for log in self._console_logs if log.level == "error"]

    def clear(self) -> None:
        self._console_logs = []
        self._network_errors = []
