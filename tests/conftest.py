"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from typing import Any

import pytest

from autopilot.browser.chrome_client import ElementNotFoundError
from autopilot.models.base import utc_timestamp
from autopilot.models.config import (
    ChromeConfig,
    OrchestratorConfig,
    ReportingConfig,
    RunConfig,
)
from autopilot.models.test_result import (
    ConsoleLog,
    ErrorKind,
    NetworkError,
    TestError,
    TestResult,
    TestRunReport,
    TestRunSummary,
    TestStatus,
)


# ============================================================================
# Fake browser
# ============================================================================


class FakeChromeClient:
    """In-memory stand-in for ChromeClient.

    ``missing`` selectors never appear. ``absent_for`` maps a selector to
    how many lookups fail before it shows up. Every navigate emits the
    configured console and network errors, the way a broken page would.
    """

    def __init__(
        self,
        missing: set[str] | None = None,
        absent_for: dict[str, int] | None = None,
        console_errors_on_navigate: list[str] | None = None,
        network_errors_on_navigate: list[NetworkError] | None = None,
        connect_error: Exception | None = None,
        screenshot_error: Exception | None = None,
    ):
        self.missing = set(missing or ())
        self.absent_for = dict(absent_for or {})
        self.console_errors_on_navigate = list(console_errors_on_navigate or [])
        self.network_errors_on_navigate = list(network_errors_on_navigate or [])
        self.connect_error = connect_error
        self.screenshot_error = screenshot_error
        self.calls: list[tuple] = []
        self.connected = False
        self.disconnect_count = 0
        self._console: list[ConsoleLog] = []
        self._network: list[NetworkError] = []

    def _found(self, selector: str) -> bool:
        if selector in self.missing:
            return False
        remaining = self.absent_for.get(selector, 0)
        if remaining > 0:
            self.absent_for[selector] = remaining - 1
            return False
        return True

    async def connect(self, headless=False, devtools=True, slow_mo=0, viewport=None):
        self.calls.append(("connect", headless, viewport))
        if self.connect_error:
            raise self.connect_error
        self.connected = True

    async def disconnect(self):
        self.calls.append(("disconnect",))
        self.disconnect_count += 1
        self.connected = False

    async def navigate(self, url, timeout=30000):
        self.calls.append(("navigate", url))
        for message in self.console_errors_on_navigate:
            self._console.append(ConsoleLog(level="error", message=message, timestamp=utc_timestamp()))
        for net in self.network_errors_on_navigate:
            self._network.append(net)

    async def click(self, selector, timeout=5000):
        self.calls.append(("click", selector))
        if not self._found(selector):
            raise ElementNotFoundError(selector, timeout)

    async def type(self, selector, text, timeout=5000):
        self.calls.append(("type", selector, text))
        if not self._found(selector):
            raise ElementNotFoundError(selector, timeout)

    async def assert_element_exists(self, selector, timeout=5000):
        self.calls.append(("assert", selector))
        return self._found(selector)

    async def screenshot(self, path):
        self.calls.append(("screenshot", path))
        if self.screenshot_error:
            raise self.screenshot_error
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_bytes(b"\x89PNG fake")

    async def wait(self, ms):
        self.calls.append(("wait", ms))

    async def update_overlay(self, test_label, step_label, status, retries, max_retries):
        self.calls.append(("overlay", test_label, step_label, retries))

    def get_console_logs(self):
        return list(self._console)

    def get_network_errors(self):
        return list(self._network)

    def clear_logs(self):
        self.calls.append(("clear_logs",))
        self._console = []
        self._network = []

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


# ============================================================================
# Test definition helpers
# ============================================================================


def make_test_def(
    test_id: str = "login",
    name: str | None = None,
    module: str = "auth",
    steps: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a raw test definition dict as it appears on disk."""
    return {
        "id": test_id,
        "name": name or f"Test {test_id}",
        "module": module,
        "steps": steps if steps is not None else [
            {"action": "navigate", "value": "http://localhost:3000/login", "description": "Open login"},
            {"action": "click", "selector": "#submit-button", "description": "Submit", "critical": True},
        ],
        **extra,
    }


def write_test_def(directory: Path, filename: str, definition: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(json.dumps(definition), encoding="utf-8")
    return path


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def run_config(tmp_path) -> RunConfig:
    """A run config with every operator delay switched off."""
    return RunConfig(
        chrome=ChromeConfig(headless=True),
        orchestrator=OrchestratorConfig(
            max_retries=2,
            retry_delay=0,
            start_delay=0,
            cooldown=0,
            error_pause=0,
        ),
        reporting=ReportingConfig(output_dir=str(tmp_path / "reports"), formats=["json", "html"]),
    )


@pytest.fixture
def features_dir(tmp_path) -> Path:
    path = tmp_path / "features"
    path.mkdir()
    return path


@pytest.fixture
def fake_client() -> FakeChromeClient:
    return FakeChromeClient()


# ============================================================================
# Result Fixtures
# ============================================================================


@pytest.fixture
def network_error() -> NetworkError:
    return NetworkError(
        url="http://localhost:3000/api/orders",
        method="POST",
        status=500,
        status_text="Internal Server Error",
        timestamp="2026-01-01T00:00:00.000+00:00",
    )


@pytest.fixture
def ui_error() -> TestError:
    return TestError(
        message='waiting for selector "#submit-button" failed: timeout',
        kind=ErrorKind.UI,
        selector="#submit-button",
        element_found=False,
        console_errors=["Uncaught TypeError: x is undefined"],
    )


@pytest.fixture
def sample_report(ui_error) -> TestRunReport:
    results = [
        TestResult(
            test_id="login", name="Login works", module="auth",
            status=TestStatus.PASSED, duration=1200, attempts=1,
            start_time="2026-01-01T00:00:00.000+00:00",
            end_time="2026-01-01T00:00:01.200+00:00",
        ),
        TestResult(
            test_id="checkout", name="Checkout <flow>", module="shop",
            status=TestStatus.FAILED, duration=9000, attempts=3,
            start_time="2026-01-01T00:00:01.200+00:00",
            end_time="2026-01-01T00:00:10.200+00:00",
            agents_deployed=["code-review", "code-review"],
            logs=["Uncaught TypeError: x is undefined"],
            error=ui_error,
        ),
    ]
    return TestRunReport(
        run_id="test-run-1767225600000",
        start_time="2026-01-01T00:00:00.000+00:00",
        end_time="2026-01-01T00:00:10.200+00:00",
        duration=10200,
        summary=TestRunSummary(total=2, passed=1, failed=1, skipped=0, retried=1),
        results=results,
    )
