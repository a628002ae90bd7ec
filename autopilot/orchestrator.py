"""Test orchestrator — runs a feature-test suite with retries, remediation and reporting."""

from __future__ import annotations

import asyncio
import logging
import re
import time
import traceback
from pathlib import Path
from typing import assert_never

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from autopilot.ai.client import AIClient
from autopilot.browser.chrome_client import (
    BrowserNotConnectedError,
    ChromeClient,
    ElementNotFoundError,
)
from autopilot.browser.overlay import OperatorOverlay, Overlay
from autopilot.classifier.error_classifier import classify
from autopilot.loader import DEFAULT_FEATURES_DIR, load_test_suite
from autopilot.models.base import utc_timestamp
from autopilot.models.config import RunConfig
from autopilot.models.feature_test import (
    AssertStep,
    ClickStep,
    FeatureTest,
    NavigateStep,
    ScreenshotStep,
    TestStep,
    TypeStep,
    WaitStep,
)
from autopilot.models.test_result import TestError, TestResult, TestRunReport, TestStatus, TestStepResult
from autopilot.remediation.ai_dispatcher import AIRemediationDispatcher
from autopilot.remediation.dispatcher import (
    LoggingDispatcher,
    RemediationDispatcher,
    build_remediation_request,
    should_retry,
)
from autopilot.reporter.reporter import Reporter, build_report

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class AssertionStepError(Exception):
    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f"Assertion failed: element not found - {selector}")


# Failures the browser layer reports; these carry no useful Python stack.
_AUTOMATION_ERRORS = (PlaywrightError, ElementNotFoundError, AssertionStepError, BrowserNotConnectedError)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class TestOrchestrator:
    """Drives every loaded test to a passed/failed/skipped verdict, one at a time."""

    def __init__(
        self,
        config: RunConfig,
        client: ChromeClient | None = None,
        dispatcher: RemediationDispatcher | None = None,
        features_dir: str | Path = DEFAULT_FEATURES_DIR,
        reporter: Reporter | None = None,
    ):
        self.config = config
        self.client = client or ChromeClient(
            overlay=Overlay() if config.chrome.headless else OperatorOverlay(),
            debug_port=config.chrome.debug_port,
        )
        self.dispatcher = dispatcher or self._default_dispatcher()
        self.features_dir = Path(features_dir)
        self.reporter = reporter or Reporter(config.reporting)
        self.results: list[TestResult] = []
        self.start_time = ""

    def _default_dispatcher(self) -> RemediationDispatcher:
        orch = self.config.orchestrator
        if orch.ai_remediation:
            try:
                return AIRemediationDispatcher(AIClient(model=orch.ai_model))
            except EnvironmentError as e:
                logger.warning("AI client unavailable: %s. Logging remediation dispatches only.", e)
        return LoggingDispatcher()

    def run_sync(self) -> TestRunReport:
        """Blocking entry point for the CLI."""
        return asyncio.run(self.run())

    async def run(self) -> TestRunReport:
        """Connect, run the suite, write reports, and always tear the browser down."""
        orch = self.config.orchestrator
        chrome = self.config.chrome
        self.results = []
        self.start_time = utc_timestamp()
        logger.info("🤖 Autonomous Test Orchestrator Starting...")

        try:
            await self.client.connect(
                headless=chrome.headless,
                devtools=chrome.devtools,
                slow_mo=chrome.slow_mo,
                viewport=chrome.viewport.model_dump() if chrome.headless else None,
            )

            if orch.start_delay:
                logger.info("⏸️  Chrome opened - waiting %.1fs before starting tests...", orch.start_delay / 1000)
                await asyncio.sleep(orch.start_delay / 1000)

            tests = load_test_suite(self.features_dir, self.config.features)
            logger.info("✓ Loaded %d tests", len(tests))

            halted = False
            for index, test in enumerate(tests, 1):
                if halted:
                    result = self._skipped_result(test)
                else:
                    logger.info("[%d/%d] Running test: %s", index, len(tests), test.name)
                    result = await self.run_test(test, index, len(tests))
                self.results.append(result)
                self._log_result(result)

                if result.status == TestStatus.FAILED and not orch.continue_on_failure:
                    if not halted and index < len(tests):
                        logger.warning("continueOnFailure is off; skipping the remaining %d tests",
                                       len(tests) - index)
                    halted = True

            report = build_report(self.results, self.start_time, utc_timestamp())
            self.reporter.generate_reports(report)

            logger.info("📊 Test Run Complete!")
            logger.info("Passed: %d/%d", report.summary.passed, report.summary.total)
            logger.info("Failed: %d/%d", report.summary.failed, report.summary.total)
            logger.info("Retried: %d", report.summary.retried)

            if orch.cooldown:
                logger.info("⏸️  Keeping Chrome open for %.0fs so you can see the final state...",
                            orch.cooldown / 1000)
                await asyncio.sleep(orch.cooldown / 1000)

            return report
        finally:
            await self.client.disconnect()

    @staticmethod
    def _log_result(result: TestResult) -> None:
        if result.status == TestStatus.PASSED:
            logger.info("✓ PASSED: %s (%dms)", result.name, result.duration)
        elif result.status == TestStatus.FAILED:
            logger.info("✗ FAILED: %s (%d attempts)", result.name, result.attempts)
        else:
            logger.info("⊘ SKIPPED: %s", result.name)

    @staticmethod
    def _skipped_result(test: FeatureTest) -> TestResult:
        now = utc_timestamp()
        return TestResult(
            test_id=test.id, name=test.name, module=test.module,
            status=TestStatus.SKIPPED, attempts=0, start_time=now, end_time=now,
        )

    async def run_test(self, test: FeatureTest, index: int = 1, total: int = 1) -> TestResult:
        """Run one test through up to ``maxRetries + 1`` attempts."""
        orch = self.config.orchestrator
        max_attempts = orch.max_retries + 1
        result = TestResult(
            test_id=test.id,
            name=test.name,
            module=test.module,
            status=TestStatus.RUNNING,
            start_time=utc_timestamp(),
        )
        started = time.monotonic()

        for attempt in range(1, max_attempts + 1):
            result.attempts = attempt
            # Diagnostics must describe this attempt only
            self.client.clear_logs()

            step_results, failure = await self._run_attempt(test, index, total, attempt)
            result.steps = step_results

            if failure is None:
                result.status = TestStatus.PASSED
                result.error = None
                break

            result.error = failure
            await self._capture_failure(test, attempt, failure, step_results, result)

            if attempt >= max_attempts:
                result.status = TestStatus.FAILED
                break

            failed_step = self._failed_step(step_results, failure)
            request = build_remediation_request(
                failure, test.id, failed_step.step.description if failed_step else test.name, attempt,
            )
            outcome = await self.dispatcher.dispatch(request)
            result.agents_deployed.append(outcome.handler_id)

            if not should_retry(orch.remediation_strategy, outcome):
                logger.info("  %s did not confirm a fix; not retrying %s", outcome.handler_id, test.id)
                result.status = TestStatus.FAILED
                break

            if orch.retry_delay:
                await asyncio.sleep(orch.retry_delay / 1000)
            logger.info("  ↻ Retrying (attempt %d/%d)", attempt + 1, max_attempts)

        result.logs = [log.message for log in self.client.get_console_logs()]
        result.end_time = utc_timestamp()
        result.duration = _elapsed_ms(started)

        if test.cleanup:
            await self._run_cleanup(test)
        return result

    async def _run_attempt(
        self, test: FeatureTest, index: int, total: int, attempt: int,
    ) -> tuple[list[TestStepResult], TestError | None]:
        """Execute the steps in order; stop at the first failed critical step."""
        step_results: list[TestStepResult] = []
        step_count = len(test.steps)
        for i, step in enumerate(test.steps, 1):
            await self.client.update_overlay(
                f"{test.name} ({index}/{total})",
                f"{step.description} ({i}/{step_count})",
                "✓ Running",
                attempt - 1,
                self.config.orchestrator.max_retries,
            )

            step_result = await self.execute_step(step, test.id)
            step_results.append(step_result)

            if step_result.status == "failed":
                logger.info("  ✗ Step %d/%d failed: %s [%s]", i, step_count,
                            step.description, step_result.error.kind.value)
                if step.critical:
                    return step_results, step_result.error
        return step_results, None

    async def execute_step(self, step: TestStep, test_id: str) -> TestStepResult:
        """Run one step; failures come back as a failed result, never as an exception."""
        started = time.monotonic()
        try:
            await self._perform(step, test_id)
        except Exception as e:
            return TestStepResult(
                step=step,
                status="failed",
                duration=_elapsed_ms(started),
                error=self.build_test_error(e, step),
            )
        return TestStepResult(step=step, status="passed", duration=_elapsed_ms(started))

    async def _perform(self, step: TestStep, test_id: str) -> None:
        logger.debug("Running step: %s | %s", step.action, step.description)
        match step:
            case NavigateStep():
                await self.client.navigate(step.value, step.effective_timeout)
            case ClickStep():
                await self.client.click(step.selector, step.effective_timeout)
            case TypeStep():
                await self.client.type(step.selector, step.value, step.effective_timeout)
            case WaitStep():
                await self.client.wait(step.duration_ms)
            case AssertStep():
                if not await self.client.assert_element_exists(step.selector, step.effective_timeout):
                    raise AssertionStepError(step.selector)
            case ScreenshotStep():
                await self.client.screenshot(str(self._step_screenshot_path(test_id, step)))
            case _:
                assert_never(step)

    def build_test_error(self, exc: Exception, step: TestStep | None = None) -> TestError:
        """Capture the failure with the current attempt's console/network evidence, then classify it."""
        selector = getattr(step, "selector", None)
        missing = isinstance(exc, (ElementNotFoundError, AssertionStepError)) or (
            selector is not None and isinstance(exc, PlaywrightTimeoutError)
        )
        error = TestError(
            message=str(exc) or type(exc).__name__,
            stack=None if isinstance(exc, _AUTOMATION_ERRORS) else "".join(traceback.format_exception(exc)),
            selector=selector,
            element_found=not missing,
            console_errors=[log.message for log in self.client.get_console_logs() if log.level == "error"],
            network_errors=self.client.get_network_errors(),
        )
        error.kind = classify(error)
        return error

    async def _capture_failure(
        self,
        test: FeatureTest,
        attempt: int,
        failure: TestError,
        step_results: list[TestStepResult],
        result: TestResult,
    ) -> None:
        orch = self.config.orchestrator
        if orch.pause_on_error and not self.config.chrome.headless and orch.error_pause:
            logger.info("  ⏸️  Holding failed page for %.1fs", orch.error_pause / 1000)
            await asyncio.sleep(orch.error_pause / 1000)

        if not orch.screenshot_on_error:
            return

        path = str(self._error_screenshot_path(test.id, attempt))
        try:
            await self.client.screenshot(path)
        except Exception as e:
            logger.warning("  Could not capture failure screenshot for %s: %s", test.id, e)
            return

        result.screenshots.append(path)
        failure.screenshot = path
        failed_step = self._failed_step(step_results, failure)
        if failed_step is not None:
            failed_step.screenshot = path

    @staticmethod
    def _failed_step(step_results: list[TestStepResult], failure: TestError) -> TestStepResult | None:
        for step_result in reversed(step_results):
            if step_result.error is failure:
                return step_result
        return None

    async def _run_cleanup(self, test: FeatureTest) -> None:
        """Best-effort cleanup steps; they never change the verdict."""
        logger.debug("  Running %d cleanup steps for %s", len(test.cleanup), test.id)
        for step in test.cleanup:
            step_result = await self.execute_step(step, test.id)
            if step_result.status == "failed":
                logger.warning("  Cleanup step failed for %s: %s (%s)",
                               test.id, step.description, step_result.error.message)

    def _screenshots_dir(self) -> Path:
        return Path(self.config.reporting.output_dir) / "screenshots"

    def _error_screenshot_path(self, test_id: str, attempt: int) -> Path:
        return self._screenshots_dir() / f"{test_id}-error-attempt-{attempt}.png"

    def _step_screenshot_path(self, test_id: str, step: TestStep) -> Path:
        return self._screenshots_dir() / f"{test_id}-{_WHITESPACE_RE.sub('-', step.description)}.png"
