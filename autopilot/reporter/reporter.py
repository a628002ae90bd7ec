"""Report generation — folds test results into a run report and writes it out."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path

from autopilot.models.config import ReportingConfig
from autopilot.models.test_result import TestResult, TestRunReport, TestRunSummary, TestStatus

from .html_report import generate_html_report
from .json_report import generate_json_report, load_json_report
from .markdown_report import generate_markdown_report

logger = logging.getLogger(__name__)

_last_run_ms = 0


def new_run_id() -> str:
    """Timestamp-based run id, strictly increasing within this process."""
    global _last_run_ms
    now_ms = int(time.time() * 1000)
    if now_ms <= _last_run_ms:
        now_ms = _last_run_ms + 1
    _last_run_ms = now_ms
    return f"test-run-{now_ms}"


def summarize(results: list[TestResult]) -> TestRunSummary:
    return TestRunSummary(
        total=len(results),
        passed=sum(1 for r in results if r.status == TestStatus.PASSED),
        failed=sum(1 for r in results if r.status == TestStatus.FAILED),
        skipped=sum(1 for r in results if r.status == TestStatus.SKIPPED),
        retried=sum(1 for r in results if r.attempts > 1),
    )


def build_report(results: list[TestResult], start_time: str, end_time: str) -> TestRunReport:
    """Aggregate per-test results into a TestRunReport."""
    started = datetime.fromisoformat(start_time)
    ended = datetime.fromisoformat(end_time)
    return TestRunReport(
        run_id=new_run_id(),
        start_time=start_time,
        end_time=end_time,
        duration=max(0, int((ended - started).total_seconds() * 1000)),
        summary=summarize(results),
        results=list(results),
    )


def exit_code(report: TestRunReport) -> int:
    """Process exit status for CI gating: non-zero when anything failed."""
    return 0 if report.summary.failed == 0 else 1


class Reporter:
    """Writes a run report in every configured format."""

    def __init__(self, config: ReportingConfig):
        self.config = config

    def generate_reports(self, report: TestRunReport, output_dir: Path | None = None) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        generated = {}
        logger.debug("Report output directory: %s", out_dir)

        if "json" in self.config.formats:
            path = out_dir / f"{report.run_id}.json"
            generate_json_report(report, path)
            generated["json"] = str(path)
            logger.info("📄 JSON Report: %s", path)

        if "html" in self.config.formats:
            path = out_dir / f"{report.run_id}.html"
            generate_html_report(report, path, embed_screenshots=self.config.save_screenshots)
            generated["html"] = str(path)
            logger.info("📄 HTML Report: %s", path)

        if "markdown" in self.config.formats:
            path = out_dir / f"{report.run_id}.md"
            generate_markdown_report(report, path)
            generated["markdown"] = str(path)
            logger.info("📄 Markdown Report: %s", path)

        if self.config.save_logs:
            self._save_logs(report, out_dir / "logs")

        return generated

    def _save_logs(self, report: TestRunReport, logs_dir: Path) -> None:
        """Persist each test's final console log to ``logs/<testId>.log``."""
        logs_dir.mkdir(parents=True, exist_ok=True)
        for r in report.results:
            path = logs_dir / f"{r.test_id}.log"
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n".join(r.logs))
        logger.debug("Saved console logs for %d tests to %s", len(report.results), logs_dir)


def load_report(path: str | Path) -> TestRunReport:
    """Read back a JSON report written by ``Reporter.generate_reports``."""
    return load_json_report(path)
