"""Markdown report output, for pasting into CI summaries and pull requests."""

from __future__ import annotations

from pathlib import Path

from autopilot.models.test_result import TestRunReport, TestStatus

from .html_report import pass_rate

_ICONS = {TestStatus.PASSED: "✓", TestStatus.FAILED: "✗", TestStatus.SKIPPED: "⊘"}


def render_markdown_report(report: TestRunReport) -> str:
    s = report.summary
    lines = [
        f"# Test Report: {report.run_id}",
        "",
        f"Started {report.start_time}, finished {report.end_time} ({report.duration}ms).",
        "",
        "| Total | Passed | Failed | Skipped | Retried | Pass rate |",
        "|---|---|---|---|---|---|",
        f"| {s.total} | {s.passed} | {s.failed} | {s.skipped} | {s.retried} | {pass_rate(report):.1f}% |",
        "",
        "## Results",
    ]
    for r in report.results:
        lines += [
            "",
            f"### {_ICONS.get(r.status, '-')} {r.name}",
            "",
            f"- Module: `{r.module}`",
            f"- Status: {r.status.value} after {r.attempts} attempt(s), {r.duration}ms",
        ]
        if r.agents_deployed:
            lines.append(f"- Agents: {', '.join(r.agents_deployed)}")
        if r.error and r.status == TestStatus.FAILED:
            lines.append(f"- Error ({r.error.kind.value}): {r.error.message}")
        for shot in r.screenshots:
            lines.append(f"- Screenshot: `{shot}`")
    return "\n".join(lines) + "\n"


def generate_markdown_report(report: TestRunReport, output_path: Path) -> None:
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(render_markdown_report(report))
