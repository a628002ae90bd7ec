"""HTML report generator — a self-contained page summarising one test run."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from autopilot.models.test_result import TestResult, TestRunReport, TestStatus

logger = logging.getLogger(__name__)

_GLYPHS = {
    TestStatus.PASSED: "&#10003;",
    TestStatus.FAILED: "&#10007;",
    TestStatus.SKIPPED: "&#8856;",
}


def pass_rate(report: TestRunReport) -> float:
    """Passed tests as a percentage of the total; 0.0 for an empty run."""
    if report.summary.total == 0:
        return 0.0
    return report.summary.passed / report.summary.total * 100


def _embed_image(path: str) -> str:
    """Read a PNG and return a base64 data URI, or empty string on failure."""
    p = Path(path)
    try:
        if not p.exists() or p.stat().st_size == 0:
            return ""
        data = base64.b64encode(p.read_bytes()).decode()
    except OSError as e:
        logger.debug("Could not embed screenshot %s: %s", path, e)
        return ""
    return f"data:image/png;base64,{data}"


def _build_screenshots(r: TestResult, embed: bool) -> str:
    figures = ""
    paths = ""
    for shot in r.screenshots:
        label = html.escape(Path(shot).name)
        data_uri = _embed_image(shot) if embed else ""
        if data_uri:
            figures += f'<figure><img src="{data_uri}" alt="{label}"/><figcaption>{label}</figcaption></figure>'
        else:
            paths += f"<li><code>{html.escape(shot)}</code></li>"

    section = ""
    if figures:
        section += f'<div class="screenshots">{figures}</div>'
    if paths:
        section += f'<ul class="screenshot-paths">{paths}</ul>'
    return section


def _build_test_block(r: TestResult, embed_screenshots: bool = True) -> str:
    """Build the HTML block for one test result."""
    glyph = _GLYPHS.get(r.status, "&#8212;")
    agents = ""
    if r.agents_deployed:
        agents = f" | Agents: {html.escape(', '.join(r.agents_deployed))}"

    error = ""
    if r.error and r.status == TestStatus.FAILED:
        error = (
            f'<div class="error"><strong>Error:</strong> {html.escape(r.error.message)}'
            f' <span class="kind">[{r.error.kind.value}]</span></div>'
        )

    return f'''
    <div class="test-result {r.status.value}" id="test-{html.escape(r.test_id)}">
      <div class="test-name">{glyph} {html.escape(r.name)}</div>
      <div class="test-meta">
        Duration: {r.duration}ms |
        Attempts: {r.attempts} |
        Module: {html.escape(r.module)}{agents}
      </div>
      {error}
      {_build_screenshots(r, embed_screenshots) if r.status == TestStatus.FAILED else ""}
    </div>'''


def generate_html_report(report: TestRunReport, output_path: Path, embed_screenshots: bool = True) -> None:
    """Write a self-contained HTML summary of ``report``."""
    summary = report.summary
    blocks = "".join(_build_test_block(r, embed_screenshots) for r in report.results)

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Test Report &mdash; {html.escape(report.run_id)}</title>
<style>
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; margin: 40px; background: #f5f5f5; }}
  .container {{ max-width: 1200px; margin: 0 auto; background: white; padding: 30px; border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
  h1 {{ color: #333; margin-bottom: 10px; }}
  .meta {{ color: #666; font-size: 13px; margin-bottom: 30px; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 20px; margin-bottom: 30px; }}
  .summary-card {{ padding: 20px; border-radius: 8px; text-align: center; }}
  .summary-card.total {{ background: #e3f2fd; }}
  .summary-card.passed {{ background: #e8f5e9; }}
  .summary-card.failed {{ background: #ffebee; }}
  .summary-card.retried {{ background: #fff3e0; }}
  .summary-card h3 {{ margin: 0; font-size: 14px; color: #666; text-transform: uppercase; }}
  .summary-card .value {{ font-size: 36px; font-weight: bold; margin: 10px 0; }}
  .test-result {{ margin-bottom: 20px; padding: 15px; border-radius: 4px; border-left: 4px solid #ddd; }}
  .test-result.passed {{ border-left-color: #4caf50; background: #f1f8f4; }}
  .test-result.failed {{ border-left-color: #f44336; background: #fef5f5; }}
  .test-result.skipped {{ border-left-color: #eab308; background: #fefce8; }}
  .test-name {{ font-weight: bold; font-size: 16px; margin-bottom: 5px; }}
  .test-meta {{ font-size: 13px; color: #666; }}
  .error {{ background: #fff3e0; padding: 10px; margin-top: 10px; border-radius: 4px; font-size: 13px; font-family: monospace; }}
  .kind {{ color: #9a3412; }}
  .screenshots {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(240px, 1fr)); gap: 10px; margin-top: 10px; }}
  .screenshots img {{ width: 100%; border: 1px solid #ddd; border-radius: 4px; }}
  figcaption, .screenshot-paths {{ font-size: 12px; color: #666; }}
</style>
</head>
<body>
  <div class="container">
    <h1>&#129302; Autonomous Test Report</h1>
    <p class="meta">Run: {html.escape(report.run_id)} &middot; {html.escape(report.start_time)} &middot; Duration: {report.duration}ms</p>

    <div class="summary">
      <div class="summary-card total">
        <h3>Total Tests</h3>
        <div class="value">{summary.total}</div>
      </div>
      <div class="summary-card passed">
        <h3>Passed</h3>
        <div class="value">{summary.passed}</div>
        <div>{pass_rate(report):.1f}%</div>
      </div>
      <div class="summary-card failed">
        <h3>Failed</h3>
        <div class="value">{summary.failed}</div>
      </div>
      <div class="summary-card retried">
        <h3>Retried</h3>
        <div class="value">{summary.retried}</div>
      </div>
    </div>

    <h2>Test Results</h2>
    {blocks}
  </div>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
