"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from autopilot.models.test_result import TestRunReport


def generate_json_report(report: TestRunReport, output_path: Path) -> None:
    """Write the full run report as pretty-printed camelCase JSON."""
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report.model_dump(mode="json", by_alias=True), f, indent=2, ensure_ascii=False)


def load_json_report(path: str | Path) -> TestRunReport:
    """Read a report written by ``generate_json_report``."""
    with open(path, encoding="utf-8") as f:
        return TestRunReport.model_validate(json.load(f))
