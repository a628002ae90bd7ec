"""Run configuration models for the test orchestrator."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import Field

from .base import WireModel

DEFAULT_CONFIG_PATH = "autopilot.config.json"
DEFAULT_DEBUG_PORT = 9222


class RemediationStrategy(str, Enum):
    FIRE_AND_FORGET = "fire-and-forget"
    AWAIT_CONFIRMATION = "await-confirmation"


class ViewportConfig(WireModel):
    width: int = 1280
    height: int = 720


class ChromeConfig(WireModel):
    headless: bool = False
    devtools: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    slow_mo: int = Field(default=0, ge=0)  # ms before each click
    # One orchestrator per host: the browser always listens on this port.
    debug_port: int = DEFAULT_DEBUG_PORT


class OrchestratorConfig(WireModel):
    max_retries: int = Field(default=3, ge=0)
    retry_delay: int = Field(default=2000, ge=0)  # ms
    screenshot_on_error: bool = True
    pause_on_error: bool = False
    continue_on_failure: bool = True

    # Operator-facing pauses, all in ms
    start_delay: int = Field(default=3000, ge=0)
    cooldown: int = Field(default=30000, ge=0)
    error_pause: int = Field(default=5000, ge=0)

    remediation_strategy: RemediationStrategy = RemediationStrategy.FIRE_AND_FORGET
    ai_remediation: bool = False
    ai_model: str = "claude-sonnet-4-5"


class ReportingConfig(WireModel):
    output_dir: str = "./test-reports"
    formats: list[Literal["html", "json", "markdown"]] = Field(
        default_factory=lambda: ["html", "json"]
    )
    save_screenshots: bool = True
    save_logs: bool = False


class RunConfig(WireModel):
    chrome: ChromeConfig = Field(default_factory=ChromeConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    # Test modules or ids to run; empty means the whole suite
    features: list[str] = Field(default_factory=list)

    @classmethod
    def load(cls, path: str | Path) -> "RunConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls.model_validate(data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json", by_alias=True), f, indent=2)
