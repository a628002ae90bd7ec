"""Claude API client wrapper used for advisory remediation."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

import anthropic

logger = logging.getLogger(__name__)

DEFAULT_DEBUG_DIR = Path(".autopilot") / "debug"

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n(.*?)\n```\s*$", re.DOTALL | re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


class AIClient:
    """Wrapper around the Anthropic Messages API."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 4000,
        debug_dir: Path | None = DEFAULT_DEBUG_DIR,
    ):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set; "
                "AI remediation is unavailable."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=300.0)
        self.model = model
        self.max_tokens = max_tokens
        self.debug_dir = debug_dir
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> str:
        """Send one message to Claude and return the text of the reply."""
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info("Calling AI (call #%d, model=%s, max_tokens=%d)...",
                    self._call_count, self.model, tokens)

        call_start = time.time()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
        except anthropic.APIError as e:
            logger.error("Claude API error: %s", e)
            self._save_exchange(system_prompt, user_message, "", error=str(e))
            raise

        text = response.content[0].text
        logger.info("AI response received in %.1fs (%d chars)", time.time() - call_start, len(text))
        if response.stop_reason == "max_tokens":
            logger.warning("AI response was truncated at max_tokens=%d", tokens)
        self._save_exchange(system_prompt, user_message, text)
        return text

    def complete_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """Send a message and parse the reply as a JSON object."""
        return parse_json_response(self.complete(system_prompt, user_message, max_tokens))

    def _save_exchange(
        self, system_prompt: str, user_message: str, response_text: str, error: str | None = None,
    ) -> None:
        """Write the full prompt/response pair to the debug directory."""
        if self.debug_dir is None:
            return
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            ts = time.strftime("%Y%m%d_%H%M%S")
            log_file = self.debug_dir / f"ai_call_{ts}_{self._call_count:03d}.log"
            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== SYSTEM PROMPT ===\n{system_prompt}\n\n")
                f.write(f"=== USER MESSAGE ===\n{user_message}\n\n")
                f.write(f"=== RESPONSE ===\n{response_text or '(empty)'}\n")
                if error:
                    f.write(f"\n=== ERROR ===\n{error}\n")
            logger.debug("AI exchange logged to %s", log_file)
        except OSError as e:
            logger.debug("Failed to save AI exchange log: %s", e)


def parse_json_response(text: str) -> dict[str, Any]:
    """Parse a model reply as JSON, tolerating code fences, prose and trailing commas."""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1).strip()

    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError:
        pass

    cleaned = _TRAILING_COMMA_RE.sub(r"\1", text)
    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first != -1 and last > first:
        cleaned = cleaned[first:last + 1]
    try:
        return json.loads(cleaned, strict=False)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response as JSON: %s", e)
        raise ValueError(f"AI returned invalid JSON: {e}") from e
