"""AI remediation dispatcher — asks Claude to diagnose a failed test before it is retried."""

from __future__ import annotations

import logging

import anthropic

from autopilot.ai.client import AIClient
from autopilot.ai.prompts.remediation import build_remediation_prompt, build_system_prompt

from .dispatcher import RemediationDispatcher, RemediationOutcome, RemediationRequest

logger = logging.getLogger(__name__)


class AIRemediationDispatcher(RemediationDispatcher):
    """Advisory only: the diagnosis is recorded, no code is changed."""

    def __init__(self, ai_client: AIClient, max_tokens: int = 1000):
        self.ai_client = ai_client
        self.max_tokens = max_tokens

    async def dispatch(self, request: RemediationRequest) -> RemediationOutcome:
        logger.info("  🔧 Asking AI (%s) about %s in %s",
                    request.handler_id, request.error.kind.value, request.test_id)
        try:
            data = self.ai_client.complete_json(
                system_prompt=build_system_prompt(request.handler_id),
                user_message=build_remediation_prompt(request.context, request.attempt),
                max_tokens=self.max_tokens,
            )
        except ValueError as e:
            logger.error("AI remediation response parse failed: %s", e)
            return RemediationOutcome(handler_id=request.handler_id, summary=f"AI response parse failed: {e}")
        except anthropic.APIError as e:
            logger.error("AI remediation call failed: %s", e)
            return RemediationOutcome(handler_id=request.handler_id, summary=f"AI call failed: {e}")

        diagnosis = str(data.get("diagnosis", "")).strip()
        fix = str(data.get("suggested_fix", "")).strip()
        summary = diagnosis if not fix else f"{diagnosis} Suggested fix: {fix}".strip()
        logger.info("     Diagnosis: %s", diagnosis or "(none)")
        if fix:
            logger.info("     Suggested fix: %s", fix)

        return RemediationOutcome(
            handler_id=request.handler_id,
            completed=bool(data.get("completed", False)),
            summary=summary,
        )
