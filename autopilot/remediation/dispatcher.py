"""Remediation dispatch — hands a classified failure to a handler between attempts."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel

from autopilot.classifier.error_classifier import build_error_context, route
from autopilot.models.config import RemediationStrategy
from autopilot.models.test_result import TestError

logger = logging.getLogger(__name__)


class RemediationRequest(BaseModel):
    test_id: str
    step_description: str
    attempt: int
    handler_id: str
    error: TestError
    context: str  # rendered by build_error_context


class RemediationOutcome(BaseModel):
    handler_id: str
    completed: bool = False
    summary: str = ""


def build_remediation_request(
    error: TestError, test_id: str, step_description: str, attempt: int,
) -> RemediationRequest:
    return RemediationRequest(
        test_id=test_id,
        step_description=step_description,
        attempt=attempt,
        handler_id=route(error.kind),
        error=error,
        context=build_error_context(error, test_id, step_description),
    )


class RemediationDispatcher(ABC):
    """Something that tries to fix the code under test before the next attempt."""

    @abstractmethod
    async def dispatch(self, request: RemediationRequest) -> RemediationOutcome:
        ...


class LoggingDispatcher(RemediationDispatcher):
    """Logs the intended dispatch and reports nothing was changed."""

    async def dispatch(self, request: RemediationRequest) -> RemediationOutcome:
        logger.info("  🔧 Deploying %s to fix %s", request.handler_id, request.error.kind.value)
        logger.info("     Error: %s...", request.error.message[:100])
        logger.debug("Remediation context for %s:\n%s", request.test_id, request.context)
        return RemediationOutcome(handler_id=request.handler_id, completed=False)


def should_retry(strategy: RemediationStrategy, outcome: RemediationOutcome) -> bool:
    """Whether another attempt follows a dispatch under ``strategy``."""
    if strategy == RemediationStrategy.AWAIT_CONFIRMATION:
        return outcome.completed
    return True
