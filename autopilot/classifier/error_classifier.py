"""Error classifier — maps captured failures to a root-cause kind and a remediation handler.

Everything here is pure: no I/O, no state, same input gives the same answer.
"""

from __future__ import annotations

import re

from autopilot.models.test_result import ErrorKind, TestError

BUILD_DOCTOR = "build-doctor"
DATABASE = "database"
DEBUGGER = "debugger"
CODE_REVIEW = "code-review"
PERFORMANCE = "performance"

_ROUTES: dict[ErrorKind, str] = {
    ErrorKind.BUILD: BUILD_DOCTOR,
    ErrorKind.DATABASE: DATABASE,
    ErrorKind.RUNTIME: DEBUGGER,
    ErrorKind.NETWORK: DEBUGGER,
    ErrorKind.UI: CODE_REVIEW,
    ErrorKind.TIMEOUT: PERFORMANCE,
    ErrorKind.UNKNOWN: DEBUGGER,
}

_TSC_RE = re.compile(r"\btsc\b")
_RLS_RE = re.compile(r"\brls\b")
_HTTP_STATUS_RE = re.compile(r"\bstatus(?: code)?:?\s*[45]\d{2}\b")

MAX_CONTEXT_CONSOLE_ERRORS = 5
MAX_CONTEXT_NETWORK_ERRORS = 3


def _is_build_error(message: str) -> bool:
    return (
        bool(_TSC_RE.search(message))
        or "type '" in message
        or "is not assignable" in message
        or ("property" in message and "does not exist" in message)
        or "cannot find name" in message
    )


def _is_database_error(message: str) -> bool:
    return (
        "row-level security" in message
        or bool(_RLS_RE.search(message))
        or "sql" in message
        or "violates" in message
        or "permission denied" in message
        or "foreign key" in message
        or "unique constraint" in message
    )


def _is_network_error(message: str, error: TestError) -> bool:
    return (
        bool(error.network_errors)
        or "network error" in message
        or "fetch failed" in message
        or "api error" in message
        or bool(_HTTP_STATUS_RE.search(message))
    )


def _is_ui_error(message: str, error: TestError) -> bool:
    return (
        (bool(error.selector) and not error.element_found)
        or "element not found" in message
        or "waiting for selector" in message
        or ("timeout" in message and "selector" in message)
    )


def _is_runtime_error(message: str, error: TestError) -> bool:
    return (
        bool(error.stack)
        or "cannot read property" in message
        or "cannot read properties" in message
        or ("undefined" in message and "of" in message)
        or "is not a function" in message
        or "cannot access" in message
        or "reference error" in message
        or "referenceerror" in message
    )


def _is_timeout_error(message: str) -> bool:
    return "timeout" in message or "timed out" in message or "exceeded" in message


def classify(error: TestError) -> ErrorKind:
    """Assign an ErrorKind. Rules are checked in precedence order; first match wins."""
    message = error.message.lower()

    if _is_build_error(message):
        return ErrorKind.BUILD
    if _is_database_error(message):
        return ErrorKind.DATABASE
    if _is_network_error(message, error):
        return ErrorKind.NETWORK
    # Before runtime/timeout so a selector timeout reads as a UI problem
    if _is_ui_error(message, error):
        return ErrorKind.UI
    if _is_runtime_error(message, error):
        return ErrorKind.RUNTIME
    if _is_timeout_error(message):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN


def route(kind: ErrorKind) -> str:
    """Remediation handler id for an error kind."""
    return _ROUTES.get(kind, DEBUGGER)


def build_error_context(error: TestError, test_id: str, step_description: str) -> str:
    """Render the Markdown remediation request handed to a handler."""
    handler = route(error.kind)

    context = "**Test Failure Detected**\n\n"
    context += f"Test: {test_id}\n"
    context += f"Step: {step_description}\n"
    context += f"Error Type: {error.kind.value}\n"
    context += f"Agent: {handler}\n\n"

    context += f"**Error Message:**\n{error.message}\n\n"

    if error.stack:
        context += f"**Stack Trace:**\n```\n{error.stack}\n```\n\n"

    if error.selector:
        context += f"**Failed Selector:** {error.selector}\n\n"

    if error.screenshot:
        context += f"**Screenshot:** {error.screenshot}\n\n"

    if error.console_errors:
        context += "**Console Errors:**\n"
        for log in error.console_errors[:MAX_CONTEXT_CONSOLE_ERRORS]:
            context += f"- {log}\n"
        context += "\n"

    if error.network_errors:
        context += "**Network Errors:**\n"
        for net in error.network_errors[:MAX_CONTEXT_NETWORK_ERRORS]:
            context += f"- {net.method} {net.url} → {net.status} {net.status_text}\n"
        context += "\n"

    context += "**Task:** Fix this error so the test can pass when retried.\n"
    return context
