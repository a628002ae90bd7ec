"""System prompts for AI-assisted remediation of failed end-to-end tests."""

from autopilot.classifier.error_classifier import (
    BUILD_DOCTOR,
    CODE_REVIEW,
    DATABASE,
    DEBUGGER,
    PERFORMANCE,
)

REMEDIATION_SYSTEM_PROMPT = """You are a senior engineer on call for an automated end-to-end test run. A browser test has failed and will be retried shortly. Diagnose the failure from the report you are given.

{focus}

CRITICAL: Return ONLY valid JSON. No markdown fences, no text before or after the JSON object.

Return exactly this JSON structure:

{{"completed": false, "diagnosis": "one or two sentences", "suggested_fix": "concrete change to make"}}

Fields:
- completed: true only if the failure is environmental or transient and a plain retry is expected to pass; false if code or data must change first
- diagnosis: the most likely root cause
- suggested_fix: the specific change (file, selector, query or setting) that would make the retried test pass"""

HANDLER_FOCUS = {
    BUILD_DOCTOR: "Focus on compile and type-check failures: missing names, wrong types, bad imports.",
    DATABASE: "Focus on database failures: row-level security policies, constraint violations, missing grants.",
    DEBUGGER: "Focus on runtime JavaScript exceptions and failed API calls seen in the console and network logs.",
    CODE_REVIEW: "Focus on the UI: the element the test expected is missing, renamed, hidden or rendered late.",
    PERFORMANCE: "Focus on slowness: pages or requests that exceed their timeouts.",
}


def build_system_prompt(handler_id: str) -> str:
    focus = HANDLER_FOCUS.get(handler_id, HANDLER_FOCUS[DEBUGGER])
    return REMEDIATION_SYSTEM_PROMPT.format(focus=focus)


def build_remediation_prompt(context: str, attempt: int, max_attempts: int | None = None) -> str:
    """Build the user message for a remediation call."""
    progress = f"attempt {attempt}" if max_attempts is None else f"attempt {attempt} of {max_attempts}"
    return (
        f"The test failed on {progress}.\n\n"
        f"{context}\n"
        f"Return your diagnosis as a single JSON object."
    )
