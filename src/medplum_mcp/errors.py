"""Error taxonomy and result envelopes for tool calls.

Every tool call ends in one of two envelope shapes:

    {"success": true, "data": ...}
    {"success": false, "error": "...", "outcome": {...}}   # outcome optional

Failures are classified in priority order:

1. ValidationError (and AmbiguousIdError): caller input problems detected
   locally, before any network call. The message is returned as-is.
2. RepositoryOutcomeError carrying a FHIR OperationOutcome: the outcome is
   returned next to a fixed "FHIR operation failed" message.
3. Anything else: the exception text.

Handlers may also *return* an OperationOutcome instead of raising (some
searches do this for missing criteria); outcome_envelope() covers that case.
"""

from __future__ import annotations

from typing import Any

OUTCOME_ERROR_MESSAGE = "FHIR operation failed"


class ToolError(Exception):
    """Base class for failures raised inside the tool layer."""


class ValidationError(ToolError):
    """Raised when caller arguments are missing or malformed."""


class AmbiguousIdError(ValidationError):
    """Raised when a call carries more than one conflicting identifier."""


class UnknownToolError(ToolError):
    """Raised when a call names a tool that is not in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class RepositoryOutcomeError(ToolError):
    """Raised when the FHIR server rejects a request.

    Attributes:
        status_code: HTTP status code, or 0 when the request never completed.
        detail: Human-readable description (diagnostics or response body).
        outcome: The OperationOutcome returned by the server, if any.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        outcome: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.outcome = outcome
        super().__init__(f"HTTP {status_code}: {detail}")


class NotFoundError(RepositoryOutcomeError):
    """The requested resource does not exist on the server."""


def operation_outcome(
    diagnostics: str,
    code: str = "invalid",
    severity: str = "error",
) -> dict[str, Any]:
    """Build a single-issue OperationOutcome."""
    return {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": severity, "code": code, "diagnostics": diagnostics}],
    }


def outcome_issue_code(outcome: Any) -> str | None:
    """Return the code of the first issue of an OperationOutcome, if any."""
    if not isinstance(outcome, dict):
        return None
    issues = outcome.get("issue") or []
    if not issues or not isinstance(issues[0], dict):
        return None
    return issues[0].get("code")


def is_error_outcome(value: Any) -> bool:
    """True when value is an OperationOutcome reporting an error or fatal issue."""
    if not isinstance(value, dict) or value.get("resourceType") != "OperationOutcome":
        return False
    return any(
        isinstance(issue, dict) and issue.get("severity") in ("error", "fatal")
        for issue in value.get("issue") or []
    )


def success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def outcome_envelope(outcome: dict[str, Any]) -> dict[str, Any]:
    return {"success": False, "error": OUTCOME_ERROR_MESSAGE, "outcome": outcome}


def error_envelope(exc: BaseException) -> dict[str, Any]:
    """Classify an exception into a failure envelope."""
    if isinstance(exc, ValidationError):
        return {"success": False, "error": str(exc)}
    if isinstance(exc, RepositoryOutcomeError) and exc.outcome is not None:
        return outcome_envelope(exc.outcome)
    return {"success": False, "error": str(exc) or type(exc).__name__}
