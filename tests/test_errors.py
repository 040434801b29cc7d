"""Tests for the error taxonomy and the result envelopes."""

from medplum_mcp.errors import (
    AmbiguousIdError,
    NotFoundError,
    RepositoryOutcomeError,
    UnknownToolError,
    ValidationError,
    error_envelope,
    is_error_outcome,
    operation_outcome,
    outcome_issue_code,
    success_envelope,
)


def test_operation_outcome_shape() -> None:
    outcome = operation_outcome("Missing code")
    assert outcome == {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": "error", "code": "invalid", "diagnostics": "Missing code"}],
    }
    assert outcome_issue_code(outcome) == "invalid"
    assert outcome_issue_code({"resourceType": "OperationOutcome"}) is None


def test_is_error_outcome() -> None:
    assert is_error_outcome(operation_outcome("x"))
    assert is_error_outcome(operation_outcome("x", severity="fatal"))
    assert not is_error_outcome(operation_outcome("x", code="informational", severity="information"))
    assert not is_error_outcome({"resourceType": "Patient"})
    assert not is_error_outcome([])


def test_success_envelope() -> None:
    assert success_envelope(None) == {"success": True, "data": None}


def test_validation_message_is_returned_verbatim() -> None:
    assert error_envelope(ValidationError("Patient ID is required.")) == {
        "success": False,
        "error": "Patient ID is required.",
    }
    assert error_envelope(AmbiguousIdError("Conflicting identifiers"))["error"] == "Conflicting identifiers"


def test_outcome_takes_priority_over_message() -> None:
    outcome = operation_outcome("Not found", code="not-found")
    envelope = error_envelope(NotFoundError(404, "Not found", outcome))
    assert envelope == {"success": False, "error": "FHIR operation failed", "outcome": outcome}


def test_repository_error_without_outcome() -> None:
    exc = RepositoryOutcomeError(502, "Bad Gateway")
    assert exc.status_code == 502
    assert error_envelope(exc) == {"success": False, "error": "HTTP 502: Bad Gateway"}


def test_empty_exception_message_falls_back_to_type_name() -> None:
    assert error_envelope(KeyError()) == {"success": False, "error": "KeyError"}


def test_unknown_tool_message() -> None:
    assert str(UnknownToolError("deletePatient")) == "Unknown tool: deletePatient"
