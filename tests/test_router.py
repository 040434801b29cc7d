"""Tests for the tool registry and the request router.

The router is exercised end to end against the real registry with an
AsyncMock standing in for the MedplumClient: we check the call shape each
marshaling kind produces and the envelope every kind of outcome ends in.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from medplum_mcp.errors import NotFoundError, RepositoryOutcomeError
from medplum_mcp.registry import Marshaling, ToolDescriptor, ToolRegistry, build_registry
from medplum_mcp.resources import (
    condition,
    encounter,
    episode_of_care,
    medication,
    medication_request,
    observation,
    patient,
)
from medplum_mcp.router import ToolRouter

NOT_FOUND_OUTCOME = {
    "resourceType": "OperationOutcome",
    "issue": [{"severity": "error", "code": "not-found", "diagnostics": "Not found"}],
}


@pytest.fixture
def client() -> AsyncMock:
    mock = AsyncMock()
    mock.create_resource.side_effect = lambda resource: {**resource, "id": "new-id"}
    mock.update_resource.side_effect = lambda resource: resource
    mock.search_resources.return_value = []
    return mock


@pytest.fixture
def router(client: AsyncMock) -> ToolRouter:
    return ToolRouter(build_registry(), client)


# --- registry ---


class TestRegistry:
    def test_catalog_has_every_tool_once(self) -> None:
        registry = build_registry()
        names = [entry["name"] for entry in registry.catalog()]

        assert len(registry) == 38
        assert len(set(names)) == 38
        assert names[0] == "createPatient"
        assert names[-1] == "generalFhirSearch"
        assert "searchPractitionersByName" in registry
        assert "updateMedication" in registry

    def test_catalog_entries_have_schema(self) -> None:
        for entry in build_registry().catalog():
            assert set(entry) == {"name", "description", "inputSchema"}
            assert entry["inputSchema"]["type"] == "object"
            assert entry["description"]

    @pytest.mark.parametrize(
        "tool, field, allowed",
        [
            ("createPatient", "gender", patient.GENDERS),
            ("updateEncounter", "status", encounter.STATUSES),
            ("searchEncounters", "status", encounter.STATUSES),
            ("createObservation", "status", observation.STATUSES),
            ("createMedicationRequest", "intent", medication_request.INTENTS),
            ("updateMedication", "status", medication.STATUSES),
            ("createEpisodeOfCare", "status", episode_of_care.STATUSES),
            ("createCondition", "verificationStatus", tuple(condition.VERIFICATION_STATUSES)),
        ],
    )
    def test_schema_enums_match_validation(self, tool: str, field: str, allowed: tuple[str, ...]) -> None:
        schemas = {entry["name"]: entry["inputSchema"] for entry in build_registry().catalog()}
        assert schemas[tool]["properties"][field]["enum"] == list(allowed)

    def test_marshaling_kinds(self) -> None:
        registry = build_registry()

        get_patient = registry.lookup("getPatientById")
        update_request = registry.lookup("updateMedicationRequest")
        search = registry.lookup("searchEncounters")

        assert get_patient is not None and get_patient.marshaling is Marshaling.BY_ID
        assert get_patient.id_key == "patientId"
        assert update_request is not None and update_request.marshaling is Marshaling.UPDATE
        assert update_request.id_key == "medicationRequestId"
        assert search is not None and search.marshaling is Marshaling.WHOLE_OBJECT
        assert registry.lookup("noSuchTool") is None

    def test_id_key_required_for_by_id(self) -> None:
        with pytest.raises(ValueError, match="id_key"):
            ToolDescriptor("getX", "", {}, Marshaling.BY_ID, AsyncMock())

    def test_duplicate_names_rejected(self) -> None:
        descriptor = ToolDescriptor("x", "", {}, Marshaling.WHOLE_OBJECT, AsyncMock())
        with pytest.raises(ValueError, match="Duplicate"):
            ToolRegistry([descriptor, descriptor])


# --- call shapes ---


def _stub_router(marshaling: Marshaling, id_key: str | None = None) -> tuple[ToolRouter, AsyncMock]:
    handler = AsyncMock(return_value={"ok": True})
    descriptor = ToolDescriptor("stubTool", "", {"type": "object"}, marshaling, handler, id_key)
    return ToolRouter(ToolRegistry([descriptor]), AsyncMock()), handler


@pytest.mark.asyncio
async def test_by_id_passes_only_the_id() -> None:
    router, handler = _stub_router(Marshaling.BY_ID, "patientId")

    await router.dispatch("stubTool", {"patientId": "abc"})

    handler.assert_awaited_once_with("abc", client=router.client)


@pytest.mark.asyncio
async def test_by_id_without_id_passes_none() -> None:
    router, handler = _stub_router(Marshaling.BY_ID, "patientId")

    await router.dispatch("stubTool", {})

    handler.assert_awaited_once_with(None, client=router.client)


@pytest.mark.asyncio
async def test_update_passes_id_and_remaining_keys() -> None:
    router, handler = _stub_router(Marshaling.UPDATE, "patientId")

    await router.dispatch("stubTool", {"patientId": "abc", "gender": "female"})

    handler.assert_awaited_once_with("abc", {"gender": "female"}, client=router.client)


@pytest.mark.asyncio
async def test_whole_object_passes_arguments_unchanged() -> None:
    router, handler = _stub_router(Marshaling.WHOLE_OBJECT)
    arguments = {"patientId": "abc", "status": "final"}

    response = await router.dispatch("stubTool", arguments)

    handler.assert_awaited_once_with(arguments, client=router.client)
    assert response.envelope == {"success": True, "data": {"ok": True}}


@pytest.mark.asyncio
async def test_unserializable_result_still_yields_envelope() -> None:
    router, handler = _stub_router(Marshaling.WHOLE_OBJECT)
    handler.return_value = {"when": object()}

    response = await router.dispatch("stubTool", {})

    assert response.is_error is True
    assert response.envelope["success"] is False
    assert json.loads(response.text) == response.envelope


# --- dispatch ---


def _envelope(text: str) -> dict[str, Any]:
    return json.loads(text)


@pytest.mark.asyncio
async def test_create_success_envelope(router: ToolRouter, client: AsyncMock) -> None:
    response = await router.dispatch(
        "createPatient", {"firstName": "Ada", "lastName": "Lovelace", "birthDate": "1815-12-10"}
    )

    assert response.is_error is False
    assert response.envelope["success"] is True
    assert response.envelope["data"]["id"] == "new-id"
    assert _envelope(response.text) == response.envelope
    assert response.text.startswith("{\n  ")


@pytest.mark.asyncio
async def test_by_id_uses_id_key(router: ToolRouter, client: AsyncMock) -> None:
    client.read_resource.return_value = {"resourceType": "Patient", "id": "p1"}

    response = await router.dispatch("getPatientById", {"patientId": "p1"})

    client.read_resource.assert_awaited_once_with("Patient", "p1")
    assert response.envelope == {"success": True, "data": {"resourceType": "Patient", "id": "p1"}}


@pytest.mark.asyncio
async def test_by_id_accepts_generic_id(router: ToolRouter, client: AsyncMock) -> None:
    client.read_resource.return_value = {"resourceType": "Condition", "id": "c1"}

    await router.dispatch("getConditionById", {"id": "c1"})

    client.read_resource.assert_awaited_once_with("Condition", "c1")


@pytest.mark.asyncio
async def test_conflicting_ids_fail(router: ToolRouter, client: AsyncMock) -> None:
    response = await router.dispatch("getPatientById", {"patientId": "p1", "id": "p2"})

    assert response.envelope["success"] is False
    assert "Conflicting identifiers" in response.envelope["error"]
    assert response.is_error is False
    client.read_resource.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_resource_is_success_with_null(router: ToolRouter, client: AsyncMock) -> None:
    client.read_resource.side_effect = NotFoundError(404, "Not found", NOT_FOUND_OUTCOME)

    response = await router.dispatch("getObservationById", {"observationId": "o9"})

    assert response.envelope == {"success": True, "data": None}


@pytest.mark.asyncio
async def test_update_splits_id_from_patch(router: ToolRouter, client: AsyncMock) -> None:
    client.read_resource.return_value = {
        "resourceType": "Patient",
        "id": "p1",
        "name": [{"given": ["Ada"], "family": "Byron"}],
    }

    response = await router.dispatch("updatePatient", {"patientId": "p1", "lastName": "Lovelace"})

    written = client.update_resource.await_args.args[0]
    assert written["id"] == "p1"
    assert written["name"] == [{"given": ["Ada"], "family": "Lovelace"}]
    assert "patientId" not in written
    assert response.envelope["success"] is True


@pytest.mark.asyncio
async def test_update_with_only_id_fails_before_read(router: ToolRouter, client: AsyncMock) -> None:
    response = await router.dispatch("updateEncounter", {"encounterId": "e1"})

    assert response.envelope == {
        "success": False,
        "error": "Updates object cannot be empty for updating an Encounter.",
    }
    client.read_resource.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_missing_resource_reports_outcome(router: ToolRouter, client: AsyncMock) -> None:
    client.read_resource.side_effect = NotFoundError(404, "Not found", NOT_FOUND_OUTCOME)

    response = await router.dispatch("updateCondition", {"conditionId": "c1", "code": "x"})

    assert response.envelope == {
        "success": False,
        "error": "FHIR operation failed",
        "outcome": NOT_FOUND_OUTCOME,
    }


@pytest.mark.asyncio
async def test_validation_error_envelope(router: ToolRouter, client: AsyncMock) -> None:
    response = await router.dispatch("createEncounter", {"patientId": "p1", "status": "planned"})

    assert response.is_error is False
    assert response.envelope == {"success": False, "error": "Encounter class code is required."}
    client.create_resource.assert_not_awaited()


@pytest.mark.asyncio
async def test_returned_outcome_becomes_failure(router: ToolRouter, client: AsyncMock) -> None:
    response = await router.dispatch("searchMedications", {})

    assert response.envelope["success"] is False
    assert response.envelope["error"] == "FHIR operation failed"
    assert response.envelope["outcome"]["resourceType"] == "OperationOutcome"


@pytest.mark.asyncio
async def test_server_error_without_outcome(router: ToolRouter, client: AsyncMock) -> None:
    client.search_resources.side_effect = RepositoryOutcomeError(500, "Internal Server Error")

    response = await router.dispatch("searchPatients", {"family": "Smith"})

    assert response.envelope == {"success": False, "error": "HTTP 500: Internal Server Error"}


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained(router: ToolRouter, client: AsyncMock) -> None:
    client.search_resources.side_effect = RuntimeError("boom")

    response = await router.dispatch("searchPatients", {"family": "Smith"})

    assert response.envelope == {"success": False, "error": "boom"}
    assert response.is_error is False


@pytest.mark.asyncio
async def test_unknown_tool(router: ToolRouter) -> None:
    response = await router.dispatch("deletePatient", {"patientId": "p1"})

    assert response.is_error is True
    assert response.envelope == {"success": False, "error": "Unknown tool: deletePatient"}


@pytest.mark.asyncio
async def test_missing_arguments(router: ToolRouter, client: AsyncMock) -> None:
    response = await router.dispatch("searchPatients", None)

    assert response.is_error is True
    assert response.envelope == {"success": False, "error": "Arguments are required"}
    client.search_resources.assert_not_awaited()


@pytest.mark.asyncio
async def test_general_search_passes_bundle_through(router: ToolRouter, client: AsyncMock) -> None:
    bundle = {"resourceType": "Bundle", "type": "searchset", "total": 0}
    client.search.return_value = bundle

    response = await router.dispatch(
        "generalFhirSearch", {"resourceType": "Observation", "queryParams": {"code": "8867-4"}}
    )

    assert response.envelope == {"success": True, "data": bundle}
    client.search.assert_awaited_once_with("Observation", "code=8867-4")
