"""Tests for the resource normalizers (convenience arguments -> FHIR).

Concept — Normalization:
    Tool callers send flat values ("patientId": "123", "code": "8867-4").
    The normalizers turn them into canonical FHIR (references,
    CodeableConcepts, Annotations) and reject arguments that cannot
    describe a valid resource before anything is sent to the server.
"""

from __future__ import annotations

import pytest

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources import condition, encounter, episode_of_care, medication
from medplum_mcp.resources import medication_request, observation, organization, patient
from medplum_mcp.resources import practitioner
from medplum_mcp.resources.base import (
    CLEAR,
    annotations,
    clause,
    codeable_concept,
    identifiers,
    reference,
    reference_id,
)
from medplum_mcp.resources.general_search import build_query, missing_criteria_outcome

# --- shared helpers ---


class TestReferences:
    def test_bare_id_is_prefixed(self) -> None:
        assert reference("Patient", "123") == {"reference": "Patient/123"}

    def test_prefixed_id_is_kept(self) -> None:
        assert reference("Patient", "Patient/123") == {"reference": "Patient/123"}

    def test_reference_object_is_accepted(self) -> None:
        assert reference("Patient", {"reference": "Patient/9"}) == {"reference": "Patient/9"}

    @pytest.mark.parametrize("value", ["Practitioner/1", "Patient/", "", "   ", 42])
    def test_invalid_values_are_rejected(self, value: object) -> None:
        with pytest.raises(ValidationError):
            reference("Patient", value)

    def test_reference_id_checks_type(self) -> None:
        assert reference_id({"reference": "Patient/123"}, "Patient") == "123"
        assert reference_id({"reference": "Group/5"}, "Patient") is None
        assert reference_id(None) is None


def test_codeable_concept_promotes_string() -> None:
    concept = codeable_concept("8867-4", system="http://loinc.org", display="Heart rate")
    assert concept == {
        "coding": [{"system": "http://loinc.org", "code": "8867-4", "display": "Heart rate"}],
        "text": "Heart rate",
    }


def test_codeable_concept_requires_coding_when_asked() -> None:
    with pytest.raises(ValidationError, match="at least one coding"):
        codeable_concept({"text": "free text"}, require_coding=True)


def test_annotations_wrap_strings() -> None:
    assert annotations("Take with food") == [{"text": "Take with food"}]
    assert annotations(["a", {"text": "b"}]) == [{"text": "a"}, {"text": "b"}]


def test_identifiers_accept_several_shapes() -> None:
    assert identifiers("X1") == [{"value": "X1"}]
    assert identifiers({"system": "urn:npi", "value": "1"}) == [{"system": "urn:npi", "value": "1"}]
    with pytest.raises(ValidationError):
        identifiers({"system": "urn:npi"})


def test_clause_encodes_values() -> None:
    assert clause("name", "Mary Ann") == "name=Mary%20Ann"
    assert clause("code", "http://loinc.org|8867-4") == "code=http://loinc.org|8867-4"
    assert clause("active", True) == "active=true"


def test_clear_is_a_falsy_singleton() -> None:
    assert not CLEAR
    assert repr(CLEAR) == "CLEAR"
    assert type(CLEAR)() is CLEAR


# --- Patient / Practitioner / Organization ---


def test_patient_create_requires_birth_date() -> None:
    with pytest.raises(ValidationError, match="birthDate"):
        patient.normalize_create({"firstName": "Ada", "lastName": "Lovelace"})


def test_patient_create_rejects_unknown_gender() -> None:
    with pytest.raises(ValidationError, match="gender"):
        patient.normalize_create(
            {"firstName": "A", "lastName": "B", "birthDate": "2000-01-01", "gender": "robot"}
        )


def test_patient_search_ignores_blank_values() -> None:
    assert patient.build_search_criteria({"family": "Smith", "given": "  "}) == ["family=Smith"]


def test_practitioner_create() -> None:
    resource = practitioner.normalize_create(
        {"givenName": "Gregory", "familyName": "House", "phone": "555-0100"}
    )
    assert resource["name"] == [{"given": ["Gregory"], "family": "House"}]
    assert resource["telecom"] == [{"system": "phone", "value": "555-0100", "use": "work"}]


def test_practitioner_name_search_maps_keys() -> None:
    criteria = practitioner.build_name_search_criteria({"givenName": "Greg", "familyName": "House"})
    assert criteria == ["given=Greg", "family=House"]


def test_organization_create_defaults() -> None:
    resource = organization.normalize_create(
        {"name": "General Hospital", "typeCode": "prov", "address": {"line": "1 Main St", "city": "Springfield"}}
    )
    assert resource["active"] is True
    assert resource["type"][0]["coding"][0] == {
        "system": organization.ORGANIZATION_TYPE_SYSTEM,
        "code": "prov",
        "display": "prov",
    }
    assert resource["address"] == [{"use": "work", "line": ["1 Main St"], "city": "Springfield"}]


def test_organization_search_params() -> None:
    criteria = organization.build_search_criteria({"name": "General", "city": "Springfield"})
    assert criteria == ["name=General", "address-city=Springfield"]


# --- Encounter ---


def test_encounter_create() -> None:
    resource = encounter.normalize_create(
        {
            "patientId": "p1",
            "status": "in-progress",
            "classCode": "AMB",
            "practitionerIds": ["d1", "d2"],
            "periodStart": "2024-01-01T09:00:00Z",
        }
    )
    assert resource["class"] == {"system": encounter.ACT_CODE_SYSTEM, "code": "AMB", "display": "AMB"}
    assert resource["subject"] == {"reference": "Patient/p1"}
    assert resource["participant"] == [
        {"individual": {"reference": "Practitioner/d1"}},
        {"individual": {"reference": "Practitioner/d2"}},
    ]
    assert resource["period"] == {"start": "2024-01-01T09:00:00Z"}


def test_encounter_create_requires_class_code() -> None:
    with pytest.raises(ValidationError, match="class code"):
        encounter.normalize_create({"patientId": "p1", "status": "planned"})


def test_encounter_update_accepts_plain_class_string() -> None:
    changes = encounter.normalize_update({"class": "IMP"}, {})
    assert changes["class"]["code"] == "IMP"


def test_encounter_search() -> None:
    criteria = encounter.build_search_criteria(
        {"patientId": "p1", "typeCode": "x", "typeSystem": "http://snomed.info/sct"}
    )
    assert criteria == ["subject=Patient/p1", "type=http://snomed.info/sct|x"]


# --- Observation ---


def _observation_args(**extra: object) -> dict[str, object]:
    args: dict[str, object] = {"subjectId": "p1", "code": "8867-4", "status": "final"}
    args.update(extra)
    return args


def test_observation_create_promotes_code_and_quantity() -> None:
    resource = observation.normalize_create(
        _observation_args(codeSystem="http://loinc.org", valueQuantity=72, unit="beats/min")
    )
    assert resource["code"]["coding"][0] == {"system": "http://loinc.org", "code": "8867-4"}
    assert resource["valueQuantity"] == {"value": 72, "unit": "beats/min"}
    assert resource["subject"] == {"reference": "Patient/p1"}
    assert resource["issued"].endswith("Z")


def test_observation_create_requires_a_value() -> None:
    with pytest.raises(ValidationError, match="At least one value field"):
        observation.normalize_create(_observation_args())


def test_observation_create_rejects_two_values() -> None:
    with pytest.raises(ValidationError, match="Only one value"):
        observation.normalize_create(_observation_args(valueString="x", valueBoolean=True))


def test_observation_create_rejects_two_effectives() -> None:
    with pytest.raises(ValidationError, match="effectiveDateTime or effectivePeriod"):
        observation.normalize_create(
            _observation_args(
                valueString="x",
                effectiveDateTime="2024-01-01",
                effectivePeriod={"start": "2024-01-01"},
            )
        )


def test_observation_create_requires_subject() -> None:
    with pytest.raises(ValidationError, match="Patient reference"):
        observation.normalize_create({"code": "x", "status": "final", "valueString": "y"})


def test_observation_date_search_keeps_prefix() -> None:
    assert observation.build_search_criteria({"date": "ge2024-01-01"}) == ["date=ge2024-01-01"]


def test_observation_subject_round_trips() -> None:
    resource = observation.normalize_create(_observation_args(valueString="ok"))
    view = observation.to_convenience({**resource, "id": "o1"})
    assert view["subjectId"] == "p1"
    assert view["code"] == "8867-4"
    assert view["valueString"] == "ok"


# --- MedicationRequest / Medication ---


def test_medication_request_create_with_reference() -> None:
    resource = medication_request.normalize_create(
        {
            "status": "active",
            "intent": "order",
            "patientId": "p1",
            "practitionerId": "d1",
            "medicationReference": "m1",
            "note": "Take with food",
        }
    )
    assert resource["medicationReference"] == {"reference": "Medication/m1"}
    assert "medicationCodeableConcept" not in resource
    assert resource["requester"] == {"reference": "Practitioner/d1"}
    assert resource["note"] == [{"text": "Take with food"}]
    assert "authoredOn" in resource


def test_medication_request_requires_a_medication() -> None:
    with pytest.raises(ValidationError, match="is required"):
        medication_request.normalize_create({"status": "active", "intent": "order", "patientId": "p1"})


def test_medication_request_round_trip() -> None:
    resource = medication_request.normalize_create(
        {"status": "draft", "intent": "plan", "subjectId": "p7", "medicationCodeableConcept": "1049502"}
    )
    view = medication_request.to_convenience(resource)
    assert view["subjectId"] == "p7"
    assert view["medicationCode"] == "1049502"


def test_medication_create() -> None:
    resource = medication.normalize_create(
        {"code": "1049502", "display": "Acetaminophen 325 MG", "manufacturerId": "org1"}
    )
    assert resource["code"]["text"] == "Acetaminophen 325 MG"
    assert resource["manufacturer"] == {"reference": "Organization/org1"}


def test_medication_create_requires_code() -> None:
    with pytest.raises(ValidationError, match="Medication code"):
        medication.normalize_create({"status": "active"})


# --- EpisodeOfCare ---


def test_episode_of_care_create() -> None:
    resource = episode_of_care.normalize_create(
        {"patientId": "p1", "status": "active", "careManagerId": "d1", "teamMemberIds": ["t1"]}
    )
    assert resource["patient"] == {"reference": "Patient/p1"}
    assert resource["careManager"] == {"reference": "Practitioner/d1"}
    assert resource["team"] == [{"reference": "CareTeam/t1"}]


def test_episode_of_care_search_splits_dates() -> None:
    criteria = episode_of_care.build_search_criteria({"date": "ge2024-01-01&le2024-12-31"})
    assert criteria == ["date=ge2024-01-01", "date=le2024-12-31"]


def test_episode_of_care_search_skips_unknown_keys() -> None:
    assert episode_of_care.build_search_criteria({"bogus": "x"}) == []


# --- Condition ---


def test_condition_create_defaults_statuses() -> None:
    resource = condition.normalize_create(
        {"patientId": "p1", "code": {"coding": [{"system": "http://snomed.info/sct", "code": "44054006"}]}}
    )
    assert resource["clinicalStatus"]["coding"][0]["code"] == "active"
    assert resource["verificationStatus"]["coding"][0]["code"] == "confirmed"
    assert resource["subject"] == {"reference": "Patient/p1"}


def test_condition_rejects_unknown_clinical_status() -> None:
    with pytest.raises(ValidationError, match="clinicalStatus"):
        condition.normalize_create({"patientId": "p1", "code": "x", "clinicalStatus": "cured"})


def test_condition_rejects_two_onsets() -> None:
    with pytest.raises(ValidationError, match="onset"):
        condition.normalize_create(
            {"patientId": "p1", "code": "x", "onsetDateTime": "2020", "onsetString": "childhood"}
        )


def test_condition_search_accepts_patient_aliases() -> None:
    assert condition.build_search_criteria({"patient": "Patient/p1"}) == ["subject=Patient/p1"]


# --- general search ---


def test_build_query_repeats_list_keys() -> None:
    assert build_query({"code": ["a", "b"], "active": True}) == "code=a&code=b&active=true"


def test_missing_query_params_outcome() -> None:
    outcome = missing_criteria_outcome({"resourceType": "Patient", "queryParams": {}})
    assert outcome is not None
    assert "query parameter" in outcome["issue"][0]["diagnostics"]
    assert missing_criteria_outcome({"resourceType": "Patient", "queryParams": {"a": 1}}) is None
