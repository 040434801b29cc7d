"""JSON Schemas for the tool catalog.

Each entry is (description, inputSchema). The schemas describe the
convenience arguments a caller may send; the resource normalizers are the
authority on what is actually required, so ``required`` here is advisory.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from medplum_mcp.resources import condition, encounter, episode_of_care, medication
from medplum_mcp.resources import medication_request, observation, patient

GENDERS = patient.GENDERS
ENCOUNTER_STATUSES = encounter.STATUSES
OBSERVATION_STATUSES = observation.STATUSES
MEDICATION_REQUEST_STATUSES = medication_request.STATUSES
MEDICATION_REQUEST_INTENTS = medication_request.INTENTS
MEDICATION_STATUSES = medication.STATUSES
EPISODE_STATUSES = episode_of_care.STATUSES
CLINICAL_STATUSES = tuple(condition.CLINICAL_STATUSES)
VERIFICATION_STATUSES = tuple(condition.VERIFICATION_STATUSES)


def string(description: str, enum: Iterable[str] | None = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string", "description": description}
    if enum:
        prop["enum"] = list(enum)
    return prop


def number(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


def boolean(description: str) -> dict[str, Any]:
    return {"type": "boolean", "description": description}


def string_list(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


def any_object(description: str) -> dict[str, Any]:
    return {"type": "object", "description": description}


def object_list(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "object"}, "description": description}


def code_or_concept(description: str) -> dict[str, Any]:
    return {
        "oneOf": [
            {"type": "string"},
            {
                "type": "object",
                "properties": {
                    "coding": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "system": {"type": "string"},
                                "code": {"type": "string"},
                                "display": {"type": "string"},
                            },
                        },
                    },
                    "text": {"type": "string"},
                },
            },
        ],
        "description": description,
    }


def schema(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


def by_id(key: str, what: str) -> dict[str, Any]:
    return schema({key: string(f"The unique ID of the {what} to retrieve.")}, [key])


def update(key: str, what: str, properties: dict[str, Any]) -> dict[str, Any]:
    props = {key: string(f"The unique ID of the {what} to update.")}
    props.update(properties)
    return schema(props, [key])


CLEARABLE = " Send null to remove the field."

PATIENT_FIELDS = {
    "firstName": string("The patient's first name."),
    "lastName": string("The patient's last name."),
    "birthDate": string("The patient's birth date in YYYY-MM-DD format."),
    "gender": string("The patient's gender.", GENDERS),
    "phone": string("Home phone number. Optional."),
    "email": string("Email address. Optional."),
}

PRACTITIONER_FIELDS = {
    "givenName": string("The practitioner's given (first) name."),
    "familyName": string("The practitioner's family (last) name."),
    "gender": string("The practitioner's gender. Optional.", GENDERS),
    "identifier": any_object("Identifier such as an NPI: {system, value}. Optional."),
    "phone": string("Work phone number. Optional."),
    "email": string("Work email address. Optional."),
    "address": any_object("Postal address {line, city, state, postalCode, country}. Optional."),
    "active": boolean("Whether the practitioner record is active."),
}

ORGANIZATION_FIELDS = {
    "name": string("The official name of the organization."),
    "alias": string_list("Alternative names for the organization. Optional."),
    "typeCode": string("Organization type code (e.g. prov, dept). Optional."),
    "typeSystem": string("Code system for typeCode. Defaults to the HL7 organization-type system."),
    "typeDisplay": string("Display text for typeCode. Optional."),
    "phone": string("Work phone number. Optional."),
    "email": string("Work email address. Optional."),
    "address": any_object("Postal address {use, line, city, state, postalCode, country}. Optional."),
    "identifierValue": string("Business identifier value. Optional."),
    "identifierSystem": string("Business identifier system. Optional."),
}

ENCOUNTER_FIELDS = {
    "patientId": string("The ID of the patient for this encounter."),
    "status": string("The status of the encounter.", ENCOUNTER_STATUSES),
    "classCode": string(
        "The encounter class (HL7 v3 ActCode, e.g. AMB ambulatory, IMP inpatient, EMER emergency)."
    ),
    "practitionerIds": string_list("IDs of practitioners participating in the encounter. Optional."),
    "practitionerId": string("ID of a single participating practitioner. Optional."),
    "organizationId": string("ID of the organization providing the encounter. Optional."),
    "typeCode": string("Encounter type code. Optional."),
    "typeSystem": string("Code system for typeCode. Optional."),
    "typeDisplay": string("Display text for typeCode. Optional."),
    "periodStart": string("Start of the encounter (ISO 8601). Optional."),
    "periodEnd": string("End of the encounter (ISO 8601). Optional."),
    "reasonCode": string("Reason code for the encounter. Optional."),
    "reasonSystem": string("Code system for reasonCode. Optional."),
    "reasonDisplay": string("Display text for reasonCode. Optional."),
    "identifierValue": string("Business identifier value. Optional."),
    "identifierSystem": string("Business identifier system. Optional."),
}

OBSERVATION_VALUES = {
    "valueQuantity": {
        "oneOf": [{"type": "number"}, {"type": "object"}],
        "description": "Numeric value, or a Quantity {value, unit, system, code}.",
    },
    "unit": string("Unit for a numeric valueQuantity. Optional."),
    "valueString": string("Text value."),
    "valueBoolean": boolean("Boolean value."),
    "valueInteger": {"type": "integer", "description": "Integer value."},
    "valueCodeableConcept": code_or_concept("Coded value."),
    "valueRange": any_object("Range value {low, high}."),
    "valueRatio": any_object("Ratio value {numerator, denominator}."),
    "valueSampledData": any_object("SampledData value."),
    "valueTime": string("Time value (hh:mm:ss)."),
    "valueDateTime": string("DateTime value (ISO 8601)."),
    "valuePeriod": any_object("Period value {start, end}."),
}

OBSERVATION_FIELDS = {
    "patientId": string("The ID of the patient this observation is for."),
    "subjectId": string("Alias of patientId."),
    "code": code_or_concept("What was observed: a LOINC/SNOMED code string or a CodeableConcept."),
    "codeSystem": string("Code system for a string code (e.g. http://loinc.org). Optional."),
    "codeDisplay": string("Display text for a string code. Optional."),
    "status": string("The status of the observation.", OBSERVATION_STATUSES),
    "encounterId": string("The encounter this observation belongs to. Optional."),
    "performerIds": string_list("IDs of the practitioners who made the observation. Optional."),
    "effectiveDateTime": string("When the observation was made (ISO 8601). Optional."),
    "effectivePeriod": any_object("Period over which the observation was made. Optional."),
    "issued": string("When the result was issued. Defaults to now."),
    **OBSERVATION_VALUES,
    "bodySite": code_or_concept("Body site. Optional."),
    "method": code_or_concept("Method used. Optional."),
    "interpretation": object_list("Interpretation CodeableConcepts. Optional."),
    "referenceRange": object_list("Reference ranges. Optional."),
    "component": object_list("Component observations (e.g. systolic/diastolic). Optional."),
    "note": string("Free-text comment. Optional."),
    "identifier": any_object("Business identifier {system, value}. Optional."),
}

MEDICATION_REQUEST_FIELDS = {
    "patientId": string("The ID of the patient this prescription is for."),
    "subjectId": string("Alias of patientId."),
    "medicationReference": string("ID of the Medication being prescribed."),
    "medicationCodeableConcept": code_or_concept(
        "The medication as a code (use instead of medicationReference)."
    ),
    "practitionerId": string("The ID of the prescribing practitioner."),
    "requesterId": string("Alias of practitionerId."),
    "status": string("The status of the medication request.", MEDICATION_REQUEST_STATUSES),
    "intent": string("The intent of the medication request.", MEDICATION_REQUEST_INTENTS),
    "encounterId": string("The encounter during which it was prescribed. Optional."),
    "authoredOn": string("When the request was written. Defaults to now."),
    "dosageInstruction": object_list("FHIR Dosage instructions. Optional."),
    "note": string("Free-text note. Optional."),
    "identifier": any_object("Business identifier {system, value}. Optional."),
}

MEDICATION_FIELDS = {
    "code": code_or_concept("The medication code (e.g. RxNorm) or a CodeableConcept."),
    "codeSystem": string("Code system for a string code. Optional."),
    "display": string("Display name of the medication. Optional."),
    "status": string("Medication status. Optional.", MEDICATION_STATUSES),
    "form": code_or_concept("Dose form (e.g. tablet, capsule). Optional."),
    "manufacturerId": string("ID of the manufacturing Organization. Optional."),
    "identifier": any_object("Business identifier {system, value}. Optional."),
}

EPISODE_FIELDS = {
    "patientId": string("The ID of the patient this episode of care is for."),
    "status": string("The status of the episode of care.", EPISODE_STATUSES),
    "managingOrganizationId": string("The ID of the managing organization. Optional."),
    "careManagerId": string("The ID of the care manager (Practitioner). Optional."),
    "type": code_or_concept("Episode type. Optional."),
    "periodStart": string("Start of the episode (ISO 8601). Optional."),
    "periodEnd": string("End of the episode (ISO 8601). Optional."),
    "identifier": any_object("Business identifier {system, value}. Optional."),
}

CONDITION_FIELDS = {
    "patientId": string("The ID of the patient who has the condition."),
    "code": code_or_concept("The condition code, with at least one coding."),
    "clinicalStatus": string("Clinical status. Defaults to active.", CLINICAL_STATUSES),
    "verificationStatus": string(
        "Verification status. Defaults to confirmed.", VERIFICATION_STATUSES
    ),
    "category": code_or_concept("Category, e.g. problem-list-item or encounter-diagnosis. Optional."),
    "encounterId": string("The encounter in which the condition was recorded. Optional."),
    "onsetDateTime": string("Onset date/time. Optional."),
    "onsetAge": any_object("Onset age. Optional."),
    "onsetPeriod": any_object("Onset period. Optional."),
    "onsetRange": any_object("Onset range. Optional."),
    "onsetString": string("Onset description (e.g. 'about 3 years ago'). Optional."),
    "recordedDate": string("When the condition was recorded (YYYY-MM-DD). Optional."),
    "asserterId": string("ID of the practitioner asserting the condition. Optional."),
}


def _clearable(fields: dict[str, Any], *skip: str) -> dict[str, Any]:
    result = {}
    for key, prop in fields.items():
        if key in skip:
            continue
        prop = dict(prop)
        prop["description"] = prop["description"] + CLEARABLE
        result[key] = prop
    return result


TOOL_SCHEMAS: dict[str, tuple[str, dict[str, Any]]] = {
    # Patient
    "createPatient": (
        "Creates a new patient resource. Requires first name, last name and birth date.",
        schema(PATIENT_FIELDS, ["firstName", "lastName", "birthDate"]),
    ),
    "getPatientById": (
        "Retrieves a patient resource by their unique ID.",
        by_id("patientId", "patient"),
    ),
    "updatePatient": (
        "Updates an existing patient's information. Requires the patient's ID and the fields to update.",
        update("patientId", "patient", _clearable(PATIENT_FIELDS)),
    ),
    "searchPatients": (
        "Searches for patients based on criteria like name or birth date.",
        schema(
            {
                "name": string("Any part of the patient's name."),
                "given": string("The patient's given (first) name."),
                "family": string("The patient's family (last) name."),
                "birthdate": string("The patient's birth date in YYYY-MM-DD format."),
                "gender": string("The patient's gender.", GENDERS),
                "identifier": string("A patient identifier (value or system|value)."),
                "email": string("Email address."),
                "phone": string("Phone number."),
            }
        ),
    ),
    # Practitioner
    "searchPractitionersByName": (
        "Searches for medical practitioners based on their given name, family name, or a general name string.",
        schema(
            {
                "givenName": string("The practitioner's given (first) name."),
                "familyName": string("The practitioner's family (last) name."),
                "name": string("A general name search string for the practitioner."),
            }
        ),
    ),
    "createPractitioner": (
        "Creates a new medical practitioner. Requires given name and family name.",
        schema(PRACTITIONER_FIELDS, ["givenName", "familyName"]),
    ),
    "getPractitionerById": (
        "Retrieves a practitioner resource by their unique ID.",
        by_id("practitionerId", "practitioner"),
    ),
    "updatePractitioner": (
        "Updates an existing practitioner's information. Requires the practitioner's ID and the fields to update.",
        update("practitionerId", "practitioner", _clearable(PRACTITIONER_FIELDS)),
    ),
    "searchPractitioners": (
        "Searches for practitioners based on various criteria like name, specialty, or identifier.",
        schema(
            {
                "name": string("A general name search string."),
                "given": string("The practitioner's given (first) name."),
                "family": string("The practitioner's family (last) name."),
                "specialty": string("The practitioner's specialty (e.g., cardiology)."),
                "identifier": string("An identifier for the practitioner (e.g., NPI value)."),
            }
        ),
    ),
    # Organization
    "createOrganization": (
        "Creates a new organization (e.g., hospital, clinic). Requires organization name.",
        schema(ORGANIZATION_FIELDS, ["name"]),
    ),
    "getOrganizationById": (
        "Retrieves an organization by its unique ID.",
        by_id("organizationId", "organization"),
    ),
    "updateOrganization": (
        "Updates an existing organization. Requires the organization ID and the fields to update.",
        update("organizationId", "organization", _clearable(ORGANIZATION_FIELDS)),
    ),
    "searchOrganizations": (
        "Searches for organizations based on criteria like name or address. Provide at least one criterion.",
        schema(
            {
                "name": string("The name of the organization."),
                "identifier": string("An organization identifier."),
                "type": string("Organization type (code or system|code)."),
                "active": boolean("Only active (true) or inactive (false) organizations."),
                "address": string("Any part of the organization's address."),
                "city": string("Address city."),
                "state": string("Address state."),
                "postalCode": string("Address postal code."),
                "country": string("Address country."),
            }
        ),
    ),
    # Encounter
    "createEncounter": (
        "Creates a new encounter (patient visit). Requires patient ID, status and class code.",
        schema(ENCOUNTER_FIELDS, ["patientId", "status", "classCode"]),
    ),
    "getEncounterById": (
        "Retrieves an encounter by its unique ID.",
        by_id("encounterId", "encounter"),
    ),
    "updateEncounter": (
        "Updates an existing encounter. Requires the encounter ID and the fields to update.",
        update("encounterId", "encounter", _clearable(ENCOUNTER_FIELDS)),
    ),
    "searchEncounters": (
        "Searches for encounters based on criteria like patient ID or status.",
        schema(
            {
                "patientId": string("The patient ID to search encounters for."),
                "practitionerId": string("The practitioner ID to search encounters for."),
                "organizationId": string("The service provider organization ID."),
                "status": string("The encounter status to filter by.", ENCOUNTER_STATUSES),
                "classCode": string("The encounter class code."),
                "typeCode": string("The encounter type code."),
                "date": string("Encounter date, with optional prefix (e.g. ge2024-01-01)."),
                "identifier": string("An encounter identifier."),
            }
        ),
    ),
    # Observation
    "createObservation": (
        "Creates a new observation (lab result, vital sign, etc.). Requires patient ID, code, status and one value.",
        schema(OBSERVATION_FIELDS, ["patientId", "code", "status"]),
    ),
    "getObservationById": (
        "Retrieves an observation by its unique ID.",
        by_id("observationId", "observation"),
    ),
    "updateObservation": (
        "Updates an existing observation. Requires the observation ID and the fields to update. "
        "Setting a value field replaces any other value field.",
        update("observationId", "observation", _clearable(OBSERVATION_FIELDS, "subjectId")),
    ),
    "searchObservations": (
        "Searches for observations based on criteria like patient ID or code.",
        schema(
            {
                "patientId": string("The patient ID to search observations for."),
                "code": string("The observation code to filter by."),
                "codeSystem": string("Code system for the code."),
                "encounterId": string("The encounter ID to search observations for."),
                "date": string("Effective date; 'eq' is assumed without a prefix."),
                "status": string("The observation status to filter by.", OBSERVATION_STATUSES),
                "performer": string("Performer reference (e.g. Practitioner/123)."),
                "identifier": string("An observation identifier."),
            }
        ),
    ),
    # MedicationRequest
    "createMedicationRequest": (
        "Creates a new medication request (prescription). Requires patient ID, medication, status and intent.",
        schema(MEDICATION_REQUEST_FIELDS, ["patientId", "status", "intent"]),
    ),
    "getMedicationRequestById": (
        "Retrieves a medication request by its unique ID.",
        by_id("medicationRequestId", "medication request"),
    ),
    "updateMedicationRequest": (
        "Updates an existing medication request. Requires the medication request ID and fields to update.",
        update(
            "medicationRequestId",
            "medication request",
            _clearable(MEDICATION_REQUEST_FIELDS, "subjectId", "requesterId"),
        ),
    ),
    "searchMedicationRequests": (
        "Searches for medication requests based on criteria like patient ID or medication.",
        schema(
            {
                "patientId": string("The patient ID to search medication requests for."),
                "medicationReference": string("The Medication ID to filter by."),
                "practitionerId": string("The prescribing practitioner ID."),
                "status": string("The status to filter by.", MEDICATION_REQUEST_STATUSES),
                "intent": string("The intent to filter by.", MEDICATION_REQUEST_INTENTS),
                "code": string("Medication code."),
                "codeSystem": string("Code system for the medication code."),
                "authoredon": string("Authored date, with optional prefix."),
                "identifier": string("A medication request identifier."),
            }
        ),
    ),
    # Medication
    "createMedication": (
        "Creates a new medication resource. Requires a medication code.",
        schema(MEDICATION_FIELDS, ["code"]),
    ),
    "getMedicationById": (
        "Retrieves a medication by its unique ID.",
        by_id("medicationId", "medication"),
    ),
    "updateMedication": (
        "Updates an existing medication. Requires the medication ID and the fields to update.",
        update("medicationId", "medication", _clearable(MEDICATION_FIELDS)),
    ),
    "searchMedications": (
        "Searches for medications by code, identifier or status. Provide at least one criterion.",
        schema(
            {
                "code": string("The medication code (code or system|code)."),
                "identifier": string("A medication identifier."),
                "status": string("The medication status.", MEDICATION_STATUSES),
            }
        ),
    ),
    # EpisodeOfCare
    "createEpisodeOfCare": (
        "Creates a new episode of care for a patient. Requires patient ID and status.",
        schema(EPISODE_FIELDS, ["patientId", "status"]),
    ),
    "getEpisodeOfCareById": (
        "Retrieves an episode of care by its unique ID.",
        by_id("episodeOfCareId", "episode of care"),
    ),
    "updateEpisodeOfCare": (
        "Updates an existing episode of care. Requires the episode ID and fields to update.",
        update("episodeOfCareId", "episode of care", _clearable(EPISODE_FIELDS)),
    ),
    "searchEpisodesOfCare": (
        "Searches for episodes of care based on criteria like patient ID or status. Provide at least one criterion.",
        schema(
            {
                "patientId": string("The patient ID to search episodes for."),
                "status": string("The episode status to filter by.", EPISODE_STATUSES),
                "managingOrganizationId": string("The managing organization ID."),
                "careManagerId": string("The care manager (Practitioner) ID."),
                "type": string("Episode type (code or system|code)."),
                "identifier": string("An episode identifier."),
                "date": {
                    "oneOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}],
                    "description": "Period date criteria, e.g. ['ge2024-01-01', 'le2024-12-31'].",
                },
            }
        ),
    ),
    # Condition
    "createCondition": (
        "Creates a new condition or diagnosis for a patient. Requires a patient ID and a condition code.",
        schema(CONDITION_FIELDS, ["patientId", "code"]),
    ),
    "getConditionById": (
        "Retrieves a condition resource by its unique ID.",
        by_id("conditionId", "condition"),
    ),
    "updateCondition": (
        "Updates an existing condition. Requires the condition ID and at least one field to update.",
        update("conditionId", "condition", _clearable(CONDITION_FIELDS)),
    ),
    "searchConditions": (
        "Searches for conditions based on patient and other criteria. Provide at least one criterion.",
        schema(
            {
                "patientId": string("The ID of the patient whose conditions are being searched."),
                "code": string('A code to filter by, e.g. "http://snomed.info/sct|44054006".'),
                "clinical-status": string("Filter by clinical status.", CLINICAL_STATUSES),
                "category": string('Filter by category, e.g. "problem-list-item".'),
            }
        ),
    ),
    # General
    "generalFhirSearch": (
        "Performs a generic FHIR search operation on any resource type with custom query parameters.",
        schema(
            {
                "resourceType": string(
                    "The FHIR resource type to search for (e.g., 'Patient', 'Observation')."
                ),
                "queryParams": {
                    "type": "object",
                    "description": (
                        "FHIR search parameters mapped to their values. List values repeat "
                        "the parameter; _id lists are comma-joined."
                    ),
                    "additionalProperties": {
                        "oneOf": [
                            {"type": "string"},
                            {"type": "number"},
                            {"type": "boolean"},
                            {"type": "array", "items": {"type": "string"}},
                        ]
                    },
                },
            },
            ["resourceType", "queryParams"],
        ),
    ),
}
