"""MedicationRequest normalization.

The prescribed medication is either a CodeableConcept or a reference to a
Medication resource (given as a bare id), never both.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import (
    EmptySearch,
    ResourceFamily,
    annotations,
    check_enum,
    clause,
    codeable_concept,
    compact,
    first_code,
    first_present,
    has_value,
    identifiers,
    now_iso,
    passthrough,
    reference,
    reference_id,
    require,
    search_reference,
    set_update,
    warn_unrecognized,
)

STATUSES = (
    "active",
    "on-hold",
    "cancelled",
    "completed",
    "entered-in-error",
    "stopped",
    "draft",
    "unknown",
)

INTENTS = (
    "proposal",
    "plan",
    "order",
    "original-order",
    "reflex-order",
    "filler-order",
    "instance-order",
    "option",
)

MEDICATION_FIELDS = ("medicationCodeableConcept", "medicationReference")

SEARCH_KEYS = (
    "patientId",
    "status",
    "intent",
    "code",
    "codeSystem",
    "authoredon",
    "requester",
    "practitionerId",
    "medicationReference",
    "identifier",
    "_lastUpdated",
)


def _medication_concept(value: Any) -> dict[str, Any]:
    return codeable_concept(value, label="medicationCodeableConcept")


def _medication_reference(value: Any) -> dict[str, str]:
    return reference("Medication", value)


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    status = require(args, "status", "MedicationRequest status is required.")
    intent = require(args, "intent", "MedicationRequest intent is required.")
    check_enum(status, STATUSES, "medication request status")
    check_enum(intent, INTENTS, "medication request intent")

    concept = args.get("medicationCodeableConcept")
    med_ref = args.get("medicationReference")
    if concept is not None and med_ref is not None:
        raise ValidationError(
            "Provide either medicationCodeableConcept or medicationReference, not both."
        )
    if concept is None and med_ref is None:
        raise ValidationError(
            "Medication (medicationCodeableConcept or medicationReference) is required."
        )

    subject = first_present(args, "subjectId", "patientId")
    if subject is None:
        raise ValidationError("Patient subject (subjectId or patientId) is required.")
    requester = first_present(args, "requesterId", "practitionerId")

    return compact(
        {
            "resourceType": "MedicationRequest",
            "status": status,
            "intent": intent,
            "medicationCodeableConcept": _medication_concept(concept) if concept is not None else None,
            "medicationReference": _medication_reference(med_ref) if med_ref is not None else None,
            "subject": reference("Patient", subject),
            "encounter": (
                reference("Encounter", args["encounterId"]) if args.get("encounterId") else None
            ),
            "authoredOn": args.get("authoredOn") or now_iso(),
            "requester": reference("Practitioner", requester) if requester else None,
            "dosageInstruction": args.get("dosageInstruction"),
            "note": annotations(args["note"]) if args.get("note") else None,
            "identifier": identifiers(args["identifier"]) if args.get("identifier") else None,
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "status" in patch:
        check_enum(patch["status"], STATUSES, "medication request status")
    if "intent" in patch:
        check_enum(patch["intent"], INTENTS, "medication request intent")

    set_update(patch, changes, "medicationCodeableConcept", convert=_medication_concept)
    set_update(patch, changes, "medicationReference", convert=_medication_reference)
    for key in ("subjectId", "patientId"):
        set_update(patch, changes, key, "subject", lambda value: reference("Patient", value))
    set_update(patch, changes, "encounterId", "encounter", lambda value: reference("Encounter", value))
    for key in ("requesterId", "practitionerId"):
        set_update(patch, changes, key, "requester", lambda value: reference("Practitioner", value))
    set_update(patch, changes, "note", convert=annotations)
    set_update(patch, changes, "identifier", convert=identifiers)

    passthrough(
        patch,
        changes,
        ("subjectId", "patientId", "encounterId", "requesterId", "practitionerId"),
    )
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("MedicationRequest", args, SEARCH_KEYS)
    criteria = []
    if has_value(args.get("patientId")):
        criteria.append(clause("patient", search_reference("Patient", args["patientId"])))
    for key in ("status", "intent"):
        if has_value(args.get(key)):
            criteria.append(clause(key, args[key]))
    if has_value(args.get("code")):
        code = args["code"]
        if has_value(args.get("codeSystem")):
            code = f"{args['codeSystem']}|{code}"
        criteria.append(clause("code", code))
    if has_value(args.get("medicationReference")):
        criteria.append(
            clause("medication", search_reference("Medication", args["medicationReference"]))
        )
    if has_value(args.get("authoredon")):
        criteria.append(clause("authoredon", args["authoredon"]))
    if has_value(args.get("practitionerId")):
        criteria.append(clause("requester", search_reference("Practitioner", args["practitionerId"])))
    elif has_value(args.get("requester")):
        criteria.append(clause("requester", args["requester"]))
    for key in ("identifier", "_lastUpdated"):
        if has_value(args.get(key)):
            criteria.append(clause(key, args[key]))
    return criteria


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    return compact(
        {
            "id": resource.get("id"),
            "status": resource.get("status"),
            "intent": resource.get("intent"),
            "medicationCode": first_code(resource.get("medicationCodeableConcept")),
            "medicationReference": reference_id(resource.get("medicationReference"), "Medication"),
            "subjectId": reference_id(resource.get("subject"), "Patient"),
            "encounterId": reference_id(resource.get("encounter"), "Encounter"),
            "requesterId": reference_id(resource.get("requester"), "Practitioner"),
            "authoredOn": resource.get("authoredOn"),
        }
    )


FAMILY = ResourceFamily(
    resource_type="MedicationRequest",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.UNFILTERED_IF_NO_ARGS,
    exclusive_groups=(MEDICATION_FIELDS,),
    empty_search_message="MedicationRequest search called with no specific criteria.",
)
