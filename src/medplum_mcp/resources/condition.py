"""Condition normalization.

Clinical and verification statuses are accepted as bare FHIR codes and
expanded from the code tables below. A new Condition defaults to
active/confirmed.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import (
    EmptySearch,
    ResourceFamily,
    clause,
    codeable_concept,
    codeable_concept_list,
    compact,
    first_code,
    first_present,
    has_value,
    passthrough,
    reference,
    reference_id,
    search_reference,
    set_update,
    warn_unrecognized,
)

CLINICAL_STATUS_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-clinical"
VERIFICATION_STATUS_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-ver-status"
CATEGORY_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-category"

CLINICAL_STATUSES = {
    "active": "Active",
    "recurrence": "Recurrence",
    "relapse": "Relapse",
    "inactive": "Inactive",
    "remission": "Remission",
    "resolved": "Resolved",
}

VERIFICATION_STATUSES = {
    "unconfirmed": "Unconfirmed",
    "provisional": "Provisional",
    "differential": "Differential",
    "confirmed": "Confirmed",
    "refuted": "Refuted",
    "entered-in-error": "Entered in Error",
}

ONSET_FIELDS = ("onsetDateTime", "onsetAge", "onsetPeriod", "onsetRange", "onsetString")

SEARCH_KEYS = ("patientId", "subject", "patient", "category", "clinical-status", "code", "asserter.identifier")


def _status(value: Any, table: Mapping[str, str], system: str, label: str) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if value not in table:
        raise ValidationError(
            f"Invalid {label} '{value}'. Expected one of: {', '.join(table)}."
        )
    return {"coding": [{"system": system, "code": value, "display": table[value]}]}


def clinical_status(value: Any) -> dict[str, Any]:
    return _status(value, CLINICAL_STATUSES, CLINICAL_STATUS_SYSTEM, "clinicalStatus")


def verification_status(value: Any) -> dict[str, Any]:
    return _status(value, VERIFICATION_STATUSES, VERIFICATION_STATUS_SYSTEM, "verificationStatus")


def _category(value: Any) -> list[dict[str, Any]]:
    return codeable_concept_list(value, system=CATEGORY_SYSTEM, label="category")


def _code(value: Any) -> dict[str, Any]:
    return codeable_concept(value, require_coding=True, label="Condition code")


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    subject = first_present(args, "patientId", "subjectId", "subject")
    if subject is None:
        raise ValidationError("Patient subject reference is required.")
    if args.get("code") is None:
        raise ValidationError("Condition code with at least one coding is required.")

    onsets = [key for key in ONSET_FIELDS if args.get(key) is not None]
    if len(onsets) > 1:
        raise ValidationError(f"Only one onset[x] field may be given; got {', '.join(onsets)}.")

    return compact(
        {
            "resourceType": "Condition",
            "subject": reference("Patient", subject),
            "code": _code(args["code"]),
            "clinicalStatus": clinical_status(args.get("clinicalStatus") or "active"),
            "verificationStatus": verification_status(args.get("verificationStatus") or "confirmed"),
            "category": _category(args["category"]) if args.get("category") else None,
            "encounter": (
                reference("Encounter", args["encounterId"]) if args.get("encounterId") else None
            ),
            **{key: args[key] for key in onsets},
            "recordedDate": args.get("recordedDate"),
            "asserter": (
                reference("Practitioner", args["asserterId"]) if args.get("asserterId") else None
            ),
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    set_update(patch, changes, "clinicalStatus", convert=clinical_status)
    set_update(patch, changes, "verificationStatus", convert=verification_status)
    set_update(patch, changes, "code", convert=_code)
    set_update(patch, changes, "category", convert=_category)
    for key in ("patientId", "subjectId"):
        set_update(patch, changes, key, "subject", lambda value: reference("Patient", value))
    set_update(patch, changes, "encounterId", "encounter", lambda value: reference("Encounter", value))
    set_update(patch, changes, "asserterId", "asserter", lambda value: reference("Practitioner", value))

    passthrough(patch, changes, ("patientId", "subjectId", "encounterId", "asserterId"))
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Condition", args, SEARCH_KEYS)
    criteria = []
    patient = first_present(args, "patientId", "subject", "patient")
    if has_value(patient):
        criteria.append(clause("subject", search_reference("Patient", patient)))
    for key in ("category", "clinical-status", "code", "asserter.identifier"):
        if has_value(args.get(key)):
            criteria.append(clause(key, args[key]))
    return criteria


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    view = {
        "id": resource.get("id"),
        "patientId": reference_id(resource.get("subject"), "Patient"),
        "code": first_code(resource.get("code")),
        "clinicalStatus": first_code(resource.get("clinicalStatus")),
        "verificationStatus": first_code(resource.get("verificationStatus")),
        "encounterId": reference_id(resource.get("encounter"), "Encounter"),
        "recordedDate": resource.get("recordedDate"),
    }
    for key in ONSET_FIELDS:
        if key in resource:
            view[key] = resource[key]
    return compact(view)


FAMILY = ResourceFamily(
    resource_type="Condition",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.ERROR_OUTCOME,
    exclusive_groups=(ONSET_FIELDS,),
    empty_search_message=(
        "At least one search criterion (subject, patient, category, clinical-status, "
        "or code) must be provided."
    ),
)
