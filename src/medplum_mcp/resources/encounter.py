"""Encounter normalization.

The class code is a bare v3 ActCode (AMB, IMP, EMER, ...); it is wrapped in
a Coding on create and on update, where a plain string ``class`` is
accepted as well.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medplum_mcp.resources.base import (
    CLEAR,
    EmptySearch,
    ResourceFamily,
    amend_coding,
    check_enum,
    clause,
    compact,
    has_value,
    identifier_update,
    merge_period,
    passthrough,
    reference,
    reference_id,
    require,
    search_reference,
    set_update,
    warn_unrecognized,
)

ACT_CODE_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-ActCode"

STATUSES = (
    "planned",
    "arrived",
    "triaged",
    "in-progress",
    "onleave",
    "finished",
    "cancelled",
    "entered-in-error",
    "unknown",
)

SEARCH_KEYS = (
    "patientId",
    "subject",
    "practitionerId",
    "participant",
    "organizationId",
    "status",
    "classCode",
    "typeCode",
    "typeSystem",
    "date",
    "identifier",
    "_lastUpdated",
)


def encounter_class(code: str) -> dict[str, str]:
    return {"system": ACT_CODE_SYSTEM, "code": code, "display": code}


def _coded(code: str, system: str | None, display: str | None) -> list[dict[str, Any]]:
    coding = compact({"system": system, "code": code, "display": display})
    return [{"coding": [coding], "text": display or code}]


def _participants(args: Mapping[str, Any]) -> list[dict[str, Any]] | None:
    ids = args.get("practitionerIds")
    if ids is None and args.get("practitionerId"):
        ids = [args["practitionerId"]]
    if isinstance(ids, str):
        ids = [ids]
    if not ids:
        return None
    return [{"individual": reference("Practitioner", value)} for value in ids]


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    patient_id = require(args, "patientId", "Patient ID is required to create an encounter.")
    status = require(args, "status", "Encounter status is required.")
    class_code = require(args, "classCode", "Encounter class code is required.")
    check_enum(status, STATUSES, "encounter status")

    period = compact({"start": args.get("periodStart"), "end": args.get("periodEnd")})
    identifier = (
        [compact({"system": args.get("identifierSystem"), "value": args["identifierValue"]})]
        if args.get("identifierValue")
        else None
    )

    return compact(
        {
            "resourceType": "Encounter",
            "status": status,
            "class": encounter_class(class_code),
            "subject": reference("Patient", patient_id),
            "participant": _participants(args),
            "serviceProvider": (
                reference("Organization", args["organizationId"])
                if args.get("organizationId")
                else None
            ),
            "type": (
                _coded(args["typeCode"], args.get("typeSystem"), args.get("typeDisplay"))
                if args.get("typeCode")
                else None
            ),
            "period": period or None,
            "reasonCode": (
                _coded(args["reasonCode"], args.get("reasonSystem"), args.get("reasonDisplay"))
                if args.get("reasonCode")
                else None
            ),
            "identifier": identifier,
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "status" in patch:
        check_enum(patch["status"], STATUSES, "encounter status")
    set_update(patch, changes, "status")
    set_update(patch, changes, "patientId", "subject", lambda value: reference("Patient", value))
    set_update(
        patch, changes, "organizationId", "serviceProvider",
        lambda value: reference("Organization", value),
    )

    if "class" in patch and isinstance(patch["class"], str):
        changes["class"] = encounter_class(patch["class"])
    set_update(patch, changes, "classCode", "class", encounter_class)

    if "practitionerIds" in patch or "practitionerId" in patch:
        changes["participant"] = _participants(patch) or CLEAR

    if "typeCode" in patch:
        changes["type"] = (
            CLEAR
            if patch["typeCode"] is None
            else _coded(patch["typeCode"], patch.get("typeSystem"), patch.get("typeDisplay"))
        )
    elif "typeSystem" in patch or "typeDisplay" in patch:
        changes["type"] = amend_coding(existing.get("type"), patch, "typeSystem", "typeDisplay", "type")
    if "reasonCode" in patch:
        changes["reasonCode"] = (
            CLEAR
            if patch["reasonCode"] is None
            else _coded(patch["reasonCode"], patch.get("reasonSystem"), patch.get("reasonDisplay"))
        )
    elif "reasonSystem" in patch or "reasonDisplay" in patch:
        changes["reasonCode"] = amend_coding(
            existing.get("reasonCode"), patch, "reasonSystem", "reasonDisplay", "reasonCode"
        )

    identifier_update(patch, existing, changes)
    merge_period(existing, patch, changes)
    passthrough(
        patch,
        changes,
        (
            "patientId", "organizationId", "classCode", "practitionerIds", "practitionerId",
            "typeCode", "typeSystem", "typeDisplay", "reasonCode", "reasonSystem",
            "reasonDisplay", "periodStart", "periodEnd", "identifierValue", "identifierSystem",
        ),
    )
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Encounter", args, SEARCH_KEYS)
    criteria = []
    if has_value(args.get("patientId")):
        criteria.append(clause("subject", search_reference("Patient", args["patientId"])))
    elif has_value(args.get("subject")):
        criteria.append(clause("subject", args["subject"]))
    if has_value(args.get("practitionerId")):
        criteria.append(clause("participant", search_reference("Practitioner", args["practitionerId"])))
    elif has_value(args.get("participant")):
        criteria.append(clause("participant", args["participant"]))
    if has_value(args.get("organizationId")):
        criteria.append(
            clause("service-provider", search_reference("Organization", args["organizationId"]))
        )
    if has_value(args.get("status")):
        criteria.append(clause("status", args["status"]))
    if has_value(args.get("classCode")):
        criteria.append(clause("class", args["classCode"]))
    if has_value(args.get("typeCode")):
        type_code = args["typeCode"]
        if has_value(args.get("typeSystem")):
            type_code = f"{args['typeSystem']}|{type_code}"
        criteria.append(clause("type", type_code))
    for key in ("date", "identifier", "_lastUpdated"):
        if has_value(args.get(key)):
            criteria.append(clause(key, args[key]))
    return criteria


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    period = resource.get("period") or {}
    participants = [
        reference_id(p.get("individual"), "Practitioner")
        for p in resource.get("participant") or []
    ]
    return compact(
        {
            "id": resource.get("id"),
            "status": resource.get("status"),
            "classCode": (resource.get("class") or {}).get("code"),
            "patientId": reference_id(resource.get("subject"), "Patient"),
            "practitionerIds": [p for p in participants if p] or None,
            "organizationId": reference_id(resource.get("serviceProvider"), "Organization"),
            "periodStart": period.get("start"),
            "periodEnd": period.get("end"),
        }
    )


FAMILY = ResourceFamily(
    resource_type="Encounter",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.EMPTY_RESULT,
    empty_search_message=(
        "Encounter search called with no specific criteria; returning no results."
    ),
)
