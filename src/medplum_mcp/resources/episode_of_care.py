"""EpisodeOfCare normalization."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from medplum_mcp.resources.base import (
    EmptySearch,
    ResourceFamily,
    check_enum,
    clause,
    codeable_concept_list,
    compact,
    has_value,
    identifiers,
    merge_period,
    passthrough,
    reference,
    reference_id,
    reference_list,
    require,
    search_reference,
    set_update,
)

logger = logging.getLogger(__name__)

STATUSES = (
    "planned",
    "waitlist",
    "active",
    "onhold",
    "finished",
    "cancelled",
    "entered-in-error",
)

# keys forwarded to the server as given
PLAIN_SEARCH_KEYS = ("patient", "status", "type", "identifier", "organization", "care-manager")


def _type(value: Any) -> list[dict[str, Any]]:
    return codeable_concept_list(value, label="type")


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    patient_id = require(args, "patientId", "Patient ID is required to create an episode of care.")
    status = require(args, "status", "EpisodeOfCare status is required.")
    check_enum(status, STATUSES, "episode of care status")

    period = compact({"start": args.get("periodStart"), "end": args.get("periodEnd")})
    team = args.get("teamMemberIds")

    return compact(
        {
            "resourceType": "EpisodeOfCare",
            "status": status,
            "patient": reference("Patient", patient_id),
            "managingOrganization": (
                reference("Organization", args["managingOrganizationId"])
                if args.get("managingOrganizationId")
                else None
            ),
            "careManager": (
                reference("Practitioner", args["careManagerId"])
                if args.get("careManagerId")
                else None
            ),
            "team": reference_list("CareTeam", team) if team else None,
            "type": _type(args["type"]) if args.get("type") else None,
            "period": period or None,
            "identifier": identifiers(args["identifier"]) if args.get("identifier") else None,
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "status" in patch:
        check_enum(patch["status"], STATUSES, "episode of care status")
    set_update(patch, changes, "patientId", "patient", lambda value: reference("Patient", value))
    set_update(
        patch, changes, "managingOrganizationId", "managingOrganization",
        lambda value: reference("Organization", value),
    )
    set_update(
        patch, changes, "careManagerId", "careManager",
        lambda value: reference("Practitioner", value),
    )
    set_update(patch, changes, "teamMemberIds", "team", lambda value: reference_list("CareTeam", value))
    set_update(patch, changes, "type", convert=_type)
    set_update(patch, changes, "identifier", convert=identifiers)
    merge_period(existing, patch, changes)

    passthrough(
        patch,
        changes,
        (
            "patientId", "managingOrganizationId", "careManagerId", "teamMemberIds",
            "periodStart", "periodEnd",
        ),
    )
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    criteria = []
    for key, value in args.items():
        if not has_value(value):
            continue
        if key in PLAIN_SEARCH_KEYS:
            criteria.append(clause(key, value))
        elif key == "patientId":
            criteria.append(clause("patient", search_reference("Patient", value)))
        elif key == "managingOrganizationId":
            criteria.append(clause("organization", search_reference("Organization", value)))
        elif key == "careManagerId":
            criteria.append(clause("care-manager", search_reference("Practitioner", value)))
        elif key == "date":
            dates = value if isinstance(value, list) else str(value).split("&")
            criteria.extend(clause("date", date) for date in dates if date)
        else:
            logger.warning("Unsupported search parameter for EpisodeOfCare: %s", key)
    return criteria


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    period = resource.get("period") or {}
    return compact(
        {
            "id": resource.get("id"),
            "status": resource.get("status"),
            "patientId": reference_id(resource.get("patient"), "Patient"),
            "managingOrganizationId": reference_id(
                resource.get("managingOrganization"), "Organization"
            ),
            "careManagerId": reference_id(resource.get("careManager"), "Practitioner"),
            "periodStart": period.get("start"),
            "periodEnd": period.get("end"),
        }
    )


FAMILY = ResourceFamily(
    resource_type="EpisodeOfCare",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.ERROR_OUTCOME,
    empty_search_message="At least one search criterion must be provided for searching EpisodeOfCare.",
)
