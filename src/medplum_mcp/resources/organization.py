"""Organization normalization."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import (
    CLEAR,
    EmptySearch,
    ResourceFamily,
    amend_coding,
    clause,
    compact,
    contact_points,
    first_code,
    has_value,
    identifier_update,
    passthrough,
    replace_contact_points,
    require,
    set_update,
    warn_unrecognized,
)

ORGANIZATION_TYPE_SYSTEM = "http://terminology.hl7.org/CodeSystem/organization-type"

# convenience key -> FHIR search parameter
SEARCH_PARAMS = {
    "name": "name",
    "identifier": "identifier",
    "type": "type",
    "active": "active",
    "address": "address",
    "city": "address-city",
    "addressCity": "address-city",
    "state": "address-state",
    "addressState": "address-state",
    "postalCode": "address-postalcode",
    "country": "address-country",
    "_lastUpdated": "_lastUpdated",
}


def _type(args: Mapping[str, Any]) -> list[dict[str, Any]]:
    code = args["typeCode"]
    display = args.get("typeDisplay") or code
    return [
        {
            "coding": [
                {
                    "system": args.get("typeSystem") or ORGANIZATION_TYPE_SYSTEM,
                    "code": code,
                    "display": display,
                }
            ],
            "text": display,
        }
    ]


def _address(address: Any) -> list[dict[str, Any]]:
    if isinstance(address, list):
        return address
    if not isinstance(address, dict):
        raise ValidationError(
            "address must be an object {line, city, state, postalCode, country} or a list of addresses."
        )
    line = address.get("line")
    if isinstance(line, str):
        line = [line]
    return [
        compact(
            {
                "use": address.get("use") or "work",
                "line": line,
                "city": address.get("city"),
                "state": address.get("state"),
                "postalCode": address.get("postalCode"),
                "country": address.get("country"),
            }
        )
    ]


def _identifier(args: Mapping[str, Any]) -> list[dict[str, Any]]:
    return [compact({"system": args.get("identifierSystem"), "value": args["identifierValue"]})]


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    name = require(args, "name", "Organization name is required.")
    alias = args.get("alias")
    if isinstance(alias, str):
        alias = [alias]

    return compact(
        {
            "resourceType": "Organization",
            "name": name,
            "active": args.get("active", True),
            "alias": alias or None,
            "type": _type(args) if args.get("typeCode") else None,
            "telecom": contact_points(args.get("phone"), args.get("email")),
            "address": _address(args["address"]) if args.get("address") else None,
            "identifier": _identifier(args) if args.get("identifierValue") else None,
            "contact": args.get("contact"),
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    set_update(patch, changes, "alias", convert=lambda value: [value] if isinstance(value, str) else value)
    set_update(patch, changes, "address", convert=_address)

    if "typeCode" in patch:
        changes["type"] = CLEAR if patch["typeCode"] is None else _type(patch)
    elif "typeSystem" in patch or "typeDisplay" in patch:
        changes["type"] = amend_coding(existing.get("type"), patch, "typeSystem", "typeDisplay", "type")
    identifier_update(patch, existing, changes)

    if "phone" in patch or "email" in patch:
        changes["telecom"] = replace_contact_points(existing, patch) or CLEAR

    passthrough(
        patch,
        changes,
        ("typeCode", "typeSystem", "typeDisplay", "identifierValue", "identifierSystem", "phone", "email"),
    )
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Organization", args, SEARCH_PARAMS)
    return [
        clause(param, args[key])
        for key, param in SEARCH_PARAMS.items()
        if has_value(args.get(key))
    ]


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    view: dict[str, Any] = {
        "id": resource.get("id"),
        "name": resource.get("name"),
        "alias": resource.get("alias"),
        "active": resource.get("active"),
        "typeCode": first_code((resource.get("type") or [None])[0]),
    }
    for point in resource.get("telecom") or []:
        if point.get("system") in ("phone", "email"):
            view.setdefault(point["system"], point.get("value"))
    return compact(view)


FAMILY = ResourceFamily(
    resource_type="Organization",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.EMPTY_RESULT,
    empty_search_message="No search criteria provided for organization search.",
)
