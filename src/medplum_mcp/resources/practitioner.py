"""Practitioner normalization.

Two search flavours exist: the name-only search (given/family/name, empty
result without criteria) and the general search, which also accepts
specialty and identifier and runs unfiltered when nothing is given.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import (
    CLEAR,
    EmptySearch,
    ResourceFamily,
    check_enum,
    clause,
    compact,
    contact_points,
    has_value,
    identifiers,
    passthrough,
    replace_contact_points,
    require,
    set_update,
    warn_unrecognized,
)
from medplum_mcp.resources.patient import GENDERS

NAME_SEARCH_KEYS = {"givenName": "given", "familyName": "family", "name": "name"}
SEARCH_KEYS = ("name", "given", "family", "specialty", "identifier")


def _addresses(value: Any) -> list[dict[str, Any]]:
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return value
    raise ValidationError("address must be an object or a list of addresses.")


def _telecom(args: Mapping[str, Any]) -> list[dict[str, Any]] | None:
    telecom = list(args.get("telecom") or [])
    telecom.extend(contact_points(args.get("phone"), args.get("email")) or [])
    return telecom or None


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    given = require(args, "givenName", "Practitioner given name (givenName) is required.")
    family = require(args, "familyName", "Practitioner family name (familyName) is required.")

    address = _addresses(args["address"]) if args.get("address") else None

    return compact(
        {
            "resourceType": "Practitioner",
            "name": [{"given": [given], "family": family}],
            "identifier": identifiers(args["identifier"]) if args.get("identifier") else None,
            "telecom": _telecom(args),
            "address": address,
            "gender": check_enum(args.get("gender"), GENDERS, "gender"),
            "active": args.get("active"),
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "givenName" in patch or "familyName" in patch:
        names = copy.deepcopy(existing.get("name") or [{}])
        primary = names[0]
        if "givenName" in patch:
            if patch["givenName"] is None:
                primary.pop("given", None)
            else:
                primary["given"] = [patch["givenName"]] + list(primary.get("given", [])[1:])
        if "familyName" in patch:
            if patch["familyName"] is None:
                primary.pop("family", None)
            else:
                primary["family"] = patch["familyName"]
        changes["name"] = names

    if "gender" in patch:
        check_enum(patch["gender"], GENDERS, "gender")
    set_update(patch, changes, "identifier", convert=identifiers)
    set_update(patch, changes, "address", convert=_addresses)

    if "phone" in patch or "email" in patch:
        changes["telecom"] = replace_contact_points(existing, patch) or CLEAR

    passthrough(patch, changes, ("givenName", "familyName", "phone", "email"))
    return changes


def build_name_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Practitioner", args, NAME_SEARCH_KEYS)
    return [
        clause(param, args[key])
        for key, param in NAME_SEARCH_KEYS.items()
        if has_value(args.get(key))
    ]


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Practitioner", args, SEARCH_KEYS)
    return [clause(key, args[key]) for key in SEARCH_KEYS if has_value(args.get(key))]


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    name = (resource.get("name") or [{}])[0]
    given = name.get("given") or []
    return compact(
        {
            "id": resource.get("id"),
            "givenName": given[0] if given else None,
            "familyName": name.get("family"),
            "gender": resource.get("gender"),
            "active": resource.get("active"),
        }
    )


FAMILY = ResourceFamily(
    resource_type="Practitioner",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.UNFILTERED,
    empty_search_message="No criteria provided for practitioner search.",
)

NAME_SEARCH_FAMILY = replace(
    FAMILY,
    build_search_criteria=build_name_search_criteria,
    empty_search=EmptySearch.EMPTY_RESULT,
    empty_search_message="No search criteria provided for practitioner name search.",
)
