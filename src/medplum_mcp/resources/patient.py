"""Patient: demographics in, canonical Patient out."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from medplum_mcp.resources.base import (
    CLEAR,
    EmptySearch,
    ResourceFamily,
    check_enum,
    clause,
    compact,
    contact_points,
    has_value,
    passthrough,
    replace_contact_points,
    require,
    set_update,
    warn_unrecognized,
)

GENDERS = ("male", "female", "other", "unknown")

SEARCH_KEYS = ("name", "family", "given", "birthdate", "gender", "identifier", "email", "phone")


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    first = require(args, "firstName", "Patient first name (firstName) is required.")
    last = require(args, "lastName", "Patient last name (lastName) is required.")
    birth_date = require(args, "birthDate", "Patient birth date (birthDate) is required.")
    gender = check_enum(args.get("gender"), GENDERS, "gender")

    return compact(
        {
            "resourceType": "Patient",
            "name": [{"given": [first], "family": last}],
            "birthDate": birth_date,
            "gender": gender,
            "telecom": contact_points(args.get("phone"), args.get("email"), use="home"),
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "firstName" in patch or "lastName" in patch:
        names = copy.deepcopy(existing.get("name") or [{}])
        primary = names[0]
        if "firstName" in patch:
            if patch["firstName"] is None:
                primary.pop("given", None)
            else:
                primary["given"] = [patch["firstName"]] + list(primary.get("given", [])[1:])
        if "lastName" in patch:
            if patch["lastName"] is None:
                primary.pop("family", None)
            else:
                primary["family"] = patch["lastName"]
        changes["name"] = names

    if "gender" in patch:
        check_enum(patch["gender"], GENDERS, "gender")
    set_update(patch, changes, "gender")
    set_update(patch, changes, "birthDate")

    if "phone" in patch or "email" in patch:
        changes["telecom"] = replace_contact_points(existing, patch, use="home") or CLEAR

    passthrough(patch, changes, ("firstName", "lastName", "phone", "email"))
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Patient", args, SEARCH_KEYS)
    return [clause(key, args[key]) for key in SEARCH_KEYS if has_value(args.get(key))]


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    name = (resource.get("name") or [{}])[0]
    given = name.get("given") or []
    view = {
        "id": resource.get("id"),
        "firstName": given[0] if given else None,
        "lastName": name.get("family"),
        "birthDate": resource.get("birthDate"),
        "gender": resource.get("gender"),
    }
    for point in resource.get("telecom") or []:
        if point.get("system") in ("phone", "email"):
            view.setdefault(point["system"], point.get("value"))
    return compact(view)


FAMILY = ResourceFamily(
    resource_type="Patient",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.EMPTY_RESULT,
    empty_search_message="No valid search criteria provided for patient search.",
)
