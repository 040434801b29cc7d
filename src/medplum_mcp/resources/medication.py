"""Medication normalization."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import (
    EmptySearch,
    ResourceFamily,
    amend_coding,
    check_enum,
    clause,
    codeable_concept,
    compact,
    first_code,
    has_value,
    identifiers,
    passthrough,
    reference,
    reference_id,
    set_update,
    warn_unrecognized,
)

STATUSES = ("active", "inactive", "entered-in-error")

SEARCH_KEYS = ("code", "identifier", "status")


def _form(value: Any) -> dict[str, Any]:
    return codeable_concept(value, label="form")


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    if args.get("code") is None:
        raise ValidationError("Medication code with at least one coding is required.")
    code = codeable_concept(
        args["code"],
        system=args.get("codeSystem"),
        display=args.get("display"),
        require_coding=True,
        label="Medication code",
    )
    manufacturer = args.get("manufacturerId") or args.get("manufacturer")

    return compact(
        {
            "resourceType": "Medication",
            "code": code,
            "status": check_enum(args.get("status"), STATUSES, "medication status"),
            "manufacturer": reference("Organization", manufacturer) if manufacturer else None,
            "form": _form(args["form"]) if args.get("form") else None,
            "identifier": identifiers(args["identifier"]) if args.get("identifier") else None,
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "status" in patch:
        check_enum(patch["status"], STATUSES, "medication status")
    set_update(
        patch, changes, "code",
        convert=lambda value: codeable_concept(
            value,
            system=patch.get("codeSystem"),
            display=patch.get("display"),
            require_coding=True,
            label="Medication code",
        ),
    )
    if "code" not in patch and ("codeSystem" in patch or "display" in patch):
        changes["code"] = amend_coding(existing.get("code"), patch, "codeSystem", "display", "code")
    set_update(patch, changes, "form", convert=_form)
    for key in ("manufacturerId", "manufacturer"):
        set_update(patch, changes, key, "manufacturer", lambda value: reference("Organization", value))
    set_update(patch, changes, "identifier", convert=identifiers)

    passthrough(patch, changes, ("codeSystem", "display", "manufacturerId"))
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Medication", args, SEARCH_KEYS)
    return [clause(key, args[key]) for key in SEARCH_KEYS if has_value(args.get(key))]


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    code = resource.get("code") or {}
    codings = code.get("coding") or [{}]
    return compact(
        {
            "id": resource.get("id"),
            "code": first_code(code),
            "display": codings[0].get("display") or code.get("text"),
            "status": resource.get("status"),
            "form": first_code(resource.get("form")),
            "manufacturerId": reference_id(resource.get("manufacturer"), "Organization"),
        }
    )


FAMILY = ResourceFamily(
    resource_type="Medication",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.ERROR_OUTCOME,
    empty_search_message=(
        "At least one search criterion (code, identifier, or status) "
        "must be provided for searching medications."
    ),
)
