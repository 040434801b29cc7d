"""Observation normalization.

An Observation carries exactly one value[x] and at most one effective[x];
both are declared as exclusivity groups so that an update writing one
member removes the others.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import (
    EmptySearch,
    ResourceFamily,
    amend_coding,
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
    reference_list,
    search_reference,
    set_update,
    warn_unrecognized,
)

STATUSES = ("registered", "preliminary", "final", "amended", "corrected", "cancelled")

VALUE_FIELDS = (
    "valueQuantity",
    "valueCodeableConcept",
    "valueString",
    "valueBoolean",
    "valueInteger",
    "valueRange",
    "valueRatio",
    "valueSampledData",
    "valueTime",
    "valueDateTime",
    "valuePeriod",
)

EFFECTIVE_FIELDS = ("effectiveDateTime", "effectivePeriod")

SEARCH_KEYS = (
    "patientId",
    "subject",
    "code",
    "codeSystem",
    "encounterId",
    "date",
    "status",
    "performer",
    "identifier",
    "_lastUpdated",
)

_DATE_PREFIX = re.compile(r"^(eq|ne|gt|lt|ge|le|sa|eb|ap)")


def quantity(value: Any, unit: str | None = None) -> dict[str, Any]:
    """A bare number becomes a Quantity; Quantity objects pass through."""
    if isinstance(value, bool):
        raise ValidationError("valueQuantity must be a number or a Quantity object.")
    if isinstance(value, (int, float)):
        return compact({"value": value, "unit": unit})
    if isinstance(value, dict):
        return value
    raise ValidationError("valueQuantity must be a number or a Quantity object.")


def _convert_value(key: str, value: Any, args: Mapping[str, Any]) -> Any:
    if key == "valueQuantity":
        return quantity(value, args.get("unit"))
    if key == "valueCodeableConcept":
        return codeable_concept(value, label="valueCodeableConcept")
    return value


def normalize_create(args: Mapping[str, Any]) -> dict[str, Any]:
    subject = first_present(args, "subjectId", "patientId", "subject")
    if subject is None:
        raise ValidationError("Patient reference is required to create an observation.")
    if args.get("code") is None:
        raise ValidationError("Observation code with at least one coding is required.")
    code = codeable_concept(
        args["code"],
        system=args.get("codeSystem"),
        display=args.get("codeDisplay"),
        require_coding=True,
        label="Observation code",
    )
    if not args.get("status"):
        raise ValidationError("Observation status is required.")
    check_enum(args["status"], STATUSES, "observation status")
    if all(args.get(key) is None for key in VALUE_FIELDS):
        raise ValidationError(
            "At least one value field must be provided "
            f"({', '.join(VALUE_FIELDS[:-1])}, or {VALUE_FIELDS[-1]})."
        )

    values = {
        key: _convert_value(key, args[key], args)
        for key in VALUE_FIELDS
        if args.get(key) is not None
    }
    if len(values) > 1:
        raise ValidationError(
            f"Only one value[x] field may be given; got {', '.join(values)}."
        )
    if args.get("effectiveDateTime") and args.get("effectivePeriod"):
        raise ValidationError("Provide either effectiveDateTime or effectivePeriod, not both.")

    performer = args.get("performerIds")
    return compact(
        {
            "resourceType": "Observation",
            "status": args["status"],
            "code": code,
            "subject": reference("Patient", subject),
            "encounter": (
                reference("Encounter", args["encounterId"]) if args.get("encounterId") else None
            ),
            "effectiveDateTime": args.get("effectiveDateTime"),
            "effectivePeriod": args.get("effectivePeriod"),
            "issued": args.get("issued") or now_iso(),
            "performer": reference_list("Practitioner", performer) if performer else None,
            **values,
            "bodySite": codeable_concept(args["bodySite"], label="bodySite") if args.get("bodySite") else None,
            "method": codeable_concept(args["method"], label="method") if args.get("method") else None,
            "referenceRange": args.get("referenceRange"),
            "note": annotations(args["note"]) if args.get("note") else None,
            "interpretation": args.get("interpretation"),
            "identifier": identifiers(args["identifier"]) if args.get("identifier") else None,
            "component": args.get("component"),
        }
    )


def normalize_update(patch: Mapping[str, Any], existing: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}

    if "status" in patch:
        check_enum(patch["status"], STATUSES, "observation status")
    set_update(patch, changes, "subjectId", "subject", lambda value: reference("Patient", value))
    set_update(patch, changes, "patientId", "subject", lambda value: reference("Patient", value))
    set_update(patch, changes, "encounterId", "encounter", lambda value: reference("Encounter", value))
    set_update(
        patch, changes, "performerIds", "performer",
        lambda value: reference_list("Practitioner", value),
    )
    set_update(
        patch, changes, "code",
        convert=lambda value: codeable_concept(
            value,
            system=patch.get("codeSystem"),
            display=patch.get("codeDisplay"),
            require_coding=True,
            label="Observation code",
        ),
    )
    if "code" not in patch and ("codeSystem" in patch or "codeDisplay" in patch):
        changes["code"] = amend_coding(existing.get("code"), patch, "codeSystem", "codeDisplay", "code")
    for key in ("bodySite", "method"):
        set_update(patch, changes, key, convert=lambda value, key=key: codeable_concept(value, label=key))
    set_update(patch, changes, "note", convert=annotations)
    set_update(patch, changes, "identifier", convert=identifiers)
    for key in ("valueQuantity", "valueCodeableConcept"):
        set_update(patch, changes, key, convert=lambda value, key=key: _convert_value(key, value, patch))
    if "unit" in patch and "valueQuantity" not in patch:
        stored = existing.get("valueQuantity")
        if not isinstance(stored, dict):
            raise ValidationError("unit can only change a stored valueQuantity; send valueQuantity as well.")
        changes["valueQuantity"] = compact({**stored, "unit": patch["unit"]})

    passthrough(
        patch,
        changes,
        ("subjectId", "patientId", "encounterId", "performerIds", "codeSystem", "codeDisplay", "unit"),
    )
    return changes


def build_search_criteria(args: Mapping[str, Any]) -> list[str]:
    warn_unrecognized("Observation", args, SEARCH_KEYS)
    criteria = []
    if has_value(args.get("patientId")):
        criteria.append(clause("subject", search_reference("Patient", args["patientId"])))
    elif has_value(args.get("subject")):
        criteria.append(clause("subject", args["subject"]))
    if has_value(args.get("code")):
        code = args["code"]
        if has_value(args.get("codeSystem")):
            code = f"{args['codeSystem']}|{code}"
        criteria.append(clause("code", code))
    if has_value(args.get("encounterId")):
        criteria.append(clause("encounter", search_reference("Encounter", args["encounterId"])))
    if has_value(args.get("date")):
        date = str(args["date"])
        criteria.append(clause("date", date if _DATE_PREFIX.match(date) else f"eq{date}"))
    for key in ("status", "performer", "identifier", "_lastUpdated"):
        if has_value(args.get(key)):
            criteria.append(clause(key, args[key]))
    return criteria


def to_convenience(resource: Mapping[str, Any]) -> dict[str, Any]:
    view = {
        "id": resource.get("id"),
        "status": resource.get("status"),
        "code": first_code(resource.get("code")),
        "subjectId": reference_id(resource.get("subject"), "Patient"),
        "encounterId": reference_id(resource.get("encounter"), "Encounter"),
        "performerIds": [
            reference_id(ref, "Practitioner") for ref in resource.get("performer") or []
        ] or None,
        "issued": resource.get("issued"),
    }
    for key in VALUE_FIELDS + EFFECTIVE_FIELDS:
        if key in resource:
            view[key] = resource[key]
    return compact(view)


FAMILY = ResourceFamily(
    resource_type="Observation",
    normalize_create=normalize_create,
    normalize_update=normalize_update,
    build_search_criteria=build_search_criteria,
    to_convenience=to_convenience,
    empty_search=EmptySearch.UNFILTERED_IF_NO_ARGS,
    exclusive_groups=(VALUE_FIELDS, EFFECTIVE_FIELDS),
    empty_search_message="Observation search called with no specific criteria.",
)
