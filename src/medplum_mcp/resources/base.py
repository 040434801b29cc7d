"""Shared building blocks for the per-family resource normalizers.

Callers speak in "convenience arguments": bare ids, plain strings and
numbers. The FHIR server speaks canonical resources: references,
CodeableConcepts, Annotations. The helpers here do the conversions every
family needs, and ResourceFamily bundles one family's rules so the
generic create/update/search code can work on any of them.
"""

from __future__ import annotations

import copy
import enum
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from medplum_mcp.errors import ValidationError

logger = logging.getLogger(__name__)


class _Clear:
    """Marker for a field an update asks to remove."""

    _instance: _Clear | None = None

    def __new__(cls) -> _Clear:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CLEAR"

    def __bool__(self) -> bool:
        return False


CLEAR = _Clear()


class EmptySearch(enum.Enum):
    """What a family does when a search yields no criteria."""

    # Return [] without calling the server.
    EMPTY_RESULT = "empty-result"
    # Search with no filter at all, after a warning.
    UNFILTERED = "unfiltered"
    # Unfiltered only when no arguments were given at all; [] when arguments
    # were given but none of them was recognized.
    UNFILTERED_IF_NO_ARGS = "unfiltered-if-no-args"
    # Return an OperationOutcome error.
    ERROR_OUTCOME = "error-outcome"


@dataclass(frozen=True)
class ResourceFamily:
    """Conversion rules for one FHIR resource type."""

    resource_type: str
    normalize_create: Callable[[Mapping[str, Any]], dict[str, Any]]
    normalize_update: Callable[[Mapping[str, Any], Mapping[str, Any]], dict[str, Any]]
    build_search_criteria: Callable[[Mapping[str, Any]], list[str]]
    to_convenience: Callable[[Mapping[str, Any]], dict[str, Any]]
    empty_search: EmptySearch
    exclusive_groups: tuple[tuple[str, ...], ...] = field(default_factory=tuple)
    empty_search_message: str = ""


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    """Current UTC time as a FHIR instant (millisecond precision)."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def compact(resource: dict[str, Any]) -> dict[str, Any]:
    """Drop top-level keys whose value is None."""
    return {key: value for key, value in resource.items() if value is not None}


def require(args: Mapping[str, Any], key: str, message: str) -> Any:
    """Return args[key], or raise ValidationError if it is missing or blank."""
    value = args.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)
    return value


def first_present(args: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-None value among keys."""
    for key in keys:
        if args.get(key) is not None:
            return args[key]
    return None


def reference(resource_type: str, value: Any) -> dict[str, str]:
    """Build a Reference to resource_type from a bare id.

    A value that already looks like "Type/id" is accepted only when the
    type matches and the id is not empty.
    """
    if isinstance(value, dict) and "reference" in value:
        value = value["reference"]
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"A {resource_type} id must be a non-empty string.")
    value = value.strip()
    if "/" in value:
        prefix, _, resource_id = value.partition("/")
        if prefix != resource_type or not resource_id or "/" in resource_id:
            raise ValidationError(
                f"Invalid {resource_type} reference '{value}': "
                f"expected a bare id or '{resource_type}/<id>'."
            )
        return {"reference": value}
    return {"reference": f"{resource_type}/{value}"}


def reference_list(resource_type: str, values: Any) -> list[dict[str, str]]:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        raise ValidationError(f"Expected a list of {resource_type} ids.")
    return [reference(resource_type, value) for value in values]


def reference_id(ref: Any, resource_type: str | None = None) -> str | None:
    """Extract the id from a Reference ("Patient/123" -> "123")."""
    if not isinstance(ref, dict):
        return None
    value = ref.get("reference")
    if not isinstance(value, str) or "/" not in value:
        return None
    prefix, _, resource_id = value.partition("/")
    if resource_type and prefix != resource_type:
        return None
    return resource_id


def search_reference(resource_type: str, value: str) -> str:
    """"123" or "Patient/123" -> "Patient/123" for search parameters."""
    return reference(resource_type, value)["reference"]


def codeable_concept(
    value: Any,
    *,
    system: str | None = None,
    display: str | None = None,
    require_coding: bool = False,
    label: str = "code",
) -> dict[str, Any]:
    """Promote a code string to a CodeableConcept, or validate a given one."""
    if isinstance(value, str):
        if not value.strip():
            raise ValidationError(f"{label} must not be empty.")
        coding = compact({"system": system, "code": value, "display": display})
        return {"coding": [coding], "text": display or value}
    if isinstance(value, dict):
        coding = value.get("coding")
        if require_coding and (not isinstance(coding, list) or not coding):
            raise ValidationError(f"{label} with at least one coding is required.")
        return value
    raise ValidationError(f"{label} must be a code string or a CodeableConcept object.")


def codeable_concept_list(value: Any, **kwargs: Any) -> list[dict[str, Any]]:
    if isinstance(value, list):
        return [codeable_concept(item, **kwargs) for item in value]
    return [codeable_concept(value, **kwargs)]


def first_code(concept: Any) -> str | None:
    """The code of the first coding of a CodeableConcept."""
    if not isinstance(concept, dict):
        return None
    codings = concept.get("coding") or []
    if codings and isinstance(codings[0], dict):
        return codings[0].get("code")
    return None


def annotations(note: Any) -> list[dict[str, Any]]:
    """note: "text" -> [{"text": "text"}]; lists of Annotations pass through."""
    if isinstance(note, str):
        return [{"text": note}]
    if isinstance(note, list):
        return [{"text": item} if isinstance(item, str) else item for item in note]
    if isinstance(note, dict):
        return [note]
    raise ValidationError("note must be a string or a list of annotations.")


def identifiers(value: Any) -> list[dict[str, Any]]:
    """Accept an Identifier, a list of them, or a bare identifier value."""
    if isinstance(value, str):
        return [{"value": value}]
    if isinstance(value, dict):
        if not value.get("value"):
            raise ValidationError("identifier requires a value.")
        return [compact({"system": value.get("system"), "value": value["value"]})]
    if isinstance(value, list):
        return [item for ident in value for item in identifiers(ident)]
    raise ValidationError("identifier must be a string, an object or a list.")


def contact_points(phone: Any = None, email: Any = None, use: str = "work") -> list[dict[str, str]] | None:
    telecom = []
    if phone:
        telecom.append({"system": "phone", "value": phone, "use": use})
    if email:
        telecom.append({"system": "email", "value": email, "use": use})
    return telecom or None


def check_enum(value: Any, allowed: Iterable[str], label: str) -> Any:
    allowed = tuple(allowed)
    if value is not None and value not in allowed:
        raise ValidationError(f"Invalid {label} '{value}'. Expected one of: {', '.join(allowed)}.")
    return value


# ---------------------------------------------------------------------------
# Update helpers
# ---------------------------------------------------------------------------


def set_update(
    patch: Mapping[str, Any],
    changes: dict[str, Any],
    key: str,
    target: str | None = None,
    convert: Callable[[Any], Any] | None = None,
) -> None:
    """Translate one convenience key of an update into a canonical change.

    Absent keys are skipped, None becomes CLEAR, anything else is converted.
    """
    if key not in patch:
        return
    value = patch[key]
    target = target or key
    if value is None:
        changes[target] = CLEAR
    else:
        changes[target] = convert(value) if convert else value


def passthrough(
    patch: Mapping[str, Any], changes: dict[str, Any], handled: Iterable[str]
) -> None:
    """Copy canonical keys the family has no convenience rule for."""
    handled = set(handled) | {"id", "resourceType"}
    for key, value in patch.items():
        if key in handled or key in changes:
            continue
        changes[key] = CLEAR if value is None else value


def amend_coding(
    concept: Any,
    patch: Mapping[str, Any],
    system_key: str,
    display_key: str,
    label: str,
) -> Any:
    """Apply system/display companion keys to the first coding of a stored concept.

    Used when an update sends e.g. codeDisplay without code: the stored
    code is kept and only the named parts change. For a list of concepts
    the first one is amended and the rest are kept.
    """
    if isinstance(concept, list):
        head = concept[0] if concept else None
        return [amend_coding(head, patch, system_key, display_key, label)] + list(concept[1:])
    if not isinstance(concept, dict) or not concept.get("coding"):
        raise ValidationError(
            f"{system_key}/{display_key} can only change an existing {label}; send the code as well."
        )
    concept = copy.deepcopy(concept)
    coding = concept["coding"][0]
    for key, part in ((system_key, "system"), (display_key, "display")):
        if key not in patch:
            continue
        if patch[key] is None:
            coding.pop(part, None)
        else:
            coding[part] = patch[key]
    if patch.get(display_key) is not None:
        concept["text"] = patch[display_key]
    return concept


def identifier_update(
    patch: Mapping[str, Any], existing: Mapping[str, Any], changes: dict[str, Any]
) -> None:
    """Turn identifierValue/identifierSystem into an ``identifier`` change.

    identifierSystem alone re-labels the first stored identifier.
    """
    if "identifierValue" in patch:
        value = patch["identifierValue"]
        changes["identifier"] = (
            CLEAR
            if value is None
            else [compact({"system": patch.get("identifierSystem"), "value": value})]
        )
    elif "identifierSystem" in patch:
        stored = existing.get("identifier") or []
        if not stored:
            raise ValidationError(
                "identifierSystem can only change an existing identifier; send identifierValue as well."
            )
        first = dict(stored[0])
        if patch["identifierSystem"] is None:
            first.pop("system", None)
        else:
            first["system"] = patch["identifierSystem"]
        changes["identifier"] = [first] + list(stored[1:])


def replace_contact_points(
    existing: Mapping[str, Any], patch: Mapping[str, Any], use: str = "work"
) -> list[dict[str, Any]]:
    """Swap the phone/email entries named in the patch; keep every other entry.

    Entries of systems the patch does not mention (fax, url, or the email
    when only phone is patched) stay exactly as stored.
    """
    touched = {system for system in ("phone", "email") if system in patch}
    telecom = [
        point
        for point in existing.get("telecom") or []
        if point.get("system") not in touched
    ]
    telecom.extend(
        contact_points(
            patch.get("phone") if "phone" in touched else None,
            patch.get("email") if "email" in touched else None,
            use=use,
        )
        or []
    )
    return telecom


def merge_period(
    existing: Mapping[str, Any],
    patch: Mapping[str, Any],
    changes: dict[str, Any],
    start_key: str = "periodStart",
    end_key: str = "periodEnd",
) -> None:
    """Fold periodStart/periodEnd into the existing period.

    Clearing both ends removes the period altogether.
    """
    if start_key not in patch and end_key not in patch:
        return
    period = copy.deepcopy(existing.get("period") or {})
    for key, part in ((start_key, "start"), (end_key, "end")):
        if key not in patch:
            continue
        if patch[key] is None:
            period.pop(part, None)
        else:
            period[part] = patch[key]
    changes["period"] = period if period.get("start") or period.get("end") else CLEAR


# ---------------------------------------------------------------------------
# Search helpers
# ---------------------------------------------------------------------------


def clause(key: str, value: Any) -> str:
    """A single "key=value" search clause with the value percent-encoded."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"{key}={quote(str(value), safe='/|:,')}"


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple)):
        return bool(value)
    return True


def warn_unrecognized(
    resource_type: str, args: Mapping[str, Any], known: Iterable[str]
) -> None:
    unknown = sorted(set(args) - set(known))
    if unknown:
        logger.warning(
            "Ignoring unsupported %s search parameter(s): %s",
            resource_type,
            ", ".join(unknown),
        )
