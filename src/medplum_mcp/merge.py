"""Partial-update merging.

An update tool receives the id of an existing resource and a patch of
convenience arguments. The merged resource is:

    existing  <-  family.normalize_update(patch)  <-  exclusivity rules

where a key absent from the patch leaves the stored field alone, a key set
to None removes the field, and any other value replaces it. Writing one
member of an exclusivity group (e.g. valueString on an Observation that
holds a valueQuantity) removes the other members.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import ValidationError
from medplum_mcp.resources.base import CLEAR, ResourceFamily

logger = logging.getLogger(__name__)

_IMMUTABLE_KEYS = ("id", "resourceType")


def _article(word: str) -> str:
    return "an" if word[:1].upper() in "AEIOU" else "a"


def require_updates(patch: Mapping[str, Any] | None, resource_type: str) -> dict[str, Any]:
    """Return the patch without id/resourceType, or raise if nothing is left."""
    usable = {
        key: value
        for key, value in (patch or {}).items()
        if key not in _IMMUTABLE_KEYS
    }
    if not usable:
        raise ValidationError(
            "Updates object cannot be empty for updating "
            f"{_article(resource_type)} {resource_type}."
        )
    return usable


def apply_exclusive_groups(
    resource: dict[str, Any],
    changes: Mapping[str, Any],
    groups: tuple[tuple[str, ...], ...],
) -> None:
    """Drop the members of each group that the changes did not write.

    When several members of one group are written, the last one in the
    group's declared order survives.
    """
    for group in groups:
        written = [key for key in group if key in changes and changes[key] is not CLEAR]
        if not written:
            continue
        keep = written[-1]
        if len(written) > 1:
            logger.warning(
                "Update sets %s; keeping only %s", ", ".join(written), keep
            )
        for key in group:
            if key != keep:
                resource.pop(key, None)


def merge_update(
    existing: Mapping[str, Any],
    patch: Mapping[str, Any] | None,
    family: ResourceFamily,
) -> dict[str, Any]:
    """Build the resource to persist from a stored snapshot and a patch.

    Raises:
        ValidationError: If the patch is empty or a value fails conversion.
    """
    usable = require_updates(patch, family.resource_type)
    changes = family.normalize_update(usable, existing)

    merged = copy.deepcopy(dict(existing))
    for key, value in changes.items():
        if key in _IMMUTABLE_KEYS:
            continue
        if value is CLEAR:
            merged.pop(key, None)
        else:
            merged[key] = value

    apply_exclusive_groups(merged, changes, family.exclusive_groups)

    merged["resourceType"] = existing.get("resourceType", family.resource_type)
    if "id" in existing:
        merged["id"] = existing["id"]
    return merged
