"""Generic create/read/update/search handlers shared by every family.

The per-family tool modules are thin: they bind a ResourceFamily to these
four operations. Everything here takes the repository client as a
keyword-only ``client`` argument, which the router injects.

Repository operations used:
- create_resource  POST /{type}
- read_resource    GET  /{type}/{id}
- update_resource  PUT  /{type}/{id}
- search_resources GET  /{type}?{query}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from medplum_mcp.errors import NotFoundError, ValidationError, operation_outcome
from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.merge import merge_update, require_updates
from medplum_mcp.resources.base import EmptySearch, ResourceFamily

logger = logging.getLogger(__name__)


def _require_id(resource_id: Any, family: ResourceFamily) -> str:
    if not isinstance(resource_id, str) or not resource_id.strip():
        raise ValidationError(f"{family.resource_type} ID is required.")
    return resource_id.strip()


async def create_resource(
    family: ResourceFamily,
    args: Mapping[str, Any],
    *,
    client: MedplumClient,
) -> dict[str, Any]:
    """Normalize convenience arguments and create the resource."""
    resource = family.normalize_create(args or {})
    created = await client.create_resource(resource)
    logger.info("Created %s/%s", family.resource_type, created.get("id"))
    return created


async def read_resource(
    family: ResourceFamily,
    resource_id: Any,
    *,
    client: MedplumClient,
) -> dict[str, Any] | None:
    """Read a resource by id; None when the server does not have it."""
    resource_id = _require_id(resource_id, family)
    try:
        return await client.read_resource(family.resource_type, resource_id)
    except NotFoundError:
        logger.info("%s/%s not found", family.resource_type, resource_id)
        return None


async def update_resource(
    family: ResourceFamily,
    resource_id: Any,
    updates: Mapping[str, Any] | None,
    *,
    client: MedplumClient,
) -> dict[str, Any]:
    """Read-merge-write a partial update.

    The id and the patch are checked before anything is read, so a bad
    call never reaches the server. A missing resource propagates as
    NotFoundError.
    """
    resource_id = _require_id(resource_id, family)
    require_updates(updates, family.resource_type)

    existing = await client.read_resource(family.resource_type, resource_id)
    merged = merge_update(existing, updates, family)
    merged["id"] = resource_id
    updated = await client.update_resource(merged)
    logger.info("Updated %s/%s", family.resource_type, resource_id)
    return updated


async def search_resources(
    family: ResourceFamily,
    args: Mapping[str, Any] | None,
    *,
    client: MedplumClient,
) -> list[dict[str, Any]] | dict[str, Any]:
    """Search with the family's criteria builder.

    Returns the matching resources, or an OperationOutcome for families
    that refuse to search without criteria.
    """
    args = args or {}
    criteria = family.build_search_criteria(args)

    if not criteria:
        policy = family.empty_search
        if policy is EmptySearch.ERROR_OUTCOME:
            return operation_outcome(family.empty_search_message)
        if policy is EmptySearch.EMPTY_RESULT or (
            policy is EmptySearch.UNFILTERED_IF_NO_ARGS and args
        ):
            logger.warning(
                "%s (arguments: %s)", family.empty_search_message or "No search criteria", args
            )
            return []
        logger.warning("%s Running an unfiltered search.", family.empty_search_message or "No search criteria.")

    query = "&".join(criteria)
    logger.debug("Searching %s with query %r", family.resource_type, query)
    results = await client.search_resources(family.resource_type, query)
    logger.info("Found %d %s resource(s)", len(results), family.resource_type)
    return results
