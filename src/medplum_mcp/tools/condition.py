"""Condition (diagnosis) tools.

Repository operations used:
- POST /Condition        create
- GET  /Condition/{id}   read
- PUT  /Condition/{id}   update (after a read to merge the patch)
- GET  /Condition?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.condition import FAMILY
from medplum_mcp.tools import base


async def create_condition(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create a Condition from convenience arguments."""
    return await base.create_resource(FAMILY, args, client=client)


async def get_condition_by_id(
    condition_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    """Fetch a Condition by id, or None if it does not exist."""
    return await base.read_resource(FAMILY, condition_id, client=client)


async def update_condition(
    condition_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to a Condition. None values clear fields."""
    return await base.update_resource(FAMILY, condition_id, updates, client=client)


async def search_conditions(
    args: dict[str, Any], *, client: MedplumClient
) -> list[dict[str, Any]] | dict[str, Any]:
    """Search conditions by patient, category, clinical status or code."""
    return await base.search_resources(FAMILY, args, client=client)
