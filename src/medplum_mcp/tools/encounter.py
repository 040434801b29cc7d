"""Encounter tools.

Repository operations used:
- POST /Encounter        create
- GET  /Encounter/{id}   read
- PUT  /Encounter/{id}   update (after a read to merge the patch)
- GET  /Encounter?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.encounter import FAMILY
from medplum_mcp.tools import base


async def create_encounter(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create an Encounter from convenience arguments."""
    return await base.create_resource(FAMILY, args, client=client)


async def get_encounter_by_id(
    encounter_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    return await base.read_resource(FAMILY, encounter_id, client=client)


async def update_encounter(
    encounter_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to an Encounter. None values clear fields."""
    return await base.update_resource(FAMILY, encounter_id, updates, client=client)


async def search_encounters(args: dict[str, Any], *, client: MedplumClient) -> list[dict[str, Any]]:
    """Search encounters by patient, practitioner, status, class or date."""
    return await base.search_resources(FAMILY, args, client=client)
