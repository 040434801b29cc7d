"""Medication tools.

Repository operations used:
- POST /Medication        create
- GET  /Medication/{id}   read
- PUT  /Medication/{id}   update (after a read to merge the patch)
- GET  /Medication?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.medication import FAMILY
from medplum_mcp.tools import base


async def create_medication(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create a Medication from convenience arguments."""
    return await base.create_resource(FAMILY, args, client=client)


async def get_medication_by_id(
    medication_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    """Fetch a Medication by id, or None if it does not exist."""
    return await base.read_resource(FAMILY, medication_id, client=client)


async def update_medication(
    medication_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to a Medication. None values clear fields."""
    return await base.update_resource(FAMILY, medication_id, updates, client=client)


async def search_medications(
    args: dict[str, Any], *, client: MedplumClient
) -> list[dict[str, Any]] | dict[str, Any]:
    """Search medications by code, identifier or status."""
    return await base.search_resources(FAMILY, args, client=client)
