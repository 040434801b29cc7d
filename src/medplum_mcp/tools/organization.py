"""Organization tools.

Repository operations used:
- POST /Organization        create
- GET  /Organization/{id}   read
- PUT  /Organization/{id}   update (after a read to merge the patch)
- GET  /Organization?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.organization import FAMILY
from medplum_mcp.tools import base


async def create_organization(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create an Organization from convenience arguments."""
    return await base.create_resource(FAMILY, args, client=client)


async def get_organization_by_id(
    organization_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    return await base.read_resource(FAMILY, organization_id, client=client)


async def update_organization(
    organization_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to an Organization. None values clear fields."""
    return await base.update_resource(FAMILY, organization_id, updates, client=client)


async def search_organizations(args: dict[str, Any], *, client: MedplumClient) -> list[dict[str, Any]]:
    """Search organizations by name, identifier, type or address."""
    return await base.search_resources(FAMILY, args, client=client)
