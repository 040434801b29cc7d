"""Practitioner tools (doctors, nurses, other clinicians).

Repository operations used:
- POST /Practitioner        create
- GET  /Practitioner/{id}   read
- PUT  /Practitioner/{id}   update
- GET  /Practitioner?...    search (by name, or by name/specialty/identifier)
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.practitioner import FAMILY, NAME_SEARCH_FAMILY
from medplum_mcp.tools import base


async def search_practitioners_by_name(
    args: dict[str, Any], *, client: MedplumClient
) -> list[dict[str, Any]]:
    """Search practitioners by givenName, familyName or a general name.

    Returns [] when none of the three is given.
    """
    return await base.search_resources(NAME_SEARCH_FAMILY, args, client=client)


async def create_practitioner(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create a practitioner. givenName and familyName are required."""
    return await base.create_resource(FAMILY, args, client=client)


async def get_practitioner_by_id(
    practitioner_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    return await base.read_resource(FAMILY, practitioner_id, client=client)


async def update_practitioner(
    practitioner_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    return await base.update_resource(FAMILY, practitioner_id, updates, client=client)


async def search_practitioners(
    args: dict[str, Any], *, client: MedplumClient
) -> list[dict[str, Any]]:
    """Search practitioners by name, given, family, specialty or identifier.

    Unlike the name search, no criteria means an unfiltered search (the
    server returns its first page).
    """
    return await base.search_resources(FAMILY, args, client=client)
