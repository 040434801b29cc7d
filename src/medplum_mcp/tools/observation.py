"""Observation tools (lab results, vital signs, survey answers).

Repository operations used:
- POST /Observation        create
- GET  /Observation/{id}   read
- PUT  /Observation/{id}   update (after a read to merge the patch)
- GET  /Observation?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.observation import FAMILY
from medplum_mcp.tools import base


async def create_observation(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Record a new Observation.

    Args:
        args: Convenience arguments. Requires a subject (subjectId or
            patientId), a code, a status and exactly one value[x] field.
            A bare number for valueQuantity becomes a Quantity; issued
            defaults to now.

    Returns:
        The created Observation as stored by the server.

    Raises:
        ValidationError: Before any request, when a required field is missing.
    """
    return await base.create_resource(FAMILY, args, client=client)


async def get_observation_by_id(
    observation_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    return await base.read_resource(FAMILY, observation_id, client=client)


async def update_observation(
    observation_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to an Observation.

    Writing one value[x] (or effective[x]) field replaces whichever one the
    stored Observation had. A None value removes the field.
    """
    return await base.update_resource(FAMILY, observation_id, updates, client=client)


async def search_observations(args: dict[str, Any], *, client: MedplumClient) -> list[dict[str, Any]]:
    """Search observations.

    ``date`` without a comparison prefix is searched as ``eq<date>``;
    ``code`` with ``codeSystem`` becomes ``system|code``.
    """
    return await base.search_resources(FAMILY, args, client=client)
