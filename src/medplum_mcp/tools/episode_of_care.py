"""EpisodeOfCare tools.

Repository operations used:
- POST /EpisodeOfCare        create
- GET  /EpisodeOfCare/{id}   read
- PUT  /EpisodeOfCare/{id}   update (after a read to merge the patch)
- GET  /EpisodeOfCare?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.episode_of_care import FAMILY
from medplum_mcp.tools import base


async def create_episode_of_care(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create an EpisodeOfCare from convenience arguments."""
    return await base.create_resource(FAMILY, args, client=client)


async def get_episode_of_care_by_id(
    episode_of_care_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    """Fetch an EpisodeOfCare by id, or None if it does not exist."""
    return await base.read_resource(FAMILY, episode_of_care_id, client=client)


async def update_episode_of_care(
    episode_of_care_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to an EpisodeOfCare. None values clear fields."""
    return await base.update_resource(FAMILY, episode_of_care_id, updates, client=client)


async def search_episodes_of_care(
    args: dict[str, Any], *, client: MedplumClient
) -> list[dict[str, Any]] | dict[str, Any]:
    """Search episodes of care by patient, status, type, organization or date."""
    return await base.search_resources(FAMILY, args, client=client)
