"""MedicationRequest (prescription) tools.

Repository operations used:
- POST /MedicationRequest        create
- GET  /MedicationRequest/{id}   read
- PUT  /MedicationRequest/{id}   update (after a read to merge the patch)
- GET  /MedicationRequest?...    search
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.medication_request import FAMILY
from medplum_mcp.tools import base


async def create_medication_request(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create a MedicationRequest.

    The medication is given either as medicationCodeableConcept or as
    medicationReference (a Medication id), not both. authoredOn defaults
    to now.
    """
    return await base.create_resource(FAMILY, args, client=client)


async def get_medication_request_by_id(
    medication_request_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    """Fetch a MedicationRequest by id, or None if it does not exist."""
    return await base.read_resource(FAMILY, medication_request_id, client=client)


async def update_medication_request(
    medication_request_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Apply a partial update to a MedicationRequest. None values clear fields."""
    return await base.update_resource(FAMILY, medication_request_id, updates, client=client)


async def search_medication_requests(args: dict[str, Any], *, client: MedplumClient) -> list[dict[str, Any]]:
    """Search medication requests by patient, status, intent or code."""
    return await base.search_resources(FAMILY, args, client=client)
