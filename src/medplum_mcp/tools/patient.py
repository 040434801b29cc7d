"""Patient tools.

Repository operations used:
- POST /Patient          create a patient
- GET  /Patient/{id}     read one patient
- PUT  /Patient/{id}     write back a merged update
- GET  /Patient?...      search by name, birth date, gender, identifier
"""

from __future__ import annotations

from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.patient import FAMILY
from medplum_mcp.tools import base


async def create_patient(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Create a new patient.

    Args:
        args: firstName, lastName and birthDate (YYYY-MM-DD) are required;
            gender, phone and email are optional.

    Returns:
        The created Patient resource, including its server-assigned id.
    """
    return await base.create_resource(FAMILY, args, client=client)


async def get_patient_by_id(
    patient_id: str | None, *, client: MedplumClient
) -> dict[str, Any] | None:
    """Get a patient by id.

    Returns:
        The Patient resource, or None if no patient has that id.
    """
    return await base.read_resource(FAMILY, patient_id, client=client)


async def update_patient(
    patient_id: str | None, updates: dict[str, Any], *, client: MedplumClient
) -> dict[str, Any]:
    """Update an existing patient.

    firstName/lastName edit the patient's first name entry; other keys are
    merged into the stored resource. A None value removes the field.
    """
    return await base.update_resource(FAMILY, patient_id, updates, client=client)


async def search_patients(args: dict[str, Any], *, client: MedplumClient) -> list[dict[str, Any]]:
    """Search patients. Returns [] without calling the server if no criteria are given."""
    return await base.search_resources(FAMILY, args, client=client)
