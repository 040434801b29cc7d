"""Resource families: convenience arguments <-> canonical FHIR resources.

Each module exposes a FAMILY (a ResourceFamily) with the create, update,
search and read-back conversions for one resource type.
"""

from medplum_mcp.resources import (
    condition,
    encounter,
    episode_of_care,
    medication,
    medication_request,
    observation,
    organization,
    patient,
    practitioner,
)
from medplum_mcp.resources.base import CLEAR, EmptySearch, ResourceFamily

FAMILIES: dict[str, ResourceFamily] = {
    family.resource_type: family
    for family in (
        patient.FAMILY,
        practitioner.FAMILY,
        organization.FAMILY,
        encounter.FAMILY,
        observation.FAMILY,
        medication_request.FAMILY,
        medication.FAMILY,
        episode_of_care.FAMILY,
        condition.FAMILY,
    )
}

__all__ = ["CLEAR", "EmptySearch", "FAMILIES", "ResourceFamily"]
