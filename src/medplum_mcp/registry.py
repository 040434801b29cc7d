"""The tool catalog.

A ToolDescriptor ties a tool name to its schema, its handler and the way
the router must call that handler:

    BY_ID         handler(arguments[id_key], client=...)
    UPDATE        handler(arguments[id_key], remaining_arguments, client=...)
    WHOLE_OBJECT  handler(arguments, client=...)

The registry is built once and never changes afterwards.
"""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from medplum_mcp.tool_schemas import TOOL_SCHEMAS
from medplum_mcp.tools import (
    condition,
    encounter,
    episode_of_care,
    general_search,
    medication,
    medication_request,
    observation,
    organization,
    patient,
    practitioner,
)

Handler = Callable[..., Awaitable[Any]]


class Marshaling(enum.Enum):
    BY_ID = "byId"
    UPDATE = "update"
    WHOLE_OBJECT = "wholeObject"


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: dict[str, Any]
    marshaling: Marshaling
    handler: Handler
    id_key: str | None = None

    def __post_init__(self) -> None:
        if self.marshaling is not Marshaling.WHOLE_OBJECT and not self.id_key:
            raise ValueError(f"Tool {self.name} needs an id_key for {self.marshaling.value} calls")

    def to_catalog_entry(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolRegistry:
    """Ordered, read-only mapping of tool name to descriptor."""

    def __init__(self, descriptors: list[ToolDescriptor]) -> None:
        tools: dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in tools:
                raise ValueError(f"Duplicate tool name: {descriptor.name}")
            tools[descriptor.name] = descriptor
        self._tools = MappingProxyType(tools)

    def lookup(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def catalog(self) -> list[dict[str, Any]]:
        return [descriptor.to_catalog_entry() for descriptor in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


def _tool(
    name: str,
    handler: Handler,
    marshaling: Marshaling = Marshaling.WHOLE_OBJECT,
    id_key: str | None = None,
) -> ToolDescriptor:
    description, input_schema = TOOL_SCHEMAS[name]
    return ToolDescriptor(
        name=name,
        description=description,
        input_schema=input_schema,
        marshaling=marshaling,
        handler=handler,
        id_key=id_key,
    )


def _crud(
    resource: str,
    id_key: str,
    module: Any,
    snake: str,
    search_tool: str,
    search_handler: str,
) -> list[ToolDescriptor]:
    """The create/get/update/search quartet of one family."""
    return [
        _tool(f"create{resource}", getattr(module, f"create_{snake}")),
        _tool(f"get{resource}ById", getattr(module, f"get_{snake}_by_id"), Marshaling.BY_ID, id_key),
        _tool(f"update{resource}", getattr(module, f"update_{snake}"), Marshaling.UPDATE, id_key),
        _tool(search_tool, getattr(module, search_handler)),
    ]


def build_registry() -> ToolRegistry:
    """Build the full catalog in its published order."""
    descriptors = [
        *_crud("Patient", "patientId", patient, "patient", "searchPatients", "search_patients"),
        _tool("searchPractitionersByName", practitioner.search_practitioners_by_name),
        *_crud(
            "Practitioner", "practitionerId", practitioner, "practitioner",
            "searchPractitioners", "search_practitioners",
        ),
        *_crud(
            "Organization", "organizationId", organization, "organization",
            "searchOrganizations", "search_organizations",
        ),
        *_crud(
            "Encounter", "encounterId", encounter, "encounter",
            "searchEncounters", "search_encounters",
        ),
        *_crud(
            "Observation", "observationId", observation, "observation",
            "searchObservations", "search_observations",
        ),
        *_crud(
            "MedicationRequest", "medicationRequestId", medication_request, "medication_request",
            "searchMedicationRequests", "search_medication_requests",
        ),
        *_crud(
            "Medication", "medicationId", medication, "medication",
            "searchMedications", "search_medications",
        ),
        *_crud(
            "EpisodeOfCare", "episodeOfCareId", episode_of_care, "episode_of_care",
            "searchEpisodesOfCare", "search_episodes_of_care",
        ),
        *_crud(
            "Condition", "conditionId", condition, "condition",
            "searchConditions", "search_conditions",
        ),
        _tool("generalFhirSearch", general_search.general_fhir_search),
    ]
    return ToolRegistry(descriptors)
