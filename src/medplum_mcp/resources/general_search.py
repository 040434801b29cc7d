"""Query-string builder for the resource-agnostic FHIR search tool."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from medplum_mcp.errors import operation_outcome
from medplum_mcp.resources.base import clause


def missing_criteria_outcome(args: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return an OperationOutcome when resourceType or queryParams is missing."""
    resource_type = args.get("resourceType")
    if not isinstance(resource_type, str) or not resource_type.strip():
        return operation_outcome("Resource type is required for general FHIR search.")
    query_params = args.get("queryParams")
    if not isinstance(query_params, Mapping) or not query_params:
        return operation_outcome(
            "At least one query parameter is required for general FHIR search."
        )
    return None


def build_query(query_params: Mapping[str, Any]) -> str:
    """Serialize queryParams into a FHIR query string.

    List values repeat the key (``code=a&code=b``), except ``_id`` whose
    values are joined with commas into a single clause.

    >>> build_query({"family": "Smith", "_id": ["1", "2"]})
    'family=Smith&_id=1,2'
    """
    parts = []
    for key, value in query_params.items():
        name = quote(str(key), safe=":.-")
        if isinstance(value, (list, tuple)):
            if key == "_id":
                parts.append(clause(name, ",".join(str(item) for item in value)))
            else:
                parts.extend(clause(name, item) for item in value)
        else:
            parts.append(clause(name, value))
    return "&".join(parts)
