"""Resource-agnostic FHIR search.

Repository operation used:
- GET /{resourceType}?{queryParams}   returns the raw searchset Bundle
"""

from __future__ import annotations

import logging
from typing import Any

from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.resources.general_search import build_query, missing_criteria_outcome

logger = logging.getLogger(__name__)


async def general_fhir_search(args: dict[str, Any], *, client: MedplumClient) -> dict[str, Any]:
    """Search any resource type with caller-supplied FHIR query parameters.

    Args:
        args: ``resourceType`` (e.g. "Patient") and ``queryParams``, a mapping
            of FHIR search parameters to a string, number, boolean or list
            of strings.

    Returns:
        The searchset Bundle, or an OperationOutcome when resourceType or
        queryParams is missing.
    """
    outcome = missing_criteria_outcome(args or {})
    if outcome is not None:
        return outcome

    resource_type = args["resourceType"].strip()
    query = build_query(args["queryParams"])
    logger.info("General FHIR search on %s: %s", resource_type, query)

    bundle = await client.search(resource_type, query)
    logger.info(
        "General FHIR search found %d resource(s)", len(bundle.get("entry") or [])
    )
    return bundle
