"""Check that the configured Medplum server is reachable and the credentials work.

Usage:
    medplum-mcp-check

Authenticates with the client credentials grant, fetches the server's
CapabilityStatement and prints what it found. Exits non-zero on failure.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from medplum_mcp.config import LOG_LEVEL
from medplum_mcp.errors import ToolError
from medplum_mcp.medplum_client import MedplumClient, init_client, teardown_client

logger = logging.getLogger(__name__)


async def check_connection(client: MedplumClient) -> dict[str, str]:
    """Authenticate and read /metadata; return a short summary."""
    await client.ensure_authenticated()
    capability = await client.metadata()
    software = capability.get("software") or {}
    return {
        "fhir_base": client.fhir_base,
        "fhirVersion": capability.get("fhirVersion", "unknown"),
        "software": f"{software.get('name', 'unknown')} {software.get('version', '')}".strip(),
    }


async def _run() -> int:
    client = init_client()
    try:
        summary = await check_connection(client)
    except ToolError as exc:
        logger.error("Connection check failed: %s", exc)
        return 1
    finally:
        await teardown_client(client)

    for key, value in summary.items():
        print(f"{key}: {value}")
    return 0


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL)
    sys.exit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
