"""Medplum MCP server: exposes the FHIR tool catalog over stdio.

Run with ``medplum-mcp-server`` (or ``python -m medplum_mcp``). stdout
carries the MCP protocol, so all logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from medplum_mcp.config import LOG_LEVEL, SERVER_NAME, SERVER_VERSION
from medplum_mcp.medplum_client import init_client, teardown_client
from medplum_mcp.registry import build_registry
from medplum_mcp.router import ToolRouter

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send log records to stderr; stdout belongs to the protocol."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def create_server(router: ToolRouter) -> Server:
    """Build an MCP Server whose tools are served by the router."""
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=entry["name"],
                description=entry["description"],
                inputSchema=entry["inputSchema"],
            )
            for entry in router.registry.catalog()
        ]

    # The router does its own argument checks and reports them in the envelope.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        response = await router.dispatch(name, arguments)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=response.text)],
            isError=response.is_error,
        )

    return server


async def serve() -> None:
    """Run the server on stdio until the client disconnects."""
    client = init_client()
    registry = build_registry()
    router = ToolRouter(registry, client)
    server = create_server(router)
    logger.info("%s %s starting with %d tools", SERVER_NAME, SERVER_VERSION, len(registry))
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await teardown_client(client)
        logger.info("%s stopped", SERVER_NAME)


def main() -> None:
    configure_logging()
    asyncio.run(serve())


if __name__ == "__main__":
    main()
