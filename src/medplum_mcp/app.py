"""FastAPI server: the HTTP entry point for the tool catalog.

Exposes the same tools as the MCP server for callers that speak plain
HTTP, plus a chat endpoint backed by the LLM harness:

- GET  /health       Simple check that the server is running
- GET  /tools        The tool catalog (name, description, inputSchema)
- POST /tools/call   Run one tool: {name, arguments} -> {content, isError}
- POST /agent/chat   Send a message to the Claude harness

FastAPI validates request/response bodies with the Pydantic models below
and serves interactive docs at /docs.

Run locally with:
    uvicorn medplum_mcp.app:app --reload
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from pydantic import BaseModel

from medplum_mcp.config import SERVER_NAME, SERVER_VERSION
from medplum_mcp import harness
from medplum_mcp.medplum_client import init_client, teardown_client
from medplum_mcp.registry import build_registry
from medplum_mcp.router import ToolRouter


class ToolCallRequest(BaseModel):
    """What the client sends to /tools/call."""

    name: str
    arguments: dict[str, Any] | None = None


class TextContent(BaseModel):
    type: str = "text"
    text: str


class ToolCallResponse(BaseModel):
    """Mirrors the MCP CallToolResult shape."""

    content: list[TextContent]
    isError: bool = False


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    response: str


def create_app(router: ToolRouter | None = None) -> FastAPI:
    """Build the app.

    Without a router, one is created at startup and its Medplum client is
    closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.agent = None
        if router is not None:
            app.state.router = router
            yield
            return
        client = init_client()
        app.state.router = ToolRouter(build_registry(), client)
        try:
            yield
        finally:
            await teardown_client(client)

    app = FastAPI(
        title="Medplum MCP Server",
        description="FHIR create/read/update/search tools for a Medplum server",
        version=SERVER_VERSION,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint. Returns 200 if the server is running."""
        return {"status": "ok", "server": SERVER_NAME}

    @app.get("/tools")
    async def list_tools(request: Request) -> dict[str, list[dict[str, Any]]]:
        return {"tools": request.app.state.router.registry.catalog()}

    @app.post("/tools/call", response_model=ToolCallResponse)
    async def call_tool(body: ToolCallRequest, request: Request) -> ToolCallResponse:
        """Run one tool through the router.

        Failures are reported in the envelope inside ``content``; the HTTP
        status stays 200 as it would for an MCP call.
        """
        response = await request.app.state.router.dispatch(body.name, body.arguments)
        return ToolCallResponse(
            content=[TextContent(text=response.text)],
            isError=response.is_error,
        )

    @app.post("/agent/chat", response_model=ChatResponse)
    async def chat(body: ChatRequest, request: Request) -> ChatResponse:
        """Process a chat message through the Claude harness."""
        state = request.app.state
        answer = await harness.run_agent(body.message, state.router, _get_agent(state))
        return ChatResponse(response=answer)

    return app


def _get_agent(state: Any) -> Any:
    """Return the harness agent, creating it on first use.

    The agent is compiled once per app and kept on app.state; without an
    API key there is nothing to build and run_agent answers with a placeholder.
    """
    if state.agent is None and harness.ANTHROPIC_API_KEY:
        state.agent = harness.create_agent(state.router)
    return state.agent


app = create_app()
