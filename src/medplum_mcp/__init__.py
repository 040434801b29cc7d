"""Medplum MCP server.

Exposes create/get/update/search tools over FHIR R4 resources stored in a
Medplum server. Callers send flat convenience arguments ("patientId",
"classCode", "note") and the package turns them into canonical FHIR
resources, merging partial updates into what the server already holds.

Entry points:
- medplum_mcp.server   MCP over stdio
- medplum_mcp.app      the same catalog over HTTP (FastAPI)
- medplum_mcp.harness  a Claude-driven ReAct loop over the catalog
"""
