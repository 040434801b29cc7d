"""Tests for the medplum-mcp-check command."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from medplum_mcp import connection_check
from medplum_mcp.medplum_client import MedplumAuthError


@pytest.mark.asyncio
async def test_check_connection_summarizes_capability_statement() -> None:
    client = AsyncMock()
    client.fhir_base = "http://localhost:8103/fhir/R4"
    client.metadata.return_value = {
        "resourceType": "CapabilityStatement",
        "fhirVersion": "4.0.1",
        "software": {"name": "Medplum", "version": "3.2.0"},
    }

    summary = await connection_check.check_connection(client)

    client.ensure_authenticated.assert_awaited_once()
    assert summary == {
        "fhir_base": "http://localhost:8103/fhir/R4",
        "fhirVersion": "4.0.1",
        "software": "Medplum 3.2.0",
    }


@pytest.mark.asyncio
async def test_run_reports_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    client = AsyncMock()
    client.ensure_authenticated.side_effect = MedplumAuthError("credentials not configured")
    monkeypatch.setattr(connection_check, "init_client", lambda: client)

    assert await connection_check._run() == 1
    client.close.assert_awaited_once()
