"""Tests for the Medplum API client.

These tests use httpx's MockTransport to simulate HTTP responses from the
Medplum server. No real server connection is needed; everything is faked.

Concept — Mocking HTTP calls:
    We replace httpx's transport layer with a function that returns
    pre-defined responses. This lets us test token acquisition, refresh
    logic, and error normalization without any external dependencies.
"""

import json
import time

import httpx
import pytest

from medplum_mcp.errors import NotFoundError, RepositoryOutcomeError
from medplum_mcp.medplum_client import MedplumAuthError, MedplumClient, init_client

# --- Test helpers ---


def _token_response(
    access_token: str = "test-access-token",
    refresh_token: str = "test-refresh-token",
    expires_in: int = 3600,
) -> dict[str, object]:
    """Build a fake token endpoint response."""
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
    }


def _outcome(code: str, diagnostics: str) -> dict[str, object]:
    return {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": "error", "code": code, "diagnostics": diagnostics}],
    }


def _make_client(handler, **kwargs: object) -> MedplumClient:  # type: ignore[no-untyped-def]
    """Create a client with test defaults wired to a mock transport."""
    defaults: dict[str, object] = {
        "base_url": "http://medplum.test/",
        "client_id": "test-client-id",
        "client_secret": "test-client-secret",
    }
    defaults.update(kwargs)
    client = MedplumClient(**defaults)  # type: ignore[arg-type]
    client._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


# --- Token acquisition tests ---


class TestTokenAcquisition:
    """Tests for getting and refreshing OAuth2 tokens."""

    def test_urls_built_from_base(self) -> None:
        client = MedplumClient(base_url="http://medplum.test/", client_id="a", client_secret="b")
        assert client.token_url == "http://medplum.test/oauth2/token"
        assert client.fhir_base == "http://medplum.test/fhir/R4"

    @pytest.mark.asyncio
    async def test_client_credentials_success(self) -> None:
        """Client credentials grant should store access + refresh tokens."""
        bodies: list[str] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content.decode())
            return httpx.Response(200, json=_token_response())

        client = _make_client(handler)
        await client.ensure_authenticated()

        assert "grant_type=client_credentials" in bodies[0]
        assert "client_id=test-client-id" in bodies[0]
        assert client._access_token == "test-access-token"
        assert client._refresh_token == "test-refresh-token"
        assert client._token_expires_at > time.time()

        await client.close()

    @pytest.mark.asyncio
    async def test_valid_token_is_reused(self) -> None:
        calls = {"count": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(200, json=_token_response())

        client = _make_client(handler)
        await client.ensure_authenticated()
        await client.ensure_authenticated()

        assert calls["count"] == 1

        await client.close()

    @pytest.mark.asyncio
    async def test_missing_credentials_raise_auth_error(self) -> None:
        """No credentials should fail without touching the network."""

        async def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = _make_client(handler, client_id="", client_secret="")

        with pytest.raises(MedplumAuthError, match="MEDPLUM_CLIENT_ID"):
            await client.ensure_authenticated()

        await client.close()

    @pytest.mark.asyncio
    async def test_token_failure_raises_auth_error(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        client = _make_client(handler)

        with pytest.raises(MedplumAuthError, match="401"):
            await client.ensure_authenticated()

        await client.close()

    @pytest.mark.asyncio
    async def test_token_refresh_on_expiry(self) -> None:
        """ensure_authenticated() should use the refresh token once expired."""
        call_log: list[str] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            body = request.content.decode()
            if "grant_type=client_credentials" in body:
                call_log.append("client_credentials")
                return httpx.Response(200, json=_token_response())
            if "grant_type=refresh_token" in body:
                call_log.append("refresh")
                return httpx.Response(200, json=_token_response(access_token="refreshed-token"))
            return httpx.Response(404)

        client = _make_client(handler)
        await client.ensure_authenticated()
        client._token_expires_at = time.time() - 1

        await client.ensure_authenticated()

        assert call_log == ["client_credentials", "refresh"]
        assert client._access_token == "refreshed-token"

        await client.close()

    @pytest.mark.asyncio
    async def test_refresh_failure_falls_back_to_client_credentials(self) -> None:
        call_count = {"client_credentials": 0, "refresh": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            body = request.content.decode()
            if "grant_type=refresh_token" in body:
                call_count["refresh"] += 1
                return httpx.Response(400, json={"error": "invalid_grant"})
            call_count["client_credentials"] += 1
            return httpx.Response(200, json=_token_response())

        client = _make_client(handler)
        await client.ensure_authenticated()
        client._token_expires_at = time.time() - 1

        await client.ensure_authenticated()

        assert call_count == {"client_credentials": 2, "refresh": 1}

        await client.close()


# --- Repository primitive tests ---


class TestRepositoryRequests:
    """Tests for the authenticated FHIR requests."""

    @pytest.mark.asyncio
    async def test_read_adds_bearer_header(self) -> None:
        captured: dict[str, str] = {}

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            captured["url"] = str(request.url)
            captured["authorization"] = request.headers["authorization"]
            return httpx.Response(200, json={"resourceType": "Patient", "id": "p1"})

        client = _make_client(handler)
        patient = await client.read_resource("Patient", "p1")

        assert patient["id"] == "p1"
        assert captured["url"] == "http://medplum.test/fhir/R4/Patient/p1"
        assert captured["authorization"] == "Bearer test-access-token"

        await client.close()

    @pytest.mark.asyncio
    async def test_create_posts_resource(self) -> None:
        seen: dict[str, object] = {}

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["content_type"] = request.headers["content-type"]
            return httpx.Response(201, json={**seen["body"], "id": "new-id"})

        client = _make_client(handler)
        created = await client.create_resource({"resourceType": "Patient", "birthDate": "1990-01-01"})

        assert created["id"] == "new-id"
        assert seen["method"] == "POST"
        assert seen["path"] == "/fhir/R4/Patient"
        assert seen["content_type"] == "application/fhir+json"

        await client.close()

    @pytest.mark.asyncio
    async def test_update_puts_to_resource_url(self) -> None:
        seen: dict[str, str] = {}

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json=json.loads(request.content))

        client = _make_client(handler)
        await client.update_resource({"resourceType": "Encounter", "id": "e1", "status": "finished"})

        assert seen == {"method": "PUT", "path": "/fhir/R4/Encounter/e1"}

        await client.close()

    @pytest.mark.asyncio
    async def test_search_resources_unwraps_bundle(self) -> None:
        seen: dict[str, str] = {}

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            seen["query"] = request.url.query.decode()
            return httpx.Response(
                200,
                json={
                    "resourceType": "Bundle",
                    "type": "searchset",
                    "entry": [
                        {"resource": {"resourceType": "Patient", "id": "a"}},
                        {"resource": {"resourceType": "Patient", "id": "b"}},
                    ],
                },
            )

        client = _make_client(handler)
        patients = await client.search_resources("Patient", "family=Smith&gender=female")

        assert [p["id"] for p in patients] == ["a", "b"]
        assert seen["query"] == "family=Smith&gender=female"

        await client.close()

    @pytest.mark.asyncio
    async def test_401_drops_token_without_retry(self) -> None:
        attempt = {"count": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            attempt["count"] += 1
            return httpx.Response(401, json=_outcome("login", "Unauthorized"))

        client = _make_client(handler)

        with pytest.raises(RepositoryOutcomeError) as excinfo:
            await client.read_resource("Patient", "p1")

        assert excinfo.value.status_code == 401
        assert attempt["count"] == 1
        assert client._access_token == ""

        await client.close()

    @pytest.mark.asyncio
    async def test_404_raises_not_found_with_outcome(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            return httpx.Response(404, json=_outcome("not-found", "Not found"))

        client = _make_client(handler)

        with pytest.raises(NotFoundError) as excinfo:
            await client.read_resource("Patient", "missing")

        assert excinfo.value.outcome["issue"][0]["code"] == "not-found"
        assert "Not found" in str(excinfo.value)

        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_without_outcome(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            return httpx.Response(500, text="Internal Server Error")

        client = _make_client(handler)

        with pytest.raises(RepositoryOutcomeError, match="500") as excinfo:
            await client.search("Patient", "name=x")

        assert excinfo.value.outcome is None
        assert not isinstance(excinfo.value, NotFoundError)

        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_has_status_zero(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth2/token":
                return httpx.Response(200, json=_token_response())
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler)

        with pytest.raises(RepositoryOutcomeError) as excinfo:
            await client.metadata()

        assert excinfo.value.status_code == 0

        await client.close()


def test_init_client_applies_overrides() -> None:
    client = init_client(base_url="http://other.test", fhir_path="/fhir/R4/")
    assert client.fhir_base == "http://other.test/fhir/R4"
