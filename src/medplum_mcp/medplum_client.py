"""HTTP client for the Medplum FHIR API with OAuth2 authentication.

This module provides the MedplumClient class, which handles:
1. Token acquisition via the OAuth2 "client credentials" grant
2. Automatic token refresh when the access token expires
3. The four repository primitives the tools are built on:
   create, read, update and search of FHIR resources

Concept — OAuth2 Client Credentials Grant:
    A Medplum ClientApplication has a client_id and client_secret. The
    client posts both to the token endpoint and receives:
    - access_token: A short-lived token included in every API request
    - expires_in: Seconds until the access token expires
    - refresh_token: Optional; used to renew without resending the secret

    Authentication is lazy: nothing happens until the first repository
    call, so the server can start (and list its tools) without credentials.

Concept — Error normalization:
    Every failed request is turned into a RepositoryOutcomeError (or its
    NotFoundError subclass) right here, carrying the server's
    OperationOutcome when it sent one. Tool code never inspects raw
    httpx responses.

Usage:
    client = init_client()
    patient = await client.read_resource("Patient", "123")
    await teardown_client(client)
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from medplum_mcp.config import (
    MEDPLUM_BASE_URL,
    MEDPLUM_CLIENT_ID,
    MEDPLUM_CLIENT_SECRET,
    MEDPLUM_FHIR_PATH,
    MEDPLUM_SSL_VERIFY,
    MEDPLUM_TIMEOUT,
)
from medplum_mcp.errors import (
    NotFoundError,
    RepositoryOutcomeError,
    ToolError,
    outcome_issue_code,
)

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class MedplumAuthError(ToolError):
    """Raised when OAuth2 authentication or token refresh fails."""


class MedplumClient:
    """Async HTTP client for the Medplum FHIR API with OAuth2 auth.

    Attributes:
        base_url: The Medplum server URL (e.g., "http://localhost:8103").
        fhir_base: Full FHIR base URL (e.g., "http://localhost:8103/fhir/R4").
        token_url: The OAuth2 token endpoint.
    """

    def __init__(
        self,
        base_url: str = MEDPLUM_BASE_URL,
        client_id: str = MEDPLUM_CLIENT_ID,
        client_secret: str = MEDPLUM_CLIENT_SECRET,
        fhir_path: str = MEDPLUM_FHIR_PATH,
        timeout: float = MEDPLUM_TIMEOUT,
        verify_ssl: bool = MEDPLUM_SSL_VERIFY,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret

        self.token_url = f"{self.base_url}/oauth2/token"
        self.fhir_base = f"{self.base_url}/{fhir_path.strip('/')}"

        # Token state — starts empty, populated by _token_request()
        self._access_token: str = ""
        self._refresh_token: str = ""
        self._token_expires_at: float = 0.0  # Unix timestamp

        self._http = httpx.AsyncClient(
            verify=verify_ssl,
            timeout=httpx.Timeout(timeout),
        )

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # --- OAuth2 Methods ---

    async def ensure_authenticated(self) -> None:
        """Ensure we hold a valid (non-expired) access token.

        Called before every repository request. Idempotent: returns
        immediately while the current token is still valid.

        Raises:
            MedplumAuthError: If credentials are missing or every grant fails.
        """
        if self._access_token and time.time() < self._token_expires_at:
            return
        if not self.client_id or not self.client_secret:
            raise MedplumAuthError(
                "Medplum client credentials not configured. "
                "Set MEDPLUM_CLIENT_ID and MEDPLUM_CLIENT_SECRET."
            )
        if self._refresh_token:
            logger.info("Access token expired — refreshing")
            await self._refresh_token_grant()
        else:
            logger.info("No token — authenticating with client credentials")
            await self._client_credentials_grant()

    async def _client_credentials_grant(self) -> None:
        """Get an access token using the client credentials grant."""
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        await self._token_request(payload)

    async def _refresh_token_grant(self) -> None:
        """Renew the access token with the refresh token.

        Falls back to a fresh client credentials grant when the refresh
        token is rejected.
        """
        payload = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": self._refresh_token,
        }
        try:
            await self._token_request(payload)
        except MedplumAuthError:
            logger.warning("Token refresh failed — falling back to client credentials")
            self._refresh_token = ""
            await self._client_credentials_grant()

    async def _token_request(self, payload: dict[str, str]) -> None:
        """Send a token request and store the response.

        The token endpoint expects form-encoded data, NOT JSON.

        Raises:
            MedplumAuthError: If the request fails or returns an error.
        """
        try:
            response = await self._http.post(self.token_url, data=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text
            raise MedplumAuthError(
                f"Token request failed (HTTP {exc.response.status_code}): {body}"
            ) from exc
        except httpx.HTTPError as exc:
            raise MedplumAuthError(f"Token request failed: {exc}") from exc

        data = response.json()
        self._access_token = data["access_token"]
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        expires_in = data.get("expires_in", 3600)
        # Refresh 60 seconds early to absorb clock drift and latency.
        self._token_expires_at = time.time() + expires_in - 60
        logger.debug("Token acquired, expires in %d seconds", expires_in)

    # --- Repository primitives ---

    async def create_resource(self, resource: dict[str, Any]) -> dict[str, Any]:
        """Create a resource; returns it with its server-assigned id."""
        resource_type = resource["resourceType"]
        return await self._request("POST", f"/{resource_type}", json_data=resource)

    async def read_resource(self, resource_type: str, resource_id: str) -> dict[str, Any]:
        """Read a resource by type and id.

        Raises:
            NotFoundError: If the server has no such resource.
        """
        return await self._request("GET", f"/{resource_type}/{resource_id}")

    async def update_resource(self, resource: dict[str, Any]) -> dict[str, Any]:
        """Replace a resource with the given full representation."""
        resource_type = resource["resourceType"]
        resource_id = resource["id"]
        return await self._request(
            "PUT", f"/{resource_type}/{resource_id}", json_data=resource
        )

    async def search(self, resource_type: str, query: str = "") -> dict[str, Any]:
        """Run a FHIR search and return the raw searchset Bundle.

        Args:
            resource_type: e.g. "Patient".
            query: Already-encoded query string ("family=Smith&gender=female").
        """
        path = f"/{resource_type}"
        if query:
            path = f"{path}?{query}"
        return await self._request("GET", path)

    async def search_resources(
        self, resource_type: str, query: str = ""
    ) -> list[dict[str, Any]]:
        """Run a FHIR search and return the matching resources as a list."""
        bundle = await self.search(resource_type, query)
        return [
            entry["resource"]
            for entry in bundle.get("entry") or []
            if isinstance(entry, dict) and "resource" in entry
        ]

    async def metadata(self) -> dict[str, Any]:
        """Fetch the server's CapabilityStatement."""
        return await self._request("GET", "/metadata")

    async def _request(
        self,
        method: str,
        path: str,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request to the FHIR API.

        This is the internal method every primitive delegates to. It handles:
        1. Ensuring we have a valid token (acquiring or refreshing if needed)
        2. Setting the Authorization: Bearer header
        3. Turning non-2xx responses into RepositoryOutcomeError

        A 401 drops the cached token so the next call re-authenticates;
        the failed request itself is not retried.
        """
        await self.ensure_authenticated()

        url = f"{self.fhir_base}{path}"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": FHIR_JSON,
        }
        if json_data is not None:
            headers["Content-Type"] = FHIR_JSON

        try:
            response = await self._http.request(
                method,
                url,
                headers=headers,
                json=json_data,
            )
        except httpx.HTTPError as exc:
            raise RepositoryOutcomeError(
                status_code=0,
                detail=f"Request to {url} failed: {exc}",
            ) from exc

        if response.status_code == 401:
            logger.warning("Got 401 — discarding access token")
            self._access_token = ""
            self._token_expires_at = 0.0

        if response.status_code >= 400:
            raise _error_from_response(response)

        return response.json()


def _error_from_response(response: httpx.Response) -> RepositoryOutcomeError:
    """Build the exception for a failed FHIR response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    outcome = None
    detail = response.text
    if isinstance(body, dict) and body.get("resourceType") == "OperationOutcome":
        outcome = body
        diagnostics = [
            issue.get("diagnostics") or issue.get("details", {}).get("text")
            for issue in body.get("issue") or []
            if isinstance(issue, dict)
        ]
        detail = "; ".join(d for d in diagnostics if d) or detail

    if response.status_code == 404 or outcome_issue_code(outcome) == "not-found":
        return NotFoundError(response.status_code, detail or "Not found", outcome)
    return RepositoryOutcomeError(response.status_code, detail, outcome)


def init_client(**overrides: Any) -> MedplumClient:
    """Create a MedplumClient from configuration.

    No network traffic happens here; the first repository call
    authenticates. Keyword arguments override the configured values.
    """
    client = MedplumClient(**overrides)
    logger.info("Medplum client configured for %s", client.fhir_base)
    return client


async def teardown_client(client: MedplumClient) -> None:
    """Release the client's connection pool."""
    await client.close()
