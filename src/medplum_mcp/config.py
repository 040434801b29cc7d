"""Configuration for the Medplum MCP server.

Loads settings from environment variables (via a .env file or the system
environment). Uses sensible defaults so the module can be imported even
when env vars are not set — tests and the tool catalog never need real
credentials.

Missing credentials only surface when the first repository call tries to
authenticate, as a clear MedplumAuthError rather than a crash at startup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (project root, next to pyproject.toml)
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)

# --- Medplum connection ---
# The base URL of the Medplum server. The FHIR API lives under
# MEDPLUM_FHIR_PATH and the OAuth2 token endpoint under /oauth2/token.
MEDPLUM_BASE_URL: str = os.getenv("MEDPLUM_BASE_URL", "http://localhost:8103/")
MEDPLUM_FHIR_PATH: str = os.getenv("MEDPLUM_FHIR_PATH", "fhir/R4")

# Client credentials of a Medplum ClientApplication
# (Admin > Project > Client Applications).
MEDPLUM_CLIENT_ID: str = os.getenv("MEDPLUM_CLIENT_ID", "")
MEDPLUM_CLIENT_SECRET: str = os.getenv("MEDPLUM_CLIENT_SECRET", "")

# Seconds before an HTTP request to Medplum is abandoned
MEDPLUM_TIMEOUT: float = float(os.getenv("MEDPLUM_TIMEOUT", "30"))

# Set to "false" for local servers with self-signed certificates
MEDPLUM_SSL_VERIFY: bool = os.getenv("MEDPLUM_SSL_VERIFY", "true").lower() != "false"

# --- Server identity ---
SERVER_NAME: str = "medplum-mcp-server"
SERVER_VERSION: str = "1.0.0"

# --- Logging ---
# Logs always go to stderr; stdout carries the MCP protocol.
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- LLM harness ---
# Only needed by the interactive harness (medplum-mcp-harness).
ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
