"""Request router: {name, arguments} in, one serialized envelope out.

dispatch() never raises. Every outcome, including bad tool names and
missing arguments, comes back as a ToolResponse whose ``text`` is the JSON
envelope the caller sees. ``is_error`` is the protocol-level flag and is
only set when the call itself was malformed (unknown tool, no arguments);
a tool that ran and failed reports ``success: false`` in the envelope.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from medplum_mcp.errors import (
    AmbiguousIdError,
    ToolError,
    UnknownToolError,
    ValidationError,
    error_envelope,
    is_error_outcome,
    outcome_envelope,
    success_envelope,
)
from medplum_mcp.medplum_client import MedplumClient
from medplum_mcp.registry import Marshaling, ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResponse:
    envelope: dict[str, Any]
    text: str
    is_error: bool = False


def _serialize(envelope: dict[str, Any], is_error: bool) -> ToolResponse:
    try:
        text = json.dumps(envelope, indent=2)
    except (TypeError, ValueError) as exc:
        logger.error("Could not serialize tool result: %s", exc)
        envelope = {"success": False, "error": f"Could not serialize tool result: {exc}"}
        return ToolResponse(envelope, json.dumps(envelope, indent=2), True)
    return ToolResponse(envelope, text, is_error)


def _extract_id(descriptor: ToolDescriptor, arguments: Mapping[str, Any]) -> Any:
    """The identifier argument, from id_key or the generic "id" fallback."""
    keyed = arguments.get(descriptor.id_key)
    generic = arguments.get("id")
    if keyed is not None and generic is not None and keyed != generic:
        raise AmbiguousIdError(
            f"Conflicting identifiers: {descriptor.id_key}={keyed!r} and id={generic!r}."
        )
    return keyed if keyed is not None else generic


class ToolRouter:
    """Resolves tool calls against a registry and runs them with a client."""

    def __init__(self, registry: ToolRegistry, client: MedplumClient) -> None:
        self.registry = registry
        self.client = client

    async def _invoke(self, descriptor: ToolDescriptor, arguments: dict[str, Any]) -> Any:
        if descriptor.marshaling is Marshaling.BY_ID:
            resource_id = _extract_id(descriptor, arguments)
            return await descriptor.handler(resource_id, client=self.client)

        if descriptor.marshaling is Marshaling.UPDATE:
            resource_id = _extract_id(descriptor, arguments)
            updates = {
                key: value
                for key, value in arguments.items()
                if key not in (descriptor.id_key, "id")
            }
            return await descriptor.handler(resource_id, updates, client=self.client)

        return await descriptor.handler(arguments, client=self.client)

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> ToolResponse:
        if arguments is None:
            return _serialize(error_envelope(ValidationError("Arguments are required")), True)

        descriptor = self.registry.lookup(name)
        if descriptor is None:
            logger.warning("Unknown tool requested: %s", name)
            return _serialize(error_envelope(UnknownToolError(name)), True)

        logger.info("Executing tool %s with args: %s", name, arguments)
        try:
            result = await self._invoke(descriptor, arguments)
        except ToolError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return _serialize(error_envelope(exc), False)
        except Exception as exc:
            logger.exception("Tool %s raised an unexpected error", name)
            return _serialize(error_envelope(exc), False)

        if is_error_outcome(result):
            logger.warning("Tool %s returned an error outcome", name)
            return _serialize(outcome_envelope(result), False)

        logger.debug("Tool %s result: %s", name, result)
        return _serialize(success_envelope(result), False)
