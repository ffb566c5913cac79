"""Thin ingress boundary helpers for Azure Functions entrypoints.

Centralises the transport concerns shared by the HTTP handlers and
the queue trigger so that ``function_app.py`` contains only bindings
and handoff:

- **parse_json_body**: decodes an HTTP request body into a JSON object,
  raising ``ContractError`` for invalid JSON or a non-object payload.
- **deserialize_queue_message**: the same normalisation for a queue
  message body (``str`` or ``bytes``).
- **get_blob_service_client**: creates an ``azure.storage.blob``
  client from the ``AzureWebJobsStorage`` environment variable,
  failing fast with a structured error if unconfigured.
"""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Any

from imagery_requests.core.exceptions import ContractError

if TYPE_CHECKING:
    import azure.functions as func
    from azure.storage.blob import BlobServiceClient

logger = logging.getLogger("imagery_requests.core.ingress")


# ---------------------------------------------------------------------------
# JSON payloads
# ---------------------------------------------------------------------------


def parse_json_body(req: func.HttpRequest, *, allow_empty: bool = False) -> dict[str, Any]:
    """Decode the body of *req* as a JSON object.

    Args:
        req: Incoming HTTP request.
        allow_empty: Return ``{}`` for an empty body instead of failing
            (used by the requester cancel route, whose body is optional).

    Raises:
        ContractError: ``INVALID_JSON`` if the body is not JSON,
            ``INVALID_INPUT_TYPE`` if it is not an object.
    """
    raw = req.get_body()
    if allow_empty and not raw.strip():
        return {}
    return _load_object(raw, source="Request body")


def deserialize_queue_message(raw: str | bytes) -> dict[str, Any]:
    """Decode a queue message body into a dict.

    Raises:
        ContractError: If the message is not a JSON object.
    """
    return _load_object(raw, source="Queue message")


def _load_object(raw: str | bytes, *, source: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        msg = f"{source} is not valid JSON: {exc}"
        raise ContractError(msg, operation="ingress", code="INVALID_JSON") from exc
    if not isinstance(parsed, dict):
        msg = f"{source} JSON must be an object, got {type(parsed).__name__}"
        raise ContractError(msg, operation="ingress", code="INVALID_INPUT_TYPE")
    return parsed


# ---------------------------------------------------------------------------
# Blob service client factory
# ---------------------------------------------------------------------------


def get_blob_service_client() -> BlobServiceClient:
    """Create a ``BlobServiceClient`` from the ``AzureWebJobsStorage`` env var.

    Raises:
        ContractError: If the environment variable is not set.
    """
    from azure.storage.blob import BlobServiceClient

    connection_string = os.environ.get("AzureWebJobsStorage", "")  # noqa: SIM112
    if not connection_string:
        msg = "AzureWebJobsStorage environment variable is not set"
        raise ContractError(msg, operation="ingress", code="MISSING_CONNECTION_STRING")

    return BlobServiceClient.from_connection_string(connection_string)
