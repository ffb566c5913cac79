"""Store factory: selects the request store by configured backend name.

Usage::

    from imagery_requests.storage.factory import get_store

    store = get_store(ServiceConfig.from_env())

The in-memory store is a process-wide singleton so that consecutive
HTTP invocations on one worker see each other's writes.  The blob store
is built per call from the ``AzureWebJobsStorage`` connection string;
the SDK pools connections underneath.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from imagery_requests.core.exceptions import ContractError
from imagery_requests.storage.memory import InMemoryRequestStore

if TYPE_CHECKING:
    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.storage.base import RequestStore

logger = logging.getLogger("imagery_requests.storage.factory")

MEMORY = "memory"
BLOB = "blob"

_memory_store: InMemoryRequestStore | None = None


def get_store(config: ServiceConfig) -> RequestStore:
    """Create (or reuse) the configured request store.

    Raises:
        ContractError: If the backend name is unknown or blob storage
            is selected without a connection string.
    """
    if config.store_backend == MEMORY:
        return _get_memory_store()

    if config.store_backend == BLOB:
        from imagery_requests.core.ingress import get_blob_service_client
        from imagery_requests.storage.blob import BlobRequestStore

        return BlobRequestStore(
            get_blob_service_client(),
            container=config.requests_container,
            default_timeout=config.store_timeout_s,
        )

    msg = f"Unknown request store backend: {config.store_backend!r}"
    raise ContractError(msg, operation="storage", code="UNKNOWN_STORE_BACKEND")


def reset_memory_store() -> None:
    """Drop the process-wide in-memory store (test isolation)."""
    global _memory_store  # noqa: PLW0603
    _memory_store = None


def _get_memory_store() -> InMemoryRequestStore:
    global _memory_store  # noqa: PLW0603
    if _memory_store is None:
        logger.info("Creating in-memory request store")
        _memory_store = InMemoryRequestStore()
    return _memory_store
