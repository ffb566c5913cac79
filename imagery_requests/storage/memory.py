"""In-process request store for local development and tests.

Documents are kept as serialised dicts (exactly what the blob store
writes) with an integer version incremented on every write.  A single
lock makes ``atomic_update`` a true compare-and-swap within the process.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from imagery_requests.core.exceptions import (
    ConcurrencyConflictError,
    PersistenceError,
    RequestNotFoundError,
)
from imagery_requests.models.request import ImageryRequest
from imagery_requests.storage.base import RequestStore, VersionedRequest

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("imagery_requests.storage.memory")


class InMemoryRequestStore(RequestStore):
    """Thread-safe dict-backed store with integer versions."""

    def __init__(self) -> None:
        self._documents: dict[str, tuple[dict[str, Any], int]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._documents)

    def create(self, request: ImageryRequest, *, timeout: float | None = None) -> VersionedRequest:
        with self._lock:
            if request.id in self._documents:
                msg = f"Imagery request already exists: {request.id}"
                raise PersistenceError(msg, code="STORE_DUPLICATE_ID", retryable=False)
            self._documents[request.id] = (request.to_dict(), 1)
        logger.debug("Request created | id=%s | version=1", request.id)
        return VersionedRequest(request=request, version=1)

    def find_by_id(
        self, request_id: str, *, timeout: float | None = None
    ) -> VersionedRequest | None:
        with self._lock:
            stored = self._documents.get(request_id)
        if stored is None:
            return None
        document, version = stored
        return VersionedRequest(request=ImageryRequest.from_dict(document), version=version)

    def atomic_update(
        self,
        request_id: str,
        expected_version: object,
        mutator: Callable[[ImageryRequest], ImageryRequest],
        *,
        timeout: float | None = None,
    ) -> VersionedRequest:
        with self._lock:
            stored = self._documents.get(request_id)
            if stored is None:
                raise RequestNotFoundError(request_id)
            document, version = stored
            if version != expected_version:
                raise ConcurrencyConflictError(request_id, expected_version)

            updated = mutator(ImageryRequest.from_dict(document))
            new_version = version + 1
            self._documents[request_id] = (updated.to_dict(), new_version)

        logger.debug("Request updated | id=%s | version=%d", request_id, new_version)
        return VersionedRequest(request=updated, version=new_version)

    def query(
        self,
        predicate: Callable[[ImageryRequest], bool],
        *,
        timeout: float | None = None,
    ) -> list[ImageryRequest]:
        with self._lock:
            documents = [document for document, _ in self._documents.values()]
        requests = (ImageryRequest.from_dict(document) for document in documents)
        return [request for request in requests if predicate(request)]
