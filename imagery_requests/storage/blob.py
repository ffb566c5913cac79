"""Azure Blob Storage request store.

One JSON blob per request at ``requests/{id}.json`` in the configured
container.  The blob ETag is the concurrency token: updates are written
with ``if_match`` semantics (``MatchConditions.IfNotModified``), so the
storage service itself rejects a write when another writer got there
first.

Listing reads every document under the prefix; admin reporting runs
over the full matching set, so there is no server-side filtering.
"""

from __future__ import annotations

import contextlib
import json
import logging
from typing import TYPE_CHECKING

from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)

from imagery_requests.core.constants import DEFAULT_REQUESTS_CONTAINER
from imagery_requests.core.exceptions import (
    ConcurrencyConflictError,
    PersistenceError,
    RequestNotFoundError,
)
from imagery_requests.models.request import ImageryRequest
from imagery_requests.storage.base import RequestStore, VersionedRequest

if TYPE_CHECKING:
    from collections.abc import Callable

    from azure.storage.blob import BlobServiceClient

logger = logging.getLogger("imagery_requests.storage.blob")

REQUEST_PREFIX = "requests/"


def build_request_blob_path(request_id: str) -> str:
    """Return the blob path for *request_id* (``requests/{id}.json``)."""
    return f"{REQUEST_PREFIX}{request_id}.json"


class BlobRequestStore(RequestStore):
    """Request store backed by one JSON blob per request.

    Args:
        blob_service_client: An ``azure.storage.blob.BlobServiceClient``.
        container: Container holding the request documents.
        default_timeout: Timeout (seconds) used when a call passes none.
    """

    def __init__(
        self,
        blob_service_client: BlobServiceClient,
        *,
        container: str = DEFAULT_REQUESTS_CONTAINER,
        default_timeout: float | None = None,
    ) -> None:
        self._service = blob_service_client
        self._container = container
        self._default_timeout = default_timeout

    @property
    def container(self) -> str:
        return self._container

    def ensure_container(self) -> None:
        """Create the container if it does not exist yet."""
        container_client = self._service.get_container_client(self._container)
        with contextlib.suppress(ResourceExistsError):
            container_client.create_container()

    # ------------------------------------------------------------------
    # RequestStore
    # ------------------------------------------------------------------

    def create(self, request: ImageryRequest, *, timeout: float | None = None) -> VersionedRequest:
        blob_client = self._blob(request.id)
        try:
            result = blob_client.upload_blob(
                _encode(request),
                overwrite=False,
                timeout=self._timeout(timeout),
            )
        except ResourceExistsError as exc:
            msg = f"Imagery request already exists: {request.id}"
            raise PersistenceError(msg, code="STORE_DUPLICATE_ID", retryable=False) from exc
        except AzureError as exc:
            msg = f"Failed to create imagery request {request.id}: {exc}"
            raise PersistenceError(msg) from exc

        etag = result.get("etag")
        logger.debug("Request created | id=%s | etag=%s", request.id, etag)
        return VersionedRequest(request=request, version=etag)

    def find_by_id(
        self, request_id: str, *, timeout: float | None = None
    ) -> VersionedRequest | None:
        try:
            downloader = self._blob(request_id).download_blob(timeout=self._timeout(timeout))
            payload = downloader.readall()
        except ResourceNotFoundError:
            return None
        except AzureError as exc:
            msg = f"Failed to read imagery request {request_id}: {exc}"
            raise PersistenceError(msg) from exc

        return VersionedRequest(request=_decode(payload), version=downloader.properties.etag)

    def atomic_update(
        self,
        request_id: str,
        expected_version: object,
        mutator: Callable[[ImageryRequest], ImageryRequest],
        *,
        timeout: float | None = None,
    ) -> VersionedRequest:
        current = self.find_by_id(request_id, timeout=timeout)
        if current is None:
            raise RequestNotFoundError(request_id)
        if current.version != expected_version:
            raise ConcurrencyConflictError(request_id, expected_version)

        updated = mutator(current.request)

        try:
            result = self._blob(request_id).upload_blob(
                _encode(updated),
                overwrite=True,
                etag=expected_version,
                match_condition=MatchConditions.IfNotModified,
                timeout=self._timeout(timeout),
            )
        except ResourceModifiedError as exc:
            raise ConcurrencyConflictError(request_id, expected_version) from exc
        except AzureError as exc:
            msg = f"Failed to update imagery request {request_id}: {exc}"
            raise PersistenceError(msg) from exc

        etag = result.get("etag")
        logger.debug("Request updated | id=%s | etag=%s", request_id, etag)
        return VersionedRequest(request=updated, version=etag)

    def query(
        self,
        predicate: Callable[[ImageryRequest], bool],
        *,
        timeout: float | None = None,
    ) -> list[ImageryRequest]:
        container_client = self._service.get_container_client(self._container)
        matches: list[ImageryRequest] = []
        try:
            for blob in container_client.list_blobs(
                name_starts_with=REQUEST_PREFIX, timeout=self._timeout(timeout)
            ):
                payload = container_client.download_blob(
                    blob.name, timeout=self._timeout(timeout)
                ).readall()
                request = _decode(payload)
                if predicate(request):
                    matches.append(request)
        except AzureError as exc:
            msg = f"Failed to list imagery requests in {self._container}: {exc}"
            raise PersistenceError(msg) from exc
        return matches

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _blob(self, request_id: str):  # type: ignore[no-untyped-def]
        return self._service.get_blob_client(
            container=self._container, blob=build_request_blob_path(request_id)
        )

    def _timeout(self, timeout: float | None) -> float | None:
        return timeout if timeout is not None else self._default_timeout


def _encode(request: ImageryRequest) -> bytes:
    return json.dumps(request.to_dict(), separators=(",", ":")).encode("utf-8")


def _decode(payload: bytes) -> ImageryRequest:
    return ImageryRequest.from_dict(json.loads(payload))
