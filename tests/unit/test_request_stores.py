"""Tests for the request stores.

Covers:
- In-memory store: create / read / compare-and-swap / query
- Blob store: blob paths, ETag preconditions, Azure error translation
- Store factory backend selection
"""

from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Callable
from unittest.mock import MagicMock, patch

import pytest
from azure.core import MatchConditions
from azure.core.exceptions import (
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
    ServiceRequestError,
)

from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.exceptions import (
    ConcurrencyConflictError,
    ContractError,
    InvalidTransitionError,
    PersistenceError,
    RequestNotFoundError,
)
from imagery_requests.models.request import ImageryRequest, RequestStatus
from imagery_requests.storage.blob import BlobRequestStore, build_request_blob_path
from imagery_requests.storage.factory import get_store
from imagery_requests.storage.memory import InMemoryRequestStore


def _rename(name: str) -> Callable[[ImageryRequest], ImageryRequest]:
    return lambda request: dataclasses.replace(request, full_name=name)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class TestInMemoryRequestStore:
    """Dict-backed store with integer versions."""

    def test_create_then_find(
        self, store: InMemoryRequestStore, make_request: Callable[..., ImageryRequest]
    ) -> None:
        request = make_request()
        created = store.create(request)
        found = store.find_by_id(request.id)
        assert created.version == 1
        assert found is not None
        assert found.request == request
        assert found.version == 1

    def test_find_unknown(self, store: InMemoryRequestStore) -> None:
        assert store.find_by_id("nope") is None

    def test_duplicate_id(
        self, store: InMemoryRequestStore, make_request: Callable[..., ImageryRequest]
    ) -> None:
        request = make_request()
        store.create(request)
        with pytest.raises(PersistenceError) as exc_info:
            store.create(request)
        assert exc_info.value.code == "STORE_DUPLICATE_ID"
        assert exc_info.value.retryable is False

    def test_atomic_update_bumps_version(
        self, store: InMemoryRequestStore, make_request: Callable[..., ImageryRequest]
    ) -> None:
        request = make_request()
        store.create(request)
        updated = store.atomic_update(request.id, 1, _rename("Grace"))
        assert updated.version == 2
        assert store.find_by_id(request.id).request.full_name == "Grace"  # type: ignore[union-attr]

    def test_stale_version_conflicts(
        self, store: InMemoryRequestStore, make_request: Callable[..., ImageryRequest]
    ) -> None:
        request = make_request()
        store.create(request)
        store.atomic_update(request.id, 1, _rename("Grace"))
        with pytest.raises(ConcurrencyConflictError):
            store.atomic_update(request.id, 1, _rename("Lost update"))
        assert store.find_by_id(request.id).request.full_name == "Grace"  # type: ignore[union-attr]

    def test_update_unknown(self, store: InMemoryRequestStore) -> None:
        with pytest.raises(RequestNotFoundError):
            store.atomic_update("nope", 1, _rename("x"))

    def test_mutator_error_writes_nothing(
        self, store: InMemoryRequestStore, make_request: Callable[..., ImageryRequest]
    ) -> None:
        request = make_request()
        store.create(request)

        def reject(_: ImageryRequest) -> ImageryRequest:
            raise InvalidTransitionError("approved", "pending")

        with pytest.raises(InvalidTransitionError):
            store.atomic_update(request.id, 1, reject)
        assert store.find_by_id(request.id).version == 1  # type: ignore[union-attr]

    def test_query(
        self, store: InMemoryRequestStore, make_request: Callable[..., ImageryRequest]
    ) -> None:
        store.create(make_request())
        store.create(make_request(status=RequestStatus.REVIEWING))
        matches = store.query(lambda r: r.status is RequestStatus.REVIEWING)
        assert [r.id for r in matches] == ["req-002"]


# ---------------------------------------------------------------------------
# Blob store
# ---------------------------------------------------------------------------


def _downloader(request: ImageryRequest, etag: str) -> MagicMock:
    downloader = MagicMock()
    downloader.readall.return_value = json.dumps(request.to_dict()).encode("utf-8")
    downloader.properties.etag = etag
    return downloader


class TestBlobRequestStore:
    """ETag-guarded JSON documents in Azure Blob Storage."""

    @pytest.fixture()
    def service_client(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture()
    def blob_client(self, service_client: MagicMock) -> MagicMock:
        client = MagicMock()
        service_client.get_blob_client.return_value = client
        return client

    @pytest.fixture()
    def blob_store(self, service_client: MagicMock) -> BlobRequestStore:
        return BlobRequestStore(service_client, container="requests-test", default_timeout=12.0)

    def test_blob_path(self) -> None:
        assert build_request_blob_path("abc") == "requests/abc.json"

    def test_create_uploads_without_overwrite(
        self,
        blob_store: BlobRequestStore,
        service_client: MagicMock,
        blob_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        request = make_request()
        blob_client.upload_blob.return_value = {"etag": '"0x1"'}

        created = blob_store.create(request)

        service_client.get_blob_client.assert_called_with(
            container="requests-test", blob=f"requests/{request.id}.json"
        )
        data = blob_client.upload_blob.call_args.args[0]
        assert json.loads(data)["id"] == request.id
        assert blob_client.upload_blob.call_args.kwargs["overwrite"] is False
        assert blob_client.upload_blob.call_args.kwargs["timeout"] == 12.0
        assert created.version == '"0x1"'

    def test_create_existing_is_duplicate(
        self,
        blob_store: BlobRequestStore,
        blob_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        blob_client.upload_blob.side_effect = ResourceExistsError("exists")
        with pytest.raises(PersistenceError) as exc_info:
            blob_store.create(make_request())
        assert exc_info.value.code == "STORE_DUPLICATE_ID"

    def test_find(
        self,
        blob_store: BlobRequestStore,
        blob_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        request = make_request()
        blob_client.download_blob.return_value = _downloader(request, '"0x2"')

        found = blob_store.find_by_id(request.id, timeout=3.0)

        assert found is not None
        assert found.request == request
        assert found.version == '"0x2"'
        blob_client.download_blob.assert_called_once_with(timeout=3.0)

    def test_find_missing(self, blob_store: BlobRequestStore, blob_client: MagicMock) -> None:
        blob_client.download_blob.side_effect = ResourceNotFoundError("gone")
        assert blob_store.find_by_id("nope") is None

    def test_find_outage_is_persistence_error(
        self, blob_store: BlobRequestStore, blob_client: MagicMock
    ) -> None:
        blob_client.download_blob.side_effect = ServiceRequestError("connection refused")
        with pytest.raises(PersistenceError) as exc_info:
            blob_store.find_by_id("x")
        assert exc_info.value.retryable is True

    def test_atomic_update_uses_if_match(
        self,
        blob_store: BlobRequestStore,
        blob_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        request = make_request()
        blob_client.download_blob.return_value = _downloader(request, '"0x2"')
        blob_client.upload_blob.return_value = {"etag": '"0x3"'}

        updated = blob_store.atomic_update(request.id, '"0x2"', _rename("Grace"))

        kwargs = blob_client.upload_blob.call_args.kwargs
        assert kwargs["etag"] == '"0x2"'
        assert kwargs["match_condition"] is MatchConditions.IfNotModified
        assert kwargs["overwrite"] is True
        assert updated.version == '"0x3"'
        assert updated.request.full_name == "Grace"

    def test_stale_etag_conflicts_before_write(
        self,
        blob_store: BlobRequestStore,
        blob_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        request = make_request()
        blob_client.download_blob.return_value = _downloader(request, '"0x9"')
        with pytest.raises(ConcurrencyConflictError):
            blob_store.atomic_update(request.id, '"0x2"', _rename("Grace"))
        blob_client.upload_blob.assert_not_called()

    def test_precondition_failure_conflicts(
        self,
        blob_store: BlobRequestStore,
        blob_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        request = make_request()
        blob_client.download_blob.return_value = _downloader(request, '"0x2"')
        blob_client.upload_blob.side_effect = ResourceModifiedError("412")
        with pytest.raises(ConcurrencyConflictError):
            blob_store.atomic_update(request.id, '"0x2"', _rename("Grace"))

    def test_update_missing(self, blob_store: BlobRequestStore, blob_client: MagicMock) -> None:
        blob_client.download_blob.side_effect = ResourceNotFoundError("gone")
        with pytest.raises(RequestNotFoundError):
            blob_store.atomic_update("nope", '"0x1"', _rename("x"))

    def test_query_lists_prefix(
        self,
        blob_store: BlobRequestStore,
        service_client: MagicMock,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        first, second = make_request(), make_request(status=RequestStatus.DECLINED)
        container = service_client.get_container_client.return_value
        blob_a, blob_b = MagicMock(), MagicMock()
        blob_a.name, blob_b.name = "requests/a.json", "requests/b.json"
        container.list_blobs.return_value = [blob_a, blob_b]
        container.download_blob.side_effect = [
            _downloader(first, "e1"),
            _downloader(second, "e2"),
        ]

        matches = blob_store.query(lambda r: r.status is RequestStatus.DECLINED)

        service_client.get_container_client.assert_called_with("requests-test")
        assert container.list_blobs.call_args.kwargs["name_starts_with"] == "requests/"
        assert matches == [second]

    def test_ensure_container_tolerates_existing(
        self, blob_store: BlobRequestStore, service_client: MagicMock
    ) -> None:
        container = service_client.get_container_client.return_value
        container.create_container.side_effect = ResourceExistsError("exists")
        blob_store.ensure_container()
        container.create_container.assert_called_once()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestGetStore:
    """Backend selection by configuration."""

    def test_memory_is_singleton(self) -> None:
        config = ServiceConfig()
        first = get_store(config)
        assert isinstance(first, InMemoryRequestStore)
        assert get_store(config) is first

    def test_blob_backend(self) -> None:
        config = ServiceConfig(store_backend="blob", requests_container="custom")
        with patch(
            "imagery_requests.core.ingress.get_blob_service_client", return_value=MagicMock()
        ):
            store = get_store(config)
        assert isinstance(store, BlobRequestStore)
        assert store.container == "custom"

    def test_blob_backend_requires_connection_string(self) -> None:
        config = ServiceConfig(store_backend="blob")
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ContractError) as exc_info:
            get_store(config)
        assert exc_info.value.code == "MISSING_CONNECTION_STRING"

    def test_unknown_backend(self) -> None:
        with pytest.raises(ContractError, match="Unknown request store backend"):
            get_store(ServiceConfig(store_backend="cosmos"))
