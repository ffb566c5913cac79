"""Tests for the HTTP handlers and their error translation.

Requests are real ``func.HttpRequest`` objects; the store is the
in-memory adapter, so every handler runs end to end.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import azure.functions as func
import pytest

from imagery_requests.api import handlers
from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.exceptions import (
    ConcurrencyConflictError,
    InvalidGeometryError,
    PersistenceError,
    RequestNotFoundError,
)
from imagery_requests.models.request import ImageryRequest
from imagery_requests.storage.memory import InMemoryRequestStore

BASE = "http://localhost/api"


def _http(
    method: str,
    path: str,
    body: dict[str, Any] | bytes | None = None,
    *,
    request_id: str | None = None,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
) -> func.HttpRequest:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode() if body else b""
    return func.HttpRequest(
        method=method,
        url=f"{BASE}/{path}",
        body=raw,
        params=params or {},
        route_params={"request_id": request_id} if request_id else {},
        headers=headers or {},
    )


def _json(response: func.HttpResponse) -> dict[str, Any]:
    return json.loads(response.get_body())


@pytest.fixture()
def config() -> ServiceConfig:
    return ServiceConfig()


@pytest.fixture()
def submitted(
    store: InMemoryRequestStore,
    notifier: Any,
    config: ServiceConfig,
    submission_body: dict[str, Any],
) -> dict[str, Any]:
    response = handlers.submit(
        _http("POST", "imagery-requests", submission_body),
        store=store,
        notifier=notifier,
        config=config,
    )
    return _json(response)["request"]


class TestSubmit:
    def test_created(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submission_body: dict[str, Any],
    ) -> None:
        response = handlers.submit(
            _http("POST", "imagery-requests", submission_body),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 201
        assert response.mimetype == "application/json"
        body = _json(response)
        assert body["request"]["status"] == "pending"
        assert body["request"]["aoi_area_km2"] == 1.24
        assert len(store) == 1
        assert notifier.submissions == [body["request"]["id"]]

    def test_field_errors(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submission_body: dict[str, Any],
    ) -> None:
        submission_body["email"] = "nope"
        response = handlers.submit(
            _http("POST", "imagery-requests", submission_body),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 400
        assert _json(response) == {
            "error": "Validation error",
            "code": "VALIDATION_FAILED",
            "details": {"email": "Please provide a valid email address"},
        }
        assert len(store) == 0

    def test_invalid_json(
        self, store: InMemoryRequestStore, notifier: Any, config: ServiceConfig
    ) -> None:
        response = handlers.submit(
            _http("POST", "imagery-requests", b"{oops"),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 400
        assert _json(response)["code"] == "INVALID_JSON"

    def test_store_outage_is_503(
        self, notifier: Any, config: ServiceConfig, submission_body: dict[str, Any]
    ) -> None:
        store = MagicMock()
        store.create.side_effect = PersistenceError("blob service down")
        response = handlers.submit(
            _http("POST", "imagery-requests", submission_body),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 503
        assert _json(response) == {
            "error": "Request store unavailable",
            "code": "STORE_UNAVAILABLE",
            "retryable": True,
        }

    def test_unexpected_error_is_500(
        self,
        notifier: Any,
        config: ServiceConfig,
        submission_body: dict[str, Any],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        store = MagicMock()
        store.create.side_effect = KeyError("boom")
        response = handlers.submit(
            _http("POST", "imagery-requests", submission_body),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 500
        assert _json(response) == {"error": "Internal server error"}
        assert "Unhandled error | op=submit_request" in caplog.text


class TestCancel:
    def test_cancelled(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = handlers.cancel(
            _http(
                "POST",
                f"imagery-requests/{submitted['id']}/cancel",
                {"email": "ada@example.com", "reason": "no longer needed"},
                request_id=submitted["id"],
            ),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 200
        request = _json(response)["request"]
        assert request["status"] == "cancelled"
        assert request["status_history"][-1]["notes"] == "Cancelled by user: no longer needed"

    def test_email_required(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = handlers.cancel(
            _http("POST", "x", None, request_id=submitted["id"]),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 400
        assert _json(response)["details"] == {"email": "Email is required"}

    def test_wrong_email_is_not_found(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = handlers.cancel(
            _http("POST", "x", {"email": "mallory@example.com"}, request_id=submitted["id"]),
            store=store,
            notifier=notifier,
            config=config,
        )
        assert response.status_code == 404
        assert _json(response)["code"] == "REQUEST_NOT_FOUND"


class TestUpdateStatus:
    def _put(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        request_id: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> func.HttpResponse:
        path = f"manage/imagery-requests/{request_id}"
        return handlers.update_status(
            _http("PUT", path, body, request_id=request_id, headers=headers),
            store=store,
            notifier=notifier,
            config=config,
        )

    def test_transition(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = self._put(
            store, notifier, config, submitted["id"], {"status": "reviewing", "admin_notes": "ok"}
        )
        assert response.status_code == 200
        request = _json(response)["request"]
        assert request["status"] == "reviewing"
        assert request["admin_notes"] == "ok"

    def test_invalid_transition_reason(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = self._put(store, notifier, config, submitted["id"], {"status": "approved"})
        assert response.status_code == 400
        body = _json(response)
        assert body["reason"] == "InvalidTransition"
        assert body["code"] == "INVALID_TRANSITION"

    def test_missing_quote_reason(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = self._put(store, notifier, config, submitted["id"], {"status": "quoted"})
        assert response.status_code == 400
        assert _json(response)["reason"] == "InvalidQuote"

    def test_unknown_status_value(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = self._put(store, notifier, config, submitted["id"], {"status": "completed"})
        assert response.status_code == 400
        assert "status" in _json(response)["details"]

    def test_boolean_quote_rejected(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        self._put(store, notifier, config, submitted["id"], {"status": "reviewing"})
        response = self._put(
            store, notifier, config, submitted["id"], {"status": "quoted", "quote_amount": True}
        )
        assert response.status_code == 400
        assert "quote_amount" in _json(response)["details"]
        stored = store.find_by_id(submitted["id"])
        assert stored is not None
        assert stored.request.status.value == "reviewing"

    def test_reviewer_is_self_reported_without_principal(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        body = {"status": "reviewing", "reviewed_by": "ops"}
        request = _json(self._put(store, notifier, config, submitted["id"], body))["request"]
        assert request["reviewed_by"] == "ops"
        assert request["status_history"][-1]["changed_by"] == "ops"

    def test_principal_header_overrides_claimed_reviewer(
        self,
        store: InMemoryRequestStore,
        notifier: Any,
        config: ServiceConfig,
        submitted: dict[str, Any],
    ) -> None:
        response = self._put(
            store,
            notifier,
            config,
            submitted["id"],
            {"status": "reviewing", "reviewed_by": "someone-else"},
            headers={"X-MS-CLIENT-PRINCIPAL-NAME": "grace@example.com"},
        )
        request = _json(response)["request"]
        assert request["reviewed_by"] == "grace@example.com"
        assert request["status_history"][-1]["changed_by"] == "grace@example.com"

    def test_unknown_id(
        self, store: InMemoryRequestStore, notifier: Any, config: ServiceConfig
    ) -> None:
        response = self._put(store, notifier, config, "missing", {"status": "reviewing"})
        assert response.status_code == 404

    def test_conflict_after_retries_is_503(
        self, notifier: Any, config: ServiceConfig, submitted: dict[str, Any]
    ) -> None:
        store = MagicMock()
        store.find_by_id.return_value = MagicMock()
        store.atomic_update.side_effect = ConcurrencyConflictError(submitted["id"], 1)
        response = self._put(store, notifier, config, submitted["id"], {"status": "reviewing"})
        assert response.status_code == 503
        assert _json(response)["code"] == "STORE_CONFLICT"


class TestReads:
    def test_get(
        self, store: InMemoryRequestStore, config: ServiceConfig, submitted: dict[str, Any]
    ) -> None:
        response = handlers.get(
            _http("GET", "x", request_id=submitted["id"]), store=store, config=config
        )
        assert response.status_code == 200
        assert _json(response)["request"]["id"] == submitted["id"]

    def test_get_unknown(self, store: InMemoryRequestStore, config: ServiceConfig) -> None:
        response = handlers.get(_http("GET", "x", request_id="nope"), store=store, config=config)
        assert response.status_code == 404

    def test_missing_route_param(self, store: InMemoryRequestStore, config: ServiceConfig) -> None:
        response = handlers.get(_http("GET", "x"), store=store, config=config)
        assert response.status_code == 400
        assert _json(response)["code"] == "MISSING_ROUTE_PARAM"

    def test_list(
        self, store: InMemoryRequestStore, config: ServiceConfig, submitted: dict[str, Any]
    ) -> None:
        response = handlers.list_requests(
            _http("GET", "manage/imagery-requests", params={"status": "pending", "limit": "5"}),
            store=store,
            config=config,
        )
        body = _json(response)
        assert response.status_code == 200
        assert [r["id"] for r in body["requests"]] == [submitted["id"]]
        assert body["pagination"] == {"page": 1, "limit": 5, "total": 1, "total_pages": 1}

    def test_list_sorted(
        self,
        store: InMemoryRequestStore,
        config: ServiceConfig,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        for name in ("Mia", "Ada", "Zoe"):
            store.create(make_request(full_name=name))
        response = handlers.list_requests(
            _http("GET", "manage/imagery-requests", params={"sort": "full_name", "order": "asc"}),
            store=store,
            config=config,
        )
        assert response.status_code == 200
        assert [r["full_name"] for r in _json(response)["requests"]] == ["Ada", "Mia", "Zoe"]

    def test_list_unknown_sort_is_newest_first(
        self,
        store: InMemoryRequestStore,
        config: ServiceConfig,
        make_request: Callable[..., ImageryRequest],
    ) -> None:
        for _ in range(3):
            store.create(make_request())
        response = handlers.list_requests(
            _http("GET", "manage/imagery-requests", params={"sort": "nonsense"}),
            store=store,
            config=config,
        )
        assert [r["id"] for r in _json(response)["requests"]] == ["req-003", "req-002", "req-001"]

    def test_list_bad_query(self, store: InMemoryRequestStore, config: ServiceConfig) -> None:
        response = handlers.list_requests(
            _http("GET", "manage/imagery-requests", params={"page": "two", "status": "done"}),
            store=store,
            config=config,
        )
        assert response.status_code == 400
        assert "status" in _json(response)["details"]

    def test_list_bad_pagination(self, store: InMemoryRequestStore, config: ServiceConfig) -> None:
        response = handlers.list_requests(
            _http("GET", "manage/imagery-requests", params={"page": "two"}),
            store=store,
            config=config,
        )
        assert response.status_code == 400
        assert _json(response)["details"] == {"page": "page must be an integer"}

    def test_export(
        self, store: InMemoryRequestStore, config: ServiceConfig, submitted: dict[str, Any]
    ) -> None:
        response = handlers.export(
            _http("GET", "manage/imagery-requests/export"),
            store=store,
            config=config,
            clock=lambda: datetime(2025, 3, 14, 9, 0, tzinfo=UTC),
        )
        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert response.headers["Content-Disposition"] == (
            'attachment; filename="imagery-requests-2025-03-14.csv"'
        )
        lines = response.get_body().decode("utf-8").splitlines()
        assert lines[0].startswith("Request ID,Status,Urgency")
        assert lines[1].startswith(f"{submitted['id']},pending,urgent")


class TestErrorResponse:
    def test_plain_validation_error(self) -> None:
        response = handlers.error_response(InvalidGeometryError("bad ring"))
        assert response.status_code == 400
        assert _json(response) == {"error": "bad ring", "code": "INVALID_GEOMETRY"}

    def test_not_found(self) -> None:
        response = handlers.error_response(RequestNotFoundError("x"))
        assert response.status_code == 404

    def test_non_retryable_store_error(self) -> None:
        response = handlers.error_response(
            PersistenceError("dup", code="STORE_DUPLICATE_ID", retryable=False)
        )
        assert response.status_code == 503
        assert _json(response)["retryable"] is False
