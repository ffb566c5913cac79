"""HTTP handlers behind the Functions routes.

Each handler turns a ``func.HttpRequest`` into a service call and the
result into a ``func.HttpResponse``.  Domain exceptions are translated
here, once, by ``error_response``:

==========================================  ======
Exception                                   Status
==========================================  ======
``ValidationError`` / ``LifecycleError``    400
``ContractError`` (bad JSON, wrong shape)   400
``NotFoundError``                           404
``PersistenceError``                        503
anything else                               500
==========================================  ======
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import azure.functions as func

from imagery_requests.core.constants import DEFAULT_PAGE_SIZE
from imagery_requests.core.exceptions import (
    ContractError,
    LifecycleError,
    NotFoundError,
    PersistenceError,
    RequestValidationError,
    ValidationError,
)
from imagery_requests.core.ingress import parse_json_body
from imagery_requests.lifecycle import service
from imagery_requests.reporting.filters import FilterCriteria

if TYPE_CHECKING:
    from collections.abc import Callable

    from imagery_requests.core.config import ServiceConfig
    from imagery_requests.notifications.base import Notifier
    from imagery_requests.storage.base import RequestStore

logger = logging.getLogger("imagery_requests.api.handlers")

JSON_MIMETYPE = "application/json"
CSV_MIMETYPE = "text/csv"
# Set by App Service authentication; absent behind a bare function key.
PRINCIPAL_HEADER = "x-ms-client-principal-name"


# ---------------------------------------------------------------------------
# Public routes
# ---------------------------------------------------------------------------


def submit(
    req: func.HttpRequest,
    *,
    store: RequestStore,
    notifier: Notifier,
    config: ServiceConfig,
) -> func.HttpResponse:
    """``POST /api/imagery-requests``: create a request (201)."""

    def run() -> func.HttpResponse:
        request = service.submit_request(
            parse_json_body(req), store=store, notifier=notifier, config=config
        )
        return json_response(
            {"message": "Imagery request submitted", "request": request.to_dict()},
            status_code=201,
        )

    return _guarded("submit_request", run)


def cancel(
    req: func.HttpRequest,
    *,
    store: RequestStore,
    notifier: Notifier,
    config: ServiceConfig,
) -> func.HttpResponse:
    """``POST /api/imagery-requests/{request_id}/cancel``: requester withdrawal."""

    def run() -> func.HttpResponse:
        body = parse_json_body(req, allow_empty=True)
        email = str(body.get("email") or "").strip()
        if not email:
            raise RequestValidationError({"email": "Email is required"}, operation="cancel_request")
        request = service.cancel_request(
            _route_id(req),
            email,
            str(body.get("reason") or ""),
            store=store,
            notifier=notifier,
            config=config,
        )
        return json_response({"message": "Imagery request cancelled", "request": request.to_dict()})

    return _guarded("cancel_request", run)


# ---------------------------------------------------------------------------
# Admin routes
# ---------------------------------------------------------------------------


def list_requests(
    req: func.HttpRequest, *, store: RequestStore, config: ServiceConfig
) -> func.HttpResponse:
    """``GET /api/manage/imagery-requests``: filtered, paginated listing."""

    def run() -> func.HttpResponse:
        params = dict(req.params)
        criteria = FilterCriteria.from_query(params)
        page, limit = _parse_pagination(params)
        result = service.list_requests(criteria, store=store, page=page, limit=limit, config=config)
        return json_response(result.to_dict())

    return _guarded("list_requests", run)


def export(
    req: func.HttpRequest,
    *,
    store: RequestStore,
    config: ServiceConfig,
    clock: Callable[[], datetime] = service.utc_now,
) -> func.HttpResponse:
    """``GET /api/manage/imagery-requests/export``: CSV attachment."""

    def run() -> func.HttpResponse:
        criteria = FilterCriteria.from_query(dict(req.params))
        body = service.export_requests(criteria, store=store, config=config)
        filename = f"imagery-requests-{clock().astimezone(UTC).date().isoformat()}.csv"
        return func.HttpResponse(
            body,
            status_code=200,
            mimetype=CSV_MIMETYPE,
            charset="utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return _guarded("export_requests", run)


def get(req: func.HttpRequest, *, store: RequestStore, config: ServiceConfig) -> func.HttpResponse:
    """``GET /api/manage/imagery-requests/{request_id}``."""

    def run() -> func.HttpResponse:
        request = service.get_request(_route_id(req), store=store, config=config)
        return json_response({"request": request.to_dict()})

    return _guarded("get_request", run)


def update_status(
    req: func.HttpRequest,
    *,
    store: RequestStore,
    notifier: Notifier,
    config: ServiceConfig,
) -> func.HttpResponse:
    """``PUT /api/manage/imagery-requests/{request_id}``: status / notes / quote.

    The route is guarded by a function key, which proves the caller may
    manage requests but not who they are.  ``reviewed_by`` in the body is
    therefore only what the caller claims.  When App Service
    authentication is enabled its principal header wins over the body.
    """

    def run() -> func.HttpResponse:
        request = service.update_request_status(
            _route_id(req),
            parse_json_body(req),
            store=store,
            notifier=notifier,
            config=config,
            actor=_principal(req),
        )
        return json_response({"message": "Imagery request updated", "request": request.to_dict()})

    return _guarded("update_status", run)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def json_response(body: dict[str, Any], *, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(json.dumps(body), status_code=status_code, mimetype=JSON_MIMETYPE)


def error_response(exc: Exception) -> func.HttpResponse:
    """Translate *exc* into its HTTP response (see module table)."""
    if isinstance(exc, RequestValidationError):
        return json_response(
            {"error": "Validation error", "code": exc.code, "details": exc.field_errors},
            status_code=400,
        )
    if isinstance(exc, LifecycleError):
        return json_response(
            {"error": exc.message, "code": exc.code, "reason": exc.reason}, status_code=400
        )
    if isinstance(exc, ValidationError | ContractError):
        return json_response({"error": exc.message, "code": exc.code}, status_code=400)
    if isinstance(exc, NotFoundError):
        return json_response({"error": exc.message, "code": exc.code}, status_code=404)
    if isinstance(exc, PersistenceError):
        return json_response(
            {"error": "Request store unavailable", "code": exc.code, "retryable": exc.retryable},
            status_code=503,
        )
    return json_response({"error": "Internal server error"}, status_code=500)


def _guarded(operation: str, run: Callable[[], func.HttpResponse]) -> func.HttpResponse:
    try:
        return run()
    except (ValidationError, ContractError, NotFoundError) as exc:
        logger.info("Request rejected | op=%s | code=%s | %s", operation, exc.code, exc.message)
        return error_response(exc)
    except PersistenceError as exc:
        logger.warning("Store failure | op=%s | code=%s | %s", operation, exc.code, exc.message)
        return error_response(exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error | op=%s", operation)
        return error_response(exc)


# ---------------------------------------------------------------------------
# Request parsing
# ---------------------------------------------------------------------------


def _route_id(req: func.HttpRequest) -> str:
    request_id = (req.route_params.get("request_id") or "").strip()
    if not request_id:
        msg = "Missing request_id route parameter"
        raise ContractError(msg, operation="ingress", code="MISSING_ROUTE_PARAM")
    return request_id


def _principal(req: func.HttpRequest) -> str | None:
    return (req.headers.get(PRINCIPAL_HEADER) or "").strip() or None


def _parse_pagination(params: dict[str, str]) -> tuple[int, int]:
    errors: dict[str, str] = {}
    values: dict[str, int] = {}
    for key, default in (("page", 1), ("limit", DEFAULT_PAGE_SIZE)):
        raw = (params.get(key) or "").strip()
        if not raw:
            values[key] = default
            continue
        try:
            values[key] = int(raw)
        except ValueError:
            errors[key] = f"{key} must be an integer"
    if errors:
        raise RequestValidationError(errors, operation="list_requests")
    return values["page"], values["limit"]
