"""Azure Functions entry point for the Imagery Request Engine.

This module registers all Azure Functions (HTTP routes and the
status-change queue trigger) using the Python v2 programming model.

All business logic lives in the imagery_requests package. This file is
purely the wiring layer between Azure Functions bindings and application
code.
"""

from __future__ import annotations

import logging

import azure.functions as func

from imagery_requests.api import handlers
from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.constants import DEFAULT_STATUS_CHANGE_QUEUE
from imagery_requests.notifications.queue import QueueNotifier
from imagery_requests.notifications.webhook import dispatch_event
from imagery_requests.storage.factory import get_store

app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)

logger = logging.getLogger("imagery_requests.function_app")

STORAGE_CONNECTION = "AzureWebJobsStorage"


# ---------------------------------------------------------------------------
# Public routes
# ---------------------------------------------------------------------------


@app.function_name("submit_imagery_request")
@app.route(route="imagery-requests", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
@app.queue_output(
    arg_name="msg", queue_name=DEFAULT_STATUS_CHANGE_QUEUE, connection=STORAGE_CONNECTION
)
def submit_imagery_request(req: func.HttpRequest, msg: func.Out[str]) -> func.HttpResponse:
    """Validate an AOI submission and store it as ``pending``."""
    config = ServiceConfig.from_env()
    return handlers.submit(
        req, store=get_store(config), notifier=QueueNotifier(msg.set), config=config
    )


@app.function_name("cancel_imagery_request")
@app.route(
    route="imagery-requests/{request_id}/cancel",
    methods=["POST"],
    auth_level=func.AuthLevel.ANONYMOUS,
)
@app.queue_output(
    arg_name="msg", queue_name=DEFAULT_STATUS_CHANGE_QUEUE, connection=STORAGE_CONNECTION
)
def cancel_imagery_request(req: func.HttpRequest, msg: func.Out[str]) -> func.HttpResponse:
    """Requester withdrawal of a pending / reviewing request."""
    config = ServiceConfig.from_env()
    return handlers.cancel(
        req, store=get_store(config), notifier=QueueNotifier(msg.set), config=config
    )


# ---------------------------------------------------------------------------
# Admin routes (function key required; "admin" is a reserved route prefix)
# ---------------------------------------------------------------------------


@app.function_name("list_imagery_requests")
@app.route(route="manage/imagery-requests", methods=["GET"])
def list_imagery_requests(req: func.HttpRequest) -> func.HttpResponse:
    """Filtered, paginated admin listing."""
    config = ServiceConfig.from_env()
    return handlers.list_requests(req, store=get_store(config), config=config)


@app.function_name("export_imagery_requests")
@app.route(route="manage/imagery-requests/export", methods=["GET"])
def export_imagery_requests(req: func.HttpRequest) -> func.HttpResponse:
    """CSV export of every request matching the query filters."""
    config = ServiceConfig.from_env()
    return handlers.export(req, store=get_store(config), config=config)


@app.function_name("get_imagery_request")
@app.route(route="manage/imagery-requests/{request_id}", methods=["GET"])
def get_imagery_request(req: func.HttpRequest) -> func.HttpResponse:
    """Return a single request with its full status history."""
    config = ServiceConfig.from_env()
    return handlers.get(req, store=get_store(config), config=config)


@app.function_name("update_imagery_request")
@app.route(route="manage/imagery-requests/{request_id}", methods=["PUT"])
@app.queue_output(
    arg_name="msg", queue_name=DEFAULT_STATUS_CHANGE_QUEUE, connection=STORAGE_CONNECTION
)
def update_imagery_request(req: func.HttpRequest, msg: func.Out[str]) -> func.HttpResponse:
    """Status transition, notes update or quote commit."""
    config = ServiceConfig.from_env()
    return handlers.update_status(
        req, store=get_store(config), notifier=QueueNotifier(msg.set), config=config
    )


# ---------------------------------------------------------------------------
# Queue trigger: status-change notifications
# ---------------------------------------------------------------------------


@app.function_name("status_change_dispatcher")
@app.queue_trigger(
    arg_name="message", queue_name=DEFAULT_STATUS_CHANGE_QUEUE, connection=STORAGE_CONNECTION
)
def status_change_dispatcher(message: func.QueueMessage) -> None:
    """Deliver one queued lifecycle event to the notification webhook.

    Raising lets the runtime retry the message and move it to the
    poison queue after ``maxDequeueCount`` attempts.
    """
    config = ServiceConfig.from_env()
    try:
        dispatch_event(message.get_body(), config=config)
    except Exception:
        logger.exception(
            "Notification dispatch failed | message_id=%s | dequeue_count=%s",
            message.id,
            message.dequeue_count,
        )
        raise
