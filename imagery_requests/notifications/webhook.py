"""Webhook delivery for queued status-change events.

``dispatch_event`` is the body of the ``status_change_dispatcher`` queue
trigger.  It POSTs the event JSON to ``NOTIFICATION_WEBHOOK_URL``.  When
``NOTIFICATION_WEBHOOK_SECRET`` is set the body is signed with
HMAC-SHA256 and sent as ``X-Signature-SHA256: sha256=<hex>``.

A failed delivery raises ``NotificationDeliveryError`` so the Functions
runtime retries the queue message (and eventually poisons it).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING

import httpx

from imagery_requests.core.exceptions import ContractError, NotificationDeliveryError
from imagery_requests.core.ingress import deserialize_queue_message
from imagery_requests.notifications.base import StatusChangeEvent

if TYPE_CHECKING:
    from imagery_requests.core.config import ServiceConfig

logger = logging.getLogger("imagery_requests.notifications.webhook")

SIGNATURE_HEADER = "X-Signature-SHA256"
EVENT_HEADER = "X-Imagery-Event"


def compute_signature(body: bytes, secret: str) -> str:
    """Return ``sha256=<hex digest>`` of *body* keyed with *secret*."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def dispatch_event(
    message: str | bytes,
    *,
    config: ServiceConfig,
    client: httpx.Client | None = None,
) -> bool:
    """Deliver one queued event to the configured webhook.

    Args:
        message: Raw queue message (JSON produced by ``QueueNotifier``).
        config: Service configuration (URL, secret, timeout).
        client: Optional pre-built ``httpx.Client``; one is created
            and closed per call otherwise.

    Returns:
        ``True`` if the event was delivered, ``False`` if it was dropped
        because no webhook is configured.

    Raises:
        ContractError: If *message* is not a valid event document.
        NotificationDeliveryError: On transport errors or non-2xx replies.
    """
    document = deserialize_queue_message(message)
    try:
        event = StatusChangeEvent.from_dict(document)
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"Queue message is not a status-change event: {exc}"
        raise ContractError(msg, operation="notify", code="INVALID_EVENT") from exc

    if not config.notification_webhook_url:
        logger.warning(
            "Notification dropped, no webhook configured | type=%s | id=%s",
            event.event_type,
            event.request_id,
        )
        return False

    body = json.dumps(event.to_dict()).encode("utf-8")
    headers = {"Content-Type": "application/json", EVENT_HEADER: event.event_type}
    if config.notification_webhook_secret:
        headers[SIGNATURE_HEADER] = compute_signature(body, config.notification_webhook_secret)

    try:
        if client is None:
            with httpx.Client(timeout=config.notification_timeout_s) as own_client:
                response = own_client.post(
                    config.notification_webhook_url, content=body, headers=headers
                )
        else:
            response = client.post(config.notification_webhook_url, content=body, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        msg = f"Webhook delivery failed for request {event.request_id}: {exc}"
        raise NotificationDeliveryError(msg) from exc

    logger.info(
        "Notification delivered | type=%s | id=%s | status=%s | http=%d",
        event.event_type,
        event.request_id,
        event.new_status,
        response.status_code,
    )
    return True
