"""Queue-backed notifier.

Serialises each event to JSON and hands it to a *sink*.  In the
Functions app the sink is ``func.Out[str].set`` of a queue output
binding, so the HTTP invocation only enqueues and the webhook call
happens later in ``status_change_dispatcher``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from imagery_requests.notifications.base import Notifier, StatusChangeEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from imagery_requests.models.request import ImageryRequest, RequestStatus

logger = logging.getLogger("imagery_requests.notifications.queue")


class QueueNotifier(Notifier):
    """Publish events as JSON strings through *sink*.

    Args:
        sink: Callable receiving the serialised message.
    """

    def __init__(self, sink: Callable[[str], None]) -> None:
        self._sink = sink

    def on_status_changed(
        self,
        request: ImageryRequest,
        old_status: RequestStatus,
        new_status: RequestStatus,
    ) -> None:
        self._publish(StatusChangeEvent.for_status_change(request, old_status, new_status))

    def on_submitted(self, request: ImageryRequest) -> None:
        self._publish(StatusChangeEvent.for_submission(request))

    def _publish(self, event: StatusChangeEvent) -> None:
        self._sink(json.dumps(event.to_dict()))
        logger.info(
            "Notification enqueued | type=%s | id=%s | %s -> %s",
            event.event_type,
            event.request_id,
            event.old_status or "-",
            event.new_status,
        )
