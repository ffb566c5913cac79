"""Lifecycle notifiers: abstract contract, queue publisher, webhook dispatcher."""

from imagery_requests.notifications.base import Notifier, NullNotifier, StatusChangeEvent
from imagery_requests.notifications.queue import QueueNotifier

__all__ = [
    "Notifier",
    "NullNotifier",
    "QueueNotifier",
    "StatusChangeEvent",
]
