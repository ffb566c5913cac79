"""Request lifecycle: transition table, history, and the service operations."""

from imagery_requests.lifecycle.history import append_history
from imagery_requests.lifecycle.service import (
    RequestPage,
    cancel_request,
    export_requests,
    get_request,
    list_requests,
    submit_request,
    transition_request,
    update_request_status,
)
from imagery_requests.lifecycle.transitions import (
    ALLOWED_TRANSITIONS,
    apply_transition,
    check_transition,
    is_transition_allowed,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "RequestPage",
    "append_history",
    "apply_transition",
    "cancel_request",
    "check_transition",
    "export_requests",
    "get_request",
    "is_transition_allowed",
    "list_requests",
    "submit_request",
    "transition_request",
    "update_request_status",
]
