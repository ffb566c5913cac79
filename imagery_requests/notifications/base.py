"""Notifier abstract base class and the status-change event model.

The lifecycle tells a ``Notifier`` about two things: a new submission
and a status transition.  Delivery semantics (queue, webhook, e-mail)
belong to the concrete notifier; the lifecycle only guarantees that a
failing notifier never rolls back a persisted change.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from imagery_requests.models.request import ImageryRequest, RequestStatus

SUBMITTED = "request.submitted"
STATUS_CHANGED = "request.status_changed"


@dataclass(frozen=True, slots=True)
class StatusChangeEvent:
    """A single notification about an imagery request.

    Attributes:
        event_type: ``request.submitted`` or ``request.status_changed``.
        request_id: Affected request.
        email: Requester e-mail (the recipient of user-facing mail).
        full_name: Requester name.
        old_status: Status before the change (``""`` for submissions).
        new_status: Status after the change.
        occurred_at: When the change was recorded.
        notes: Notes of the history entry that triggered the event.
        quote_amount: Committed quote, if any.
        quote_currency: Currency of the committed quote, if any.
    """

    event_type: str
    request_id: str
    email: str
    full_name: str
    old_status: str
    new_status: str
    occurred_at: datetime
    notes: str = ""
    quote_amount: float | None = None
    quote_currency: str | None = None

    @classmethod
    def for_status_change(
        cls,
        request: ImageryRequest,
        old_status: RequestStatus,
        new_status: RequestStatus,
    ) -> StatusChangeEvent:
        last = request.status_history[-1]
        return cls(
            event_type=STATUS_CHANGED,
            request_id=request.id,
            email=request.email,
            full_name=request.full_name,
            old_status=old_status.value,
            new_status=new_status.value,
            occurred_at=last.changed_at,
            notes=last.notes,
            quote_amount=request.quote_amount,
            quote_currency=request.quote_currency,
        )

    @classmethod
    def for_submission(cls, request: ImageryRequest) -> StatusChangeEvent:
        return cls(
            event_type=SUBMITTED,
            request_id=request.id,
            email=request.email,
            full_name=request.full_name,
            old_status="",
            new_status=request.status.value,
            occurred_at=request.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "request_id": self.request_id,
            "email": self.email,
            "full_name": self.full_name,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "occurred_at": self.occurred_at.isoformat(),
            "notes": self.notes,
            "quote_amount": self.quote_amount,
            "quote_currency": self.quote_currency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusChangeEvent:
        amount = data.get("quote_amount")
        return cls(
            event_type=str(data["event_type"]),
            request_id=str(data["request_id"]),
            email=str(data.get("email", "")),
            full_name=str(data.get("full_name", "")),
            old_status=str(data.get("old_status", "")),
            new_status=str(data["new_status"]),
            occurred_at=datetime.fromisoformat(str(data["occurred_at"])),
            notes=str(data.get("notes", "")),
            quote_amount=float(amount) if amount is not None else None,
            quote_currency=data.get("quote_currency"),
        )


class Notifier(abc.ABC):
    """Receives lifecycle events after they are persisted."""

    @abc.abstractmethod
    def on_status_changed(
        self,
        request: ImageryRequest,
        old_status: RequestStatus,
        new_status: RequestStatus,
    ) -> None:
        """Called once per successful transition (self-transitions included)."""

    @abc.abstractmethod
    def on_submitted(self, request: ImageryRequest) -> None:
        """Called once after a new request is stored."""


class NullNotifier(Notifier):
    """Discards every event."""

    def on_status_changed(
        self,
        request: ImageryRequest,
        old_status: RequestStatus,
        new_status: RequestStatus,
    ) -> None:
        return None

    def on_submitted(self, request: ImageryRequest) -> None:
        return None
