"""Request status state machine.

The whole transition graph lives in ``ALLOWED_TRANSITIONS``::

    pending ──► reviewing ──► quoted ──► approved
       │            │           │
       │            │           └──────► declined
       ├──► quoted  ├──► declined
       ├──► declined
       └──► cancelled ◄── reviewing

Every state may transition to itself; a self-transition records a new
history entry (used to update ``admin_notes``) without changing status.
``approved``, ``declined`` and ``cancelled`` are terminal.  Cancellation
is only possible before a quote is committed.

``apply_transition`` is pure: it validates the change and returns the
updated request.  Persistence, retries and notification are the
service layer's job.
"""

from __future__ import annotations

import dataclasses
import math
from typing import TYPE_CHECKING

from imagery_requests.core.exceptions import InvalidQuoteError, InvalidTransitionError
from imagery_requests.lifecycle.history import append_history
from imagery_requests.models.request import (
    QUOTED_OR_LATER,
    ImageryRequest,
    RequestStatus,
    StatusHistoryEntry,
)

if TYPE_CHECKING:
    from datetime import datetime

_S = RequestStatus

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    _S.PENDING: frozenset({_S.PENDING, _S.REVIEWING, _S.QUOTED, _S.DECLINED, _S.CANCELLED}),
    _S.REVIEWING: frozenset({_S.REVIEWING, _S.QUOTED, _S.DECLINED, _S.CANCELLED}),
    _S.QUOTED: frozenset({_S.QUOTED, _S.APPROVED, _S.DECLINED}),
    _S.APPROVED: frozenset({_S.APPROVED}),
    _S.DECLINED: frozenset({_S.DECLINED}),
    _S.CANCELLED: frozenset({_S.CANCELLED}),
}


def is_transition_allowed(current: RequestStatus, target: RequestStatus) -> bool:
    """Return ``True`` if *current* → *target* is in the transition table."""
    return target in ALLOWED_TRANSITIONS[current]


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    """Raise ``InvalidTransitionError`` unless *current* → *target* is allowed."""
    if not is_transition_allowed(current, target):
        raise InvalidTransitionError(current.value, target.value)


def apply_transition(
    request: ImageryRequest,
    target: RequestStatus,
    *,
    now: datetime,
    notes: str = "",
    quote_amount: float | None = None,
    quote_currency: str | None = None,
    changed_by: str = "",
) -> ImageryRequest:
    """Validate and apply a status transition, returning the new request.

    Args:
        request: Current request state.
        target: Status to enter (may equal the current status).
        now: Transition time.  Clamped to the last history entry so the
            history never goes backwards in time.
        notes: Notes for this transition; also overwrite ``admin_notes``.
        quote_amount: Quote to commit; only accepted when entering or
            staying in ``quoted``.
        quote_currency: ISO currency code for *quote_amount*.
        changed_by: Opaque administrator identifier.

    Raises:
        InvalidTransitionError: If the table does not allow the change.
        InvalidQuoteError: If a quote is required but missing or
            non-positive, or supplied for a non-quoting transition.
    """
    check_transition(request.status, target)
    amount, currency = _resolve_quote(request, target, quote_amount, quote_currency)

    if request.status_history and now < request.status_history[-1].changed_at:
        now = request.status_history[-1].changed_at

    entry = StatusHistoryEntry(status=target, changed_at=now, notes=notes, changed_by=changed_by)
    return dataclasses.replace(
        request,
        status=target,
        status_history=append_history(request.status_history, entry),
        admin_notes=notes,
        quote_amount=amount,
        quote_currency=currency,
        updated_at=now,
        reviewed_at=now,
        reviewed_by=changed_by,
    )


def _resolve_quote(
    request: ImageryRequest,
    target: RequestStatus,
    quote_amount: float | None,
    quote_currency: str | None,
) -> tuple[float | None, str | None]:
    """Return the ``(amount, currency)`` the request holds after the transition."""
    supplied = quote_amount is not None or bool(quote_currency)

    if target is not RequestStatus.QUOTED:
        if supplied:
            msg = f"A quote can only be set when transitioning to 'quoted', not '{target.value}'"
            raise InvalidQuoteError(msg)
        if target in QUOTED_OR_LATER:
            return request.quote_amount, request.quote_currency
        return None, None

    if not supplied and request.status is RequestStatus.QUOTED and request.has_quote:
        return request.quote_amount, request.quote_currency

    if quote_amount is None or not math.isfinite(quote_amount) or quote_amount <= 0:
        msg = "Transition to 'quoted' requires quote_amount > 0"
        raise InvalidQuoteError(msg)
    currency = (quote_currency or "").strip().upper()
    if not currency:
        msg = "Transition to 'quoted' requires quote_currency"
        raise InvalidQuoteError(msg)
    return float(quote_amount), currency
