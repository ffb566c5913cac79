"""Request lifecycle service: the operations behind the HTTP routes.

Each function takes its collaborators (store, notifier, config, clock)
as keyword arguments so the same code runs under the Functions host,
in tests, and from scripts.

Write path for an administrative change::

    find_by_id ──► apply_transition (inside atomic_update) ──► notify
         ▲                       │
         └── ConcurrencyConflictError (retried up to
             ``store_conflict_retries`` times)

The notifier is called only after the store accepted the write.  A
notifier failure is logged and never undoes the transition.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from imagery_requests.core.config import ServiceConfig
from imagery_requests.core.constants import (
    AREA_DECIMALS,
    CENTER_DECIMALS,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)
from imagery_requests.core.exceptions import ConcurrencyConflictError, RequestNotFoundError
from imagery_requests.geometry.area import aoi_area_km2
from imagery_requests.geometry.centroid import compute_centroid
from imagery_requests.lifecycle.transitions import apply_transition
from imagery_requests.models.aoi import GeoPoint, PointAOI
from imagery_requests.models.request import (
    AOIType,
    DateRange,
    ImageryFilters,
    ImageryRequest,
    RequestStatus,
    StatusHistoryEntry,
)
from imagery_requests.models.submission import (
    SubmissionPayload,
    parse_status_update,
    parse_submission,
)
from imagery_requests.notifications.base import NullNotifier
from imagery_requests.reporting.csv_export import export_csv
from imagery_requests.reporting.filters import FilterCriteria, build_filter, select_requests

if TYPE_CHECKING:
    from collections.abc import Callable

    from imagery_requests.notifications.base import Notifier
    from imagery_requests.storage.base import RequestStore

logger = logging.getLogger("imagery_requests.lifecycle.service")

REQUESTER_ACTOR = "requester"


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(UTC)


def new_request_id() -> str:
    """Default id factory: random UUID4 hex string."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def submit_request(
    body: dict[str, Any] | SubmissionPayload,
    *,
    store: RequestStore,
    notifier: Notifier | None = None,
    config: ServiceConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
    id_factory: Callable[[], str] = new_request_id,
) -> ImageryRequest:
    """Validate a submission, derive its geometry and store it as ``pending``.

    Args:
        body: Raw JSON body or an already parsed ``SubmissionPayload``.
        store: Request store.
        notifier: Told about the new request after it is stored.
        config: Service configuration (area tolerance, store timeout).
        clock: Source of the submission time.
        id_factory: Source of the new request id.

    Returns:
        The stored request.

    Raises:
        RequestValidationError: If any field is invalid.
        PersistenceError: If the store rejects the write.
    """
    config = config or ServiceConfig()
    notifier = notifier or NullNotifier()
    payload = body if isinstance(body, SubmissionPayload) else parse_submission(body)

    area = _resolve_area(payload, config.area_divergence_tolerance_pct)
    center = compute_centroid(payload.aoi)
    now = clock()

    request = ImageryRequest(
        id=id_factory(),
        created_at=now,
        updated_at=now,
        full_name=payload.full_name,
        email=payload.email,
        company=payload.company or "",
        phone=payload.phone or "",
        aoi_type=payload.aoi_type or _default_aoi_type(payload),
        aoi=payload.aoi,
        aoi_area_km2=round(area, AREA_DECIMALS),
        aoi_center=GeoPoint(
            lat=round(center.lat, CENTER_DECIMALS),
            lng=round(center.lng, CENTER_DECIMALS),
        ),
        date_range=DateRange(
            start=payload.date_range.start_date, end=payload.date_range.end_date
        ),
        filters=ImageryFilters.from_dict(payload.filters.model_dump()),
        urgency=payload.urgency,
        additional_requirements=payload.additional_requirements or "",
        status=RequestStatus.PENDING,
        status_history=(StatusHistoryEntry(status=RequestStatus.PENDING, changed_at=now),),
    )

    store.create(request, timeout=config.store_timeout_s)

    logger.info(
        "Request submitted | id=%s | type=%s | area=%.2f km2 | urgency=%s",
        request.id,
        request.aoi.geometry_type,
        request.aoi_area_km2,
        request.urgency.value,
    )
    _notify_safely(request.id, notifier.on_submitted, request)
    return request


def _resolve_area(payload: SubmissionPayload, tolerance_pct: float) -> float:
    """Return the area to store for *payload*.

    Polygons always use the computed area; a client-supplied value that
    diverges by more than *tolerance_pct* is logged.  Points (circle
    centres) keep the client value, or zero.
    """
    provided = payload.aoi_area_km2
    if isinstance(payload.aoi, PointAOI):
        return provided or 0.0

    computed = aoi_area_km2(payload.aoi)
    if provided is not None:
        reference = computed or provided
        divergence_pct = abs(provided - computed) / reference * 100 if reference else 0.0
        if divergence_pct > tolerance_pct:
            logger.warning(
                "Client AOI area diverges from computed | provided=%.4f km2 | "
                "computed=%.4f km2 | divergence=%.1f%%",
                provided,
                computed,
                divergence_pct,
            )
    return computed


def _default_aoi_type(payload: SubmissionPayload) -> AOIType:
    return AOIType.CIRCLE if isinstance(payload.aoi, PointAOI) else AOIType.POLYGON


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_request(
    request_id: str,
    *,
    store: RequestStore,
    config: ServiceConfig | None = None,
) -> ImageryRequest:
    """Return one request.

    Raises:
        RequestNotFoundError: If *request_id* is unknown.
    """
    config = config or ServiceConfig()
    stored = store.find_by_id(request_id, timeout=config.store_timeout_s)
    if stored is None:
        raise RequestNotFoundError(request_id)
    return stored.request


@dataclass(frozen=True, slots=True)
class RequestPage:
    """One page of an admin listing."""

    requests: tuple[ImageryRequest, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def to_dict(self) -> dict[str, object]:
        return {
            "requests": [request.to_dict() for request in self.requests],
            "pagination": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "total_pages": self.total_pages,
            },
        }


def list_requests(
    criteria: FilterCriteria,
    *,
    store: RequestStore,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    config: ServiceConfig | None = None,
) -> RequestPage:
    """Return one page of matching requests in ``criteria`` order (newest first by default).

    *limit* is clamped to ``[1, MAX_PAGE_SIZE]`` and *page* to ``>= 1``.
    """
    config = config or ServiceConfig()
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    page = max(1, page)

    matching = select_requests(
        store.query(build_filter(criteria), timeout=config.store_timeout_s), criteria
    )
    offset = (page - 1) * limit
    return RequestPage(
        requests=tuple(matching[offset : offset + limit]),
        total=len(matching),
        page=page,
        limit=limit,
    )


def export_requests(
    criteria: FilterCriteria,
    *,
    store: RequestStore,
    config: ServiceConfig | None = None,
) -> str:
    """Return every request matching *criteria* as CSV text, in ``criteria`` order."""
    config = config or ServiceConfig()
    matching = select_requests(
        store.query(build_filter(criteria), timeout=config.store_timeout_s), criteria
    )
    logger.info("Requests exported | rows=%d", len(matching))
    return export_csv(matching)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def transition_request(
    request_id: str,
    target: RequestStatus | None,
    *,
    store: RequestStore,
    notifier: Notifier | None = None,
    config: ServiceConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
    notes: str = "",
    quote_amount: float | None = None,
    quote_currency: str | None = None,
    changed_by: str = "",
) -> ImageryRequest:
    """Apply a status transition with optimistic concurrency.

    Args:
        request_id: Request to change.
        target: Status to enter; ``None`` keeps the current status
            (a notes-only self-transition).
        store: Request store.
        notifier: Told about the change after it is stored.
        config: Service configuration (conflict retries, store timeout).
        clock: Source of the transition time.
        notes: Notes for the new history entry (also ``admin_notes``).
        quote_amount: Quote to commit when entering ``quoted``.
        quote_currency: Currency for *quote_amount*.
        changed_by: Opaque administrator identifier.

    Returns:
        The updated request.

    Raises:
        RequestNotFoundError: If *request_id* is unknown.
        InvalidTransitionError: If the change is not allowed.
        InvalidQuoteError: If the quote rules are violated.
        ConcurrencyConflictError: If the document kept changing
            underneath after every retry.
        PersistenceError: If the store fails.
    """
    config = config or ServiceConfig()
    notifier = notifier or NullNotifier()
    attempts = config.store_conflict_retries + 1

    for attempt in range(1, attempts + 1):
        current = store.find_by_id(request_id, timeout=config.store_timeout_s)
        if current is None:
            raise RequestNotFoundError(request_id)

        old_status = current.request.status
        new_status = target or old_status

        def mutate(
            request: ImageryRequest, new_status: RequestStatus = new_status
        ) -> ImageryRequest:
            return apply_transition(
                request,
                new_status,
                now=clock(),
                notes=notes,
                quote_amount=quote_amount,
                quote_currency=quote_currency,
                changed_by=changed_by,
            )

        try:
            stored = store.atomic_update(
                request_id, current.version, mutate, timeout=config.store_timeout_s
            )
        except ConcurrencyConflictError:
            if attempt >= attempts:
                raise
            logger.warning(
                "Concurrent update, retrying | id=%s | attempt=%d/%d",
                request_id,
                attempt,
                attempts,
            )
            continue

        logger.info(
            "Request transitioned | id=%s | %s -> %s | by=%s",
            request_id,
            old_status.value,
            new_status.value,
            changed_by or "-",
        )
        _notify_safely(
            request_id, notifier.on_status_changed, stored.request, old_status, new_status
        )
        return stored.request

    # store_conflict_retries >= 0, so the loop always returns or raises
    raise AssertionError(request_id)


def update_request_status(
    request_id: str,
    body: dict[str, Any],
    *,
    store: RequestStore,
    notifier: Notifier | None = None,
    config: ServiceConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
    actor: str | None = None,
) -> ImageryRequest:
    """Apply an administrative update body to a request.

    ``actor`` is the authenticated administrator, when known; it takes
    precedence over the self-reported ``reviewed_by`` in the body.

    Raises:
        RequestValidationError: If the body is malformed.
        RequestNotFoundError, LifecycleError, PersistenceError: As for
            ``transition_request``.
    """
    payload = parse_status_update(body)
    return transition_request(
        request_id,
        payload.status,
        store=store,
        notifier=notifier,
        config=config,
        clock=clock,
        notes=payload.admin_notes or "",
        quote_amount=payload.quote_amount,
        quote_currency=payload.quote_currency,
        changed_by=actor or payload.reviewed_by or "",
    )


def cancel_request(
    request_id: str,
    email: str,
    reason: str = "",
    *,
    store: RequestStore,
    notifier: Notifier | None = None,
    config: ServiceConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ImageryRequest:
    """Let the requester withdraw their own request.

    The e-mail must match the stored requester; a mismatch is reported
    as not-found so the route does not reveal which ids exist.

    Raises:
        RequestNotFoundError: If the id is unknown or *email* does not match.
        InvalidTransitionError: If the request is already quoted or terminal.
    """
    current = get_request(request_id, store=store, config=config)
    if email.strip().lower() != current.email.lower():
        raise RequestNotFoundError(request_id)

    reason = reason.strip()
    notes = f"Cancelled by user: {reason}" if reason else "Cancelled by user"
    return transition_request(
        request_id,
        RequestStatus.CANCELLED,
        store=store,
        notifier=notifier,
        config=config,
        clock=clock,
        notes=notes,
        changed_by=REQUESTER_ACTOR,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _notify_safely(request_id: str, callback: Callable[..., None], *args: object) -> None:
    try:
        callback(*args)
    except Exception:  # noqa: BLE001
        logger.exception("Notifier failed, change kept | id=%s", request_id)
