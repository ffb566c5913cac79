"""Admin listing filters for stored imagery requests.

``FilterCriteria`` is the parsed form of the admin query string;
``build_filter`` turns it into a pure predicate that the stores apply
(AND semantics, absent criteria impose no constraint).

Date bounds are inclusive and compare against ``created_at``.  A
date-only bound (``2025-03-01``) covers the whole UTC day; naive
datetimes are read as UTC.

Ordering is by one of ``SORT_FIELDS`` (unknown names fall back to
``created_at``), then newest first, then id, so the same query always
yields the same sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING

from imagery_requests.core.exceptions import RequestValidationError
from imagery_requests.models.request import ImageryRequest, RequestStatus, Urgency

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

_DATE_ONLY_LENGTH = len("YYYY-MM-DD")

ASC = "asc"
DESC = "desc"
DEFAULT_SORT = "created_at"

SORT_FIELDS: dict[str, Callable[[ImageryRequest], object]] = {
    "created_at": lambda r: _as_utc(r.created_at),
    "updated_at": lambda r: _as_utc(r.updated_at or r.created_at),
    "status": lambda r: r.status.value,
    "urgency": lambda r: r.urgency.value,
    "aoi_area_km2": lambda r: r.aoi_area_km2,
    "full_name": lambda r: r.full_name,
    "email": lambda r: r.email,
}


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    """Admin filters and ordering.  A ``None`` filter means "no constraint".

    Attributes:
        status: Exact lifecycle status.
        urgency: Exact urgency.
        date_from: Inclusive lower bound on ``created_at`` (UTC).
        date_to: Inclusive upper bound on ``created_at`` (UTC).
        email: Case-insensitive substring of the requester e-mail.
        sort: Ordering field, one of ``SORT_FIELDS``.
        order: ``asc`` or ``desc``.
    """

    status: RequestStatus | None = None
    urgency: Urgency | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    email: str | None = None
    sort: str = DEFAULT_SORT
    order: str = DESC

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> FilterCriteria:
        """Parse HTTP query parameters.

        Recognised keys: ``status``, ``urgency``, ``date_from``,
        ``date_to``, ``email``, ``sort``, ``order``.  Empty values are
        ignored; an unknown ``sort`` means ``created_at`` and any ``order``
        other than ``asc`` means ``desc``.

        Raises:
            RequestValidationError: Mapping of parameter to message for
                every unparseable value.
        """
        errors: dict[str, str] = {}

        status = _parse_enum(params, "status", RequestStatus, errors)
        urgency = _parse_enum(params, "urgency", Urgency, errors)
        date_from = _parse_bound(params, "date_from", end_of_day=False, errors=errors)
        date_to = _parse_bound(params, "date_to", end_of_day=True, errors=errors)

        if date_from is not None and date_to is not None and date_from > date_to:
            errors["date_to"] = "date_to must not be before date_from"

        email = (params.get("email") or "").strip().lower() or None
        sort = (params.get("sort") or "").strip().lower()
        if sort not in SORT_FIELDS:
            sort = DEFAULT_SORT
        order = ASC if (params.get("order") or "").strip().lower() == ASC else DESC

        if errors:
            raise RequestValidationError(errors, operation="filter_requests")

        return cls(
            status=status,  # type: ignore[arg-type]
            urgency=urgency,  # type: ignore[arg-type]
            date_from=date_from,
            date_to=date_to,
            email=email,
            sort=sort,
            order=order,
        )


def build_filter(criteria: FilterCriteria) -> Callable[[ImageryRequest], bool]:
    """Return a predicate accepting requests that match every criterion."""
    email = criteria.email.lower() if criteria.email else None

    def matches(request: ImageryRequest) -> bool:
        if criteria.status is not None and request.status is not criteria.status:
            return False
        if criteria.urgency is not None and request.urgency is not criteria.urgency:
            return False
        created_at = _as_utc(request.created_at)
        if criteria.date_from is not None and created_at < criteria.date_from:
            return False
        if criteria.date_to is not None and created_at > criteria.date_to:
            return False
        return not (email and email not in request.email.lower())

    return matches


def select_requests(
    requests: Iterable[ImageryRequest], criteria: FilterCriteria
) -> list[ImageryRequest]:
    """Filter *requests* and order them by ``criteria.sort``.

    Ties fall back to newest ``created_at`` first, then to id.
    """
    predicate = build_filter(criteria)
    selected = sorted((r for r in requests if predicate(r)), key=lambda r: r.id)
    selected.sort(key=SORT_FIELDS[DEFAULT_SORT], reverse=True)
    if criteria.sort != DEFAULT_SORT or criteria.order == ASC:
        key = SORT_FIELDS.get(criteria.sort, SORT_FIELDS[DEFAULT_SORT])
        selected.sort(key=key, reverse=criteria.order != ASC)
    return selected


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_enum(
    params: Mapping[str, str],
    key: str,
    enum_type: type[RequestStatus] | type[Urgency],
    errors: dict[str, str],
) -> RequestStatus | Urgency | None:
    raw = (params.get(key) or "").strip().lower()
    if not raw:
        return None
    try:
        return enum_type(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        errors[key] = f"{key} must be one of: {allowed}"
        return None


def _parse_bound(
    params: Mapping[str, str],
    key: str,
    *,
    end_of_day: bool,
    errors: dict[str, str],
) -> datetime | None:
    raw = (params.get(key) or "").strip()
    if not raw:
        return None
    try:
        if len(raw) == _DATE_ONLY_LENGTH:
            day = date.fromisoformat(raw)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=UTC)
        return _as_utc(datetime.fromisoformat(raw))
    except ValueError:
        errors[key] = f"{key} must be an ISO 8601 date or datetime"
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
