"""Data model for a customer imagery request.

An ``ImageryRequest`` couples an immutable identity (id, submission
time, requester, AOI and its derived measurements) with lifecycle fields
that only ``lifecycle.transitions.apply_transition`` may change.  The
dataclass is frozen: every transition produces a new instance via
``dataclasses.replace`` and the status history is a tuple, so earlier
entries can never be rewritten in place.

Design notes:
- Status and urgency values are enums, not ad-hoc strings.
- ``admin_notes`` holds the *latest* annotation only; each history entry
  keeps the notes given with that transition.
- ``to_dict`` / ``from_dict`` produce the JSON-safe document persisted by
  the request stores (datetimes as ISO 8601 strings).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from imagery_requests.models.aoi import AOI, GeoPoint, aoi_from_geojson

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RequestStatus(enum.Enum):
    """Lifecycle state of an imagery request.

    Values:
        PENDING:   Submitted, awaiting review (initial state).
        REVIEWING: An administrator is assessing feasibility.
        QUOTED:    A price has been committed to the requester.
        APPROVED:  The requester accepted the quote (terminal).
        DECLINED:  The request or quote was declined (terminal).
        CANCELLED: Withdrawn before a quote was committed (terminal).
    """

    PENDING = "pending"
    REVIEWING = "reviewing"
    QUOTED = "quoted"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RequestStatus.APPROVED, RequestStatus.DECLINED, RequestStatus.CANCELLED}
)

QUOTED_OR_LATER = frozenset(
    {RequestStatus.QUOTED, RequestStatus.APPROVED, RequestStatus.DECLINED}
)


class Urgency(enum.Enum):
    """Requester-declared urgency."""

    STANDARD = "standard"
    URGENT = "urgent"


class AOIType(enum.Enum):
    """Client drawing tool that produced the AOI geometry."""

    POLYGON = "polygon"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateRange:
    """Requested acquisition window (inclusive). ``start <= end``."""

    start: date
    end: date

    def to_dict(self) -> dict[str, str]:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DateRange:
        return cls(
            start=date.fromisoformat(str(data["start_date"])),
            end=date.fromisoformat(str(data["end_date"])),
        )


@dataclass(frozen=True, slots=True)
class ImageryFilters:
    """Requester preferences, passed through to fulfilment unchanged.

    Attributes:
        resolution_category: Resolution classes (e.g. ``"vhr"``, ``"high"``).
        max_cloud_coverage: Maximum acceptable cloud cover percentage (0-100).
        providers: Preferred imagery providers.
        bands: Requested spectral bands.
        image_types: Sensor families (e.g. ``"optical"``, ``"radar"``).
    """

    resolution_category: tuple[str, ...] = ()
    max_cloud_coverage: float | None = None
    providers: tuple[str, ...] = ()
    bands: tuple[str, ...] = ()
    image_types: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "resolution_category": list(self.resolution_category),
            "max_cloud_coverage": self.max_cloud_coverage,
            "providers": list(self.providers),
            "bands": list(self.bands),
            "image_types": list(self.image_types),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageryFilters:
        cloud = data.get("max_cloud_coverage")
        return cls(
            resolution_category=tuple(data.get("resolution_category") or ()),
            max_cloud_coverage=float(cloud) if cloud is not None else None,
            providers=tuple(data.get("providers") or ()),
            bands=tuple(data.get("bands") or ()),
            image_types=tuple(data.get("image_types") or ()),
        )


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    """One audit-trail record: the status entered, when, and why.

    Attributes:
        status: Status entered by this transition.
        changed_at: Transition time (timezone-aware UTC).
        notes: Notes supplied with this transition.
        changed_by: Opaque administrator identifier, if known.
    """

    status: RequestStatus
    changed_at: datetime
    notes: str = ""
    changed_by: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "status": self.status.value,
            "changed_at": self.changed_at.isoformat(),
            "notes": self.notes,
            "changed_by": self.changed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusHistoryEntry:
        return cls(
            status=RequestStatus(data["status"]),
            changed_at=datetime.fromisoformat(str(data["changed_at"])),
            notes=str(data.get("notes") or ""),
            changed_by=str(data.get("changed_by") or ""),
        )


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImageryRequest:
    """A submitted imagery request and its lifecycle state.

    Identity and derived geometry never change after creation.  Lifecycle
    fields (``status``, ``status_history``, ``admin_notes``, quote and
    review metadata, ``updated_at``) change only through transitions.
    """

    id: str
    created_at: datetime
    full_name: str
    email: str
    aoi: AOI
    aoi_area_km2: float
    aoi_center: GeoPoint
    date_range: DateRange
    status_history: tuple[StatusHistoryEntry, ...]
    status: RequestStatus = RequestStatus.PENDING
    aoi_type: AOIType = AOIType.POLYGON
    company: str = ""
    phone: str = ""
    filters: ImageryFilters = field(default_factory=ImageryFilters)
    urgency: Urgency = Urgency.STANDARD
    additional_requirements: str = ""
    admin_notes: str = ""
    quote_amount: float | None = None
    quote_currency: str | None = None
    updated_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str = ""

    @property
    def has_quote(self) -> bool:
        return self.quote_amount is not None and bool(self.quote_currency)

    def to_dict(self) -> dict[str, object]:
        """Serialise to the JSON-safe document persisted by the stores."""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": _iso_or_none(self.updated_at),
            "full_name": self.full_name,
            "email": self.email,
            "company": self.company,
            "phone": self.phone,
            "aoi_type": self.aoi_type.value,
            "aoi": self.aoi.to_geojson(),
            "aoi_area_km2": self.aoi_area_km2,
            "aoi_center": self.aoi_center.to_dict(),
            "date_range": self.date_range.to_dict(),
            "filters": self.filters.to_dict(),
            "urgency": self.urgency.value,
            "additional_requirements": self.additional_requirements,
            "status": self.status.value,
            "status_history": [entry.to_dict() for entry in self.status_history],
            "admin_notes": self.admin_notes,
            "quote_amount": self.quote_amount,
            "quote_currency": self.quote_currency,
            "reviewed_at": _iso_or_none(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageryRequest:
        """Deserialise a stored document.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If an enum or timestamp field is malformed.
        """
        history_raw = data.get("status_history") or []
        if not isinstance(history_raw, list):
            msg = f"status_history must be a list, got {type(history_raw).__name__}"
            raise TypeError(msg)

        quote_raw = data.get("quote_amount")
        return cls(
            id=str(data["id"]),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=_parse_optional_datetime(data.get("updated_at")),
            full_name=str(data["full_name"]),
            email=str(data["email"]),
            company=str(data.get("company") or ""),
            phone=str(data.get("phone") or ""),
            aoi_type=AOIType(data.get("aoi_type", AOIType.POLYGON.value)),
            aoi=aoi_from_geojson(data["aoi"]),
            aoi_area_km2=float(data["aoi_area_km2"]),
            aoi_center=GeoPoint.from_dict(data["aoi_center"]),
            date_range=DateRange.from_dict(data["date_range"]),
            filters=ImageryFilters.from_dict(data.get("filters") or {}),
            urgency=Urgency(data.get("urgency", Urgency.STANDARD.value)),
            additional_requirements=str(data.get("additional_requirements") or ""),
            status=RequestStatus(data["status"]),
            status_history=tuple(StatusHistoryEntry.from_dict(e) for e in history_raw),
            admin_notes=str(data.get("admin_notes") or ""),
            quote_amount=float(quote_raw) if quote_raw is not None else None,
            quote_currency=data.get("quote_currency") or None,
            reviewed_at=_parse_optional_datetime(data.get("reviewed_at")),
            reviewed_by=str(data.get("reviewed_by") or ""),
        )


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_optional_datetime(value: object) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value))
