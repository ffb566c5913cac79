"""Shared pytest fixtures for the imagery request engine test suite."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pytest

from imagery_requests.models.aoi import GeoPoint, PolygonAOI
from imagery_requests.models.request import (
    DateRange,
    ImageryFilters,
    ImageryRequest,
    RequestStatus,
    StatusHistoryEntry,
    Urgency,
)
from imagery_requests.notifications.base import Notifier
from imagery_requests.storage.memory import InMemoryRequestStore

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

# 0.01 degree square at the equator (~1.2364 km2, centre (0.005, 0.005)).
SQUARE_RING = ((0.0, 0.0), (0.01, 0.0), (0.01, 0.01), (0.0, 0.01), (0.0, 0.0))


# ---------------------------------------------------------------------------
# Doubles
# ---------------------------------------------------------------------------


class StepClock:
    """Deterministic clock: every call returns a time one minute later."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(minutes=1)) -> None:
        self._times = (start + step * i for i in itertools.count())

    def __call__(self) -> datetime:
        return next(self._times)


class RecordingNotifier(Notifier):
    """Records every call; optionally raises to simulate a broken channel."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.status_changes: list[tuple[str, RequestStatus, RequestStatus]] = []
        self.submissions: list[str] = []

    def on_status_changed(
        self, request: ImageryRequest, old_status: RequestStatus, new_status: RequestStatus
    ) -> None:
        self.status_changes.append((request.id, old_status, new_status))
        if self.fail:
            msg = "notification channel down"
            raise RuntimeError(msg)

    def on_submitted(self, request: ImageryRequest) -> None:
        self.submissions.append(request.id)
        if self.fail:
            msg = "notification channel down"
            raise RuntimeError(msg)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)


@pytest.fixture()
def store() -> InMemoryRequestStore:
    return InMemoryRequestStore()


@pytest.fixture()
def square_geojson() -> dict[str, Any]:
    """GeoJSON-like Polygon for the 0.01 degree equatorial square."""
    return {"type": "Polygon", "coordinates": [[list(p) for p in SQUARE_RING]]}


@pytest.fixture()
def submission_body(square_geojson: dict[str, Any]) -> dict[str, Any]:
    """A valid submission body as posted by the web client."""
    return {
        "full_name": "Ada Lovelace",
        "email": "Ada@Example.com",
        "company": "Analytical Engines Ltd",
        "phone": "+44 (0)20 7946 0000",
        "aoi": square_geojson,
        "aoi_type": "rectangle",
        "date_range": {"start_date": "2025-04-01", "end_date": "2025-04-30"},
        "filters": {
            "resolution_category": ["vhr", "high"],
            "max_cloud_coverage": 20,
            "providers": ["maxar"],
            "bands": ["rgb", "nir"],
            "image_types": ["optical"],
        },
        "urgency": "urgent",
        "additional_requirements": "Orthorectified, please.",
    }


@pytest.fixture()
def make_request() -> Callable[..., ImageryRequest]:
    """Factory for stored-looking requests; keyword overrides replace fields."""
    counter = itertools.count(1)

    def _make(**overrides: Any) -> ImageryRequest:
        n = next(counter)
        created_at = overrides.pop("created_at", T0 + timedelta(hours=n))
        status = overrides.pop("status", RequestStatus.PENDING)
        fields: dict[str, Any] = {
            "id": f"req-{n:03d}",
            "created_at": created_at,
            "full_name": f"Requester {n}",
            "email": f"user{n}@example.com",
            "aoi": PolygonAOI(ring=SQUARE_RING),
            "aoi_area_km2": 1.24,
            "aoi_center": GeoPoint(lat=0.005, lng=0.005),
            "date_range": DateRange(start=date(2025, 4, 1), end=date(2025, 4, 30)),
            "filters": ImageryFilters(),
            "urgency": Urgency.STANDARD,
            "status": status,
            "status_history": (StatusHistoryEntry(status=status, changed_at=created_at),),
        }
        fields.update(overrides)
        return ImageryRequest(**fields)

    return _make


@pytest.fixture(autouse=True)
def _isolated_memory_store() -> Iterator[None]:
    """Reset the process-wide in-memory store between tests."""
    from imagery_requests.storage.factory import reset_memory_store

    reset_memory_store()
    yield
    reset_memory_store()
