"""Data models and schemas.

- aoi: Tagged Point / Polygon Area of Interest
- request: ImageryRequest aggregate, status enum, history entries
- submission: Pydantic schemas for inbound HTTP payloads
"""

from imagery_requests.models.aoi import AOI, GeoPoint, PointAOI, PolygonAOI, aoi_from_geojson
from imagery_requests.models.request import (
    TERMINAL_STATUSES,
    AOIType,
    DateRange,
    ImageryFilters,
    ImageryRequest,
    RequestStatus,
    StatusHistoryEntry,
    Urgency,
)

__all__ = [
    "AOI",
    "TERMINAL_STATUSES",
    "AOIType",
    "DateRange",
    "GeoPoint",
    "ImageryFilters",
    "ImageryRequest",
    "PointAOI",
    "PolygonAOI",
    "RequestStatus",
    "StatusHistoryEntry",
    "Urgency",
    "aoi_from_geojson",
]
