"""Shared engine constants, single source of truth.

Centralises coordinate bounds, unit conversions, rounding precision and
storage names that would otherwise be duplicated across the geometry,
lifecycle and storage modules.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# WGS 84 coordinate bounds
# ---------------------------------------------------------------------------

MIN_LONGITUDE: float = -180.0
MAX_LONGITUDE: float = 180.0
MIN_LATITUDE: float = -90.0
MAX_LATITUDE: float = 90.0

MIN_RING_POINTS: int = 4
"""A closed ring needs three distinct vertices plus the closing vertex."""

# ---------------------------------------------------------------------------
# Area approximation
# ---------------------------------------------------------------------------

EARTH_MEAN_RADIUS_KM: float = 6371.0
"""Mean Earth radius used by the equirectangular area approximation."""

AREA_DECIMALS: int = 2
"""Stored ``aoi_area_km2`` precision (km², two decimals)."""

CENTER_DECIMALS: int = 6
"""Stored ``aoi_center`` precision (degrees, six decimals)."""

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

DEFAULT_REQUESTS_CONTAINER: str = "imagery-requests"
"""Default blob container holding one JSON document per request."""

DEFAULT_STATUS_CHANGE_QUEUE: str = "imagery-status-changes"
"""Default storage queue carrying status-change notification messages."""

# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

DEFAULT_PAGE_SIZE: int = 20
MAX_PAGE_SIZE: int = 100
