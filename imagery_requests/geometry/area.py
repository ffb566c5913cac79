"""AOI area in square kilometres (equirectangular approximation).

Longitudes are scaled by ``cos(mean latitude)`` of the ring's distinct
vertices, the planar polygon area of the scaled ring is taken (Shapely,
absolute value, so winding order is irrelevant), and square degrees are
converted to km² using the Earth's mean radius.

This is an approximation adequate for AOIs up to a few hundred km
across.  Stored areas and downstream pricing were produced with it, so
switching to a geodesic/ellipsoidal model is a breaking change.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from imagery_requests.core.constants import EARTH_MEAN_RADIUS_KM, MIN_RING_POINTS
from imagery_requests.core.exceptions import InsufficientPointsError
from imagery_requests.models.aoi import AOI, PointAOI

KM_PER_DEGREE = math.pi / 180.0 * EARTH_MEAN_RADIUS_KM
"""Length of one degree of arc on the mean-radius sphere (~111.19 km)."""


def compute_area_km2(ring: Sequence[tuple[float, float]]) -> float:
    """Compute the approximate area of a closed ``(lng, lat)`` ring in km².

    Args:
        ring: Closed outer ring (first == last), at least four positions.

    Returns:
        Non-negative area in km².  Zero-length segments contribute nothing.

    Raises:
        InsufficientPointsError: If the ring has fewer than four positions
            (the validator should already have rejected it).
    """
    if len(ring) < MIN_RING_POINTS:
        msg = (
            f"Area computation needs at least {MIN_RING_POINTS} ring positions, "
            f"got {len(ring)}"
        )
        raise InsufficientPointsError(msg)

    from shapely.geometry import Polygon

    distinct = ring[:-1]
    mean_lat = sum(lat for _, lat in distinct) / len(distinct)
    lng_scale = math.cos(math.radians(mean_lat))

    projected = [(lng * lng_scale, lat) for lng, lat in ring]
    square_degrees = abs(Polygon(projected).area)

    return square_degrees * KM_PER_DEGREE * KM_PER_DEGREE


def aoi_area_km2(aoi: AOI) -> float:
    """Return the area of an AOI in km².  A point has zero area."""
    if isinstance(aoi, PointAOI):
        return 0.0
    return compute_area_km2(aoi.ring)
