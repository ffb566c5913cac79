"""Representative centre point of an AOI.

For a polygon this is the arithmetic mean of the ring's distinct
vertices (the duplicated closing vertex is excluded): a vertex-average,
not the area-weighted centroid.  Consumers have been calibrated against
this value, so it must not be silently upgraded.
"""

from __future__ import annotations

from imagery_requests.core.constants import MIN_RING_POINTS
from imagery_requests.core.exceptions import InsufficientPointsError
from imagery_requests.models.aoi import AOI, GeoPoint, PointAOI


def compute_centroid(aoi: AOI) -> GeoPoint:
    """Return the centre of *aoi*.

    Raises:
        InsufficientPointsError: If a polygon ring has fewer than four
            positions (the validator should already have rejected it).
    """
    if isinstance(aoi, PointAOI):
        return aoi.point

    ring = aoi.ring
    if len(ring) < MIN_RING_POINTS:
        msg = (
            f"Centroid computation needs at least {MIN_RING_POINTS} ring positions, "
            f"got {len(ring)}"
        )
        raise InsufficientPointsError(msg)

    distinct = ring[:-1]
    count = len(distinct)
    return GeoPoint(
        lat=sum(lat for _, lat in distinct) / count,
        lng=sum(lng for lng, _ in distinct) / count,
    )
