"""AOI geometry validation.

Checks the structure and numeric validity of a GeoJSON-like AOI and
returns a typed ``PointAOI`` / ``PolygonAOI``.  Rules are applied in
order and the first failure raises ``InvalidGeometryError``:

1. ``type`` is ``Point`` or ``Polygon``.
2. Point: exactly one ``[lng, lat]`` pair within WGS 84 bounds.
3. Polygon: exactly one ring (holes are unsupported), at least four
   positions, closed (first == last), every position within bounds.

Non-finite values (NaN, ±inf) and non-numeric values (including
booleans) are rejected.  Duplicate consecutive positions are accepted.

Known limitation: self-intersecting rings are **not** detected.  The
equirectangular area of a bow-tie ring is the net signed area of its
lobes, not the covered area.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from imagery_requests.core.constants import (
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
    MIN_RING_POINTS,
)
from imagery_requests.core.exceptions import InvalidGeometryError
from imagery_requests.models.aoi import AOI, POINT, POLYGON, GeoPoint, PointAOI, PolygonAOI

SUPPORTED_TYPES = (POINT, POLYGON)


def validate_aoi(raw: object) -> AOI:
    """Validate a GeoJSON-like AOI and return its typed form.

    Args:
        raw: Mapping with ``type`` and ``coordinates`` keys.

    Returns:
        ``PointAOI`` or ``PolygonAOI``.

    Raises:
        InvalidGeometryError: On the first rule violation.
    """
    if not isinstance(raw, Mapping):
        msg = "AOI must be a GeoJSON object with type and coordinates"
        raise InvalidGeometryError(msg)

    geometry_type = raw.get("type")
    if geometry_type not in SUPPORTED_TYPES:
        msg = f"AOI type must be one of {', '.join(SUPPORTED_TYPES)}, got {geometry_type!r}"
        raise InvalidGeometryError(msg)

    if "coordinates" not in raw:
        msg = "AOI coordinates are required"
        raise InvalidGeometryError(msg)
    coords = raw["coordinates"]

    if geometry_type == POINT:
        lng, lat = _position(coords, "Point")
        return PointAOI(point=GeoPoint(lat=lat, lng=lng))

    return PolygonAOI(ring=_ring(coords))


def _ring(coords: object) -> tuple[tuple[float, float], ...]:
    """Validate Polygon coordinates and return the single outer ring."""
    if not _is_sequence(coords) or not coords:  # type: ignore[arg-type]
        msg = "Polygon coordinates must be a non-empty list of rings"
        raise InvalidGeometryError(msg)

    ring_count = len(coords)  # type: ignore[arg-type]
    if ring_count > 1:
        msg = f"Polygon holes are not supported: expected 1 ring, got {ring_count}"
        raise InvalidGeometryError(msg)

    ring_raw = coords[0]  # type: ignore[index]
    if not _is_sequence(ring_raw):
        msg = "Polygon ring must be a list of [lng, lat] positions"
        raise InvalidGeometryError(msg)

    if len(ring_raw) < MIN_RING_POINTS:
        msg = (
            f"Polygon ring has {len(ring_raw)} position(s), "
            f"need at least {MIN_RING_POINTS} (including closure)"
        )
        raise InvalidGeometryError(msg)

    ring = tuple(_position(p, f"Polygon position {i}") for i, p in enumerate(ring_raw))

    if ring[0] != ring[-1]:
        msg = f"Polygon ring is not closed: first {list(ring[0])} != last {list(ring[-1])}"
        raise InvalidGeometryError(msg)

    return ring


def _position(value: object, context: str) -> tuple[float, float]:
    """Validate a single ``[lng, lat]`` pair and return it as floats."""
    if not _is_sequence(value) or len(value) != 2:  # type: ignore[arg-type]
        msg = f"{context} must be exactly one [lng, lat] coordinate pair"
        raise InvalidGeometryError(msg)

    lng_raw, lat_raw = value  # type: ignore[misc]
    if not _is_number(lng_raw) or not _is_number(lat_raw):
        shown = list(value)  # type: ignore[call-overload]
        msg = f"{context} coordinates must be numbers, got {shown!r}"
        raise InvalidGeometryError(msg)

    try:
        lng, lat = float(lng_raw), float(lat_raw)
    except OverflowError as exc:
        msg = f"{context} coordinates must be finite, got an integer beyond float range"
        raise InvalidGeometryError(msg) from exc
    if not (math.isfinite(lng) and math.isfinite(lat)):
        msg = f"{context} coordinates must be finite, got [{lng}, {lat}]"
        raise InvalidGeometryError(msg)

    if not MIN_LONGITUDE <= lng <= MAX_LONGITUDE:
        msg = f"{context} longitude {lng} out of range [{MIN_LONGITUDE}, {MAX_LONGITUDE}]"
        raise InvalidGeometryError(msg)
    if not MIN_LATITUDE <= lat <= MAX_LATITUDE:
        msg = f"{context} latitude {lat} out of range [{MIN_LATITUDE}, {MAX_LATITUDE}]"
        raise InvalidGeometryError(msg)

    return (lng, lat)


def _is_sequence(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)
