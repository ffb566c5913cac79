"""Data model for a customer Area of Interest (AOI).

An AOI is a tagged geometry: either a single point (the centre of a
client-drawn circle) or a polygon with exactly one outer ring.  Holes
are not supported.  Coordinates follow GeoJSON axis order, ``(lng, lat)``,
in WGS 84 degrees.

Instances are only built by ``geometry.validation.validate_aoi`` (or
``aoi_from_geojson`` for documents that were validated on the way in),
so downstream calculators may assume the ring invariants hold.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

POINT = "Point"
POLYGON = "Polygon"


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A WGS 84 position with explicit ``lat`` / ``lng`` attributes."""

    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeoPoint:
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))


@dataclass(frozen=True, slots=True)
class PointAOI:
    """Point-shaped AOI.

    Attributes:
        point: The position, in ``lat`` / ``lng`` form.
    """

    geometry_type: ClassVar[str] = POINT

    point: GeoPoint

    def to_geojson(self) -> dict[str, Any]:
        """Serialise as a GeoJSON-like ``Point`` (``[lng, lat]``)."""
        return {"type": POINT, "coordinates": [self.point.lng, self.point.lat]}


@dataclass(frozen=True, slots=True)
class PolygonAOI:
    """Polygon AOI with a single closed outer ring.

    Attributes:
        ring: Outer ring as ``(lng, lat)`` tuples; first equals last.
    """

    geometry_type: ClassVar[str] = POLYGON

    ring: tuple[tuple[float, float], ...]

    @property
    def vertex_count(self) -> int:
        """Number of distinct vertices (the closing vertex excluded)."""
        return len(self.ring) - 1

    def to_geojson(self) -> dict[str, Any]:
        """Serialise as a GeoJSON-like ``Polygon`` (``[[[lng, lat], ...]]``)."""
        return {"type": POLYGON, "coordinates": [[list(c) for c in self.ring]]}


AOI = PointAOI | PolygonAOI


def aoi_from_geojson(data: dict[str, Any]) -> AOI:
    """Rebuild an AOI from its stored GeoJSON-like form.

    No validation is performed; stored documents were validated at
    submission.  Use ``validate_aoi`` for untrusted input.

    Raises:
        TypeError: If ``type`` is not a supported geometry tag.
    """
    geometry_type = data.get("type")
    coords = data.get("coordinates")
    if geometry_type == POINT:
        lng, lat = coords  # type: ignore[misc]
        return PointAOI(point=GeoPoint(lat=float(lat), lng=float(lng)))
    if geometry_type == POLYGON:
        ring = tuple((float(c[0]), float(c[1])) for c in coords[0])  # type: ignore[index]
        return PolygonAOI(ring=ring)
    msg = f"Unsupported AOI geometry type: {geometry_type!r}"
    raise TypeError(msg)
