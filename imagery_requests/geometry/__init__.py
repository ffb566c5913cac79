"""AOI geometry: validation, approximate area, vertex-average centre."""

from imagery_requests.geometry.area import aoi_area_km2, compute_area_km2
from imagery_requests.geometry.centroid import compute_centroid
from imagery_requests.geometry.validation import validate_aoi

__all__ = [
    "aoi_area_km2",
    "compute_area_km2",
    "compute_centroid",
    "validate_aoi",
]
