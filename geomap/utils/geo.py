# geomap/utils/geo.py
import math
from typing import Any, Optional, Sequence

import numpy as np

from ..schemas.common import BoundsRect

EARTH_RADIUS_KM = 6371.0


def to_rad(value):
    return value * math.pi / 180


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points given in degrees."""
    d_lat = to_rad(lat2 - lat1)
    d_lon = to_rad(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_rad(lat1)) * math.cos(to_rad(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_distances_km(lat: float, lon: float, lats: Sequence[float], lons: Sequence[float]) -> np.ndarray:
    """Vectorized haversine from one origin to many points."""
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)
    d_lat = to_rad(lats - lat)
    d_lon = to_rad(lons - lon)
    a = np.sin(d_lat / 2) ** 2 + np.cos(to_rad(lat)) * np.cos(to_rad(lats)) * np.sin(d_lon / 2) ** 2
    # rounding can push `a` a hair above 1
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def in_bounds(lat: float, lng: float, rect: BoundsRect) -> bool:
    # inclusive on every edge; west > east is not unwrapped
    return rect.south <= lat <= rect.north and rect.west <= lng <= rect.east


def point_bbox(lat: float, lon: float, half_size_deg: float = 0.2) -> BoundsRect:
    return BoundsRect(
        west=max(-180.0, lon - half_size_deg),
        south=max(-90.0, lat - half_size_deg),
        east=min(180.0, lon + half_size_deg),
        north=min(90.0, lat + half_size_deg),
    )


def coerce_coordinate(value: Any, limit: float) -> Optional[float]:
    """
    Parse a latitude (limit=90) or longitude (limit=180) coming from a backend.
    Empty, non-numeric and out-of-range values give None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        v = float(str(value).strip().replace(",", "."))
    except ValueError:
        return None
    if math.isnan(v) or not -limit <= v <= limit:
        return None
    return v


def parse_lat_lng(value: Any) -> Optional[tuple[float, float]]:
    """Parse a combined "lat,lng" (or "lat;lng" / "lat lng") string."""
    if not value or not isinstance(value, str):
        return None
    for sep in (";", ",", " "):
        parts = [p for p in value.split(sep) if p.strip()]
        if len(parts) == 2:
            lat = coerce_coordinate(parts[0], 90)
            lng = coerce_coordinate(parts[1], 180)
            if lat is not None and lng is not None:
                return lat, lng
    return None


def ring_centroid(ring: Sequence[Sequence[float]]) -> Optional[tuple[float, float]]:
    """Mean vertex of a [lat, lng] ring; good enough to pin a polygon on the map."""
    if not ring:
        return None
    arr = np.asarray(ring, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        return None
    lat, lng = arr.mean(axis=0)
    return float(lat), float(lng)
