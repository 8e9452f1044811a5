"""Coordinate validation and map geometry helpers."""

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence
from urllib.parse import urlencode

METERS_PER_DEGREE_LAT = 111000.0

STATIC_MAP_URL = "https://maps.googleapis.com/maps/api/staticmap"
STATIC_MAP_MAX_MARKERS = 10


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def is_valid_latitude(lat: Any) -> bool:
    number = _to_float(lat)
    return number is not None and -90 <= number <= 90


def is_valid_longitude(lng: Any) -> bool:
    number = _to_float(lng)
    return number is not None and -180 <= number <= 180


def is_valid_coordinates(lat: Any, lng: Any) -> bool:
    """Check that both values are numeric and inside WGS84 ranges."""
    return is_valid_latitude(lat) and is_valid_longitude(lng)


def _point(item: Any) -> tuple[Any, Any]:
    if isinstance(item, Mapping):
        return item.get("lat"), item.get("lng")
    return getattr(item, "lat", None), getattr(item, "lng", None)


def filter_valid_coordinates(items: Iterable[Any]) -> list[Any]:
    """Keep only items (mappings or objects with lat/lng) with usable coordinates."""
    return [item for item in items if is_valid_coordinates(*_point(item))]


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular lat/lng range."""

    south: float
    west: float
    north: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def as_dict(self) -> dict[str, float]:
        return {
            "south": self.south,
            "west": self.west,
            "north": self.north,
            "east": self.east,
        }


def bounding_box(lat: float, lng: float, radius_meters: float) -> BoundingBox:
    """Approximate a circular radius with an equirectangular box.

    Latitude span is ``radius / 111000`` degrees; the longitude span is
    widened by ``1 / cos(lat)``. Near the poles the cosine vanishes, so the
    longitude span is clamped to the whole globe.

    The box does not wrap at the antimeridian: near +/-180 degrees one edge
    runs past the valid range, so points across the line are not matched.
    """
    lat_delta = radius_meters / METERS_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(lat))
    if abs(cos_lat) < 1e-9:
        lng_delta = 180.0
    else:
        lng_delta = min(radius_meters / (METERS_PER_DEGREE_LAT * abs(cos_lat)), 180.0)
    return BoundingBox(
        south=lat - lat_delta,
        west=lng - lng_delta,
        north=lat + lat_delta,
        east=lng + lng_delta,
    )


def viewport_bounds(points: Iterable[Any]) -> dict[str, float] | None:
    """Smallest box containing every valid point, or None when there are none."""
    valid = [_point(p) for p in filter_valid_coordinates(points)]
    if not valid:
        return None
    lats = [float(lat) for lat, _ in valid]
    lngs = [float(lng) for _, lng in valid]
    return BoundingBox(
        south=min(lats), west=min(lngs), north=max(lats), east=max(lngs)
    ).as_dict()


def static_map_url(
    center: Mapping[str, float],
    providers: Sequence[Any] = (),
    api_key: str | None = None,
    zoom: int = 14,
    width: int = 600,
    height: int = 400,
) -> str:
    """Build a Google Static Maps URL with numbered markers."""
    params: list[tuple[str, str]] = [
        ("center", f"{center['lat']},{center['lng']}"),
        ("zoom", str(zoom)),
        ("size", f"{width}x{height}"),
        ("maptype", "roadmap"),
        ("scale", "2"),
    ]
    for index, provider in enumerate(providers[:STATIC_MAP_MAX_MARKERS], start=1):
        lat, lng = _point(provider)
        if not is_valid_coordinates(lat, lng):
            continue
        params.append(("markers", f"color:red|label:{index}|{lat},{lng}"))
    params.append(("style", "feature:poi.business|visibility:on"))
    params.append(("style", "feature:poi.medical|visibility:on"))
    if api_key:
        params.append(("key", api_key))
    return f"{STATIC_MAP_URL}?{urlencode(params)}"


def format_duration(seconds: int) -> str:
    """Render a route duration as ``N sec``, ``N min`` or ``H hour(s) M min``."""
    if seconds < 60:
        return f"{seconds} sec"
    if seconds < 3600:
        return f"{math.floor(seconds / 60)} min"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    unit = "hour" if hours == 1 else "hours"
    return f"{hours} {unit} {minutes} min"
