"""Route computation through the Google Routes API."""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from healthspot.core.coordinates import format_duration, is_valid_coordinates
from healthspot.core.errors import ValidationError
from healthspot.integrations.google_maps import PlacesClient

logger = logging.getLogger(__name__)

TRAVEL_MODES = ("DRIVE", "BICYCLE", "WALK", "TWO_WHEELER", "TRANSIT")

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)s$")


class Waypoint(BaseModel):
    """A route endpoint given either as coordinates or as a place id."""

    lat: Optional[float] = None
    lng: Optional[float] = None
    place_id: Optional[str] = None

    def to_routes_waypoint(self) -> Dict[str, Any]:
        if self.place_id:
            return {"placeId": self.place_id}
        return {
            "location": {"latLng": {"latitude": self.lat, "longitude": self.lng}}
        }

    @property
    def is_resolvable(self) -> bool:
        return bool(self.place_id) or is_valid_coordinates(self.lat, self.lng)

    def describe(self) -> Dict[str, Any]:
        if self.place_id:
            return {"placeId": self.place_id}
        return {"lat": self.lat, "lng": self.lng}


class RouteOptions(BaseModel):
    travel_mode: str = Field(default="DRIVE", serialization_alias="travelMode")
    alternatives: bool = False
    avoid_tolls: bool = Field(default=False, serialization_alias="avoidTolls")
    avoid_highways: bool = Field(default=False, serialization_alias="avoidHighways")
    avoid_ferries: bool = Field(default=False, serialization_alias="avoidFerries")
    waypoints: List[Waypoint] = Field(default_factory=list)


def parse_duration(value: Any) -> int:
    """Parse a protobuf duration string like ``"754s"`` into whole seconds."""
    if isinstance(value, (int, float)):
        return int(value)
    match = _DURATION_RE.match(str(value or "").strip())
    return int(float(match.group(1))) if match else 0


def parse_waypoints(raw: Optional[str]) -> List[Waypoint]:
    """Decode the ``waypoints`` query parameter; bad JSON is ignored."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring invalid waypoints parameter: {e}")
        return []
    if not isinstance(items, list):
        logger.warning("Ignoring waypoints parameter that is not a list")
        return []

    waypoints = []
    for item in items:
        if not isinstance(item, dict):
            continue
        waypoint = Waypoint(
            lat=item.get("lat"),
            lng=item.get("lng"),
            place_id=item.get("placeId") or item.get("place_id"),
        )
        if waypoint.is_resolvable:
            waypoints.append(waypoint)
    return waypoints


def build_route_request(
    origin: Waypoint, destination: Waypoint, options: RouteOptions
) -> Dict[str, Any]:
    travel_mode = options.travel_mode.upper()
    if travel_mode not in TRAVEL_MODES:
        raise ValidationError(
            f"Unsupported travel mode: {options.travel_mode}",
            details={"allowed": list(TRAVEL_MODES)},
        )

    body: Dict[str, Any] = {
        "origin": origin.to_routes_waypoint(),
        "destination": destination.to_routes_waypoint(),
        "travelMode": travel_mode,
        "computeAlternativeRoutes": options.alternatives,
        "routeModifiers": {
            "avoidTolls": options.avoid_tolls,
            "avoidHighways": options.avoid_highways,
            "avoidFerries": options.avoid_ferries,
        },
        "languageCode": "en-US",
        "units": "METRIC",
    }
    # Traffic-aware routing is only accepted for motorised modes
    if travel_mode in ("DRIVE", "TWO_WHEELER"):
        body["routingPreference"] = "TRAFFIC_AWARE"
    if options.waypoints:
        body["intermediates"] = [w.to_routes_waypoint() for w in options.waypoints]
    return body


def _distance(meters: Optional[int]) -> Dict[str, Any]:
    meters = meters or 0
    return {"meters": meters, "text": f"{meters / 1000:.1f} km"}


def _duration(value: Any) -> Dict[str, Any]:
    seconds = parse_duration(value)
    return {"seconds": seconds, "text": format_duration(seconds)}


def _lat_lng(location: Optional[Dict[str, Any]]) -> Optional[Dict[str, float]]:
    lat_lng = (location or {}).get("latLng")
    if not lat_lng:
        return None
    return {"lat": lat_lng.get("latitude"), "lng": lat_lng.get("longitude")}


def _format_step(step: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "distance": _distance(step.get("distanceMeters")),
        "duration": _duration(step.get("staticDuration") or step.get("duration")),
        "instruction": (step.get("navigationInstruction") or {}).get("instructions"),
        "maneuver": (step.get("navigationInstruction") or {}).get("maneuver"),
        "polyline": (step.get("polyline") or {}).get("encodedPolyline"),
        "startLocation": _lat_lng(step.get("startLocation")),
        "endLocation": _lat_lng(step.get("endLocation")),
    }


def _format_route(route: Dict[str, Any]) -> Dict[str, Any]:
    advisory = route.get("travelAdvisory") or {}
    return {
        "distance": _distance(route.get("distanceMeters")),
        "duration": _duration(route.get("duration")),
        "polyline": (route.get("polyline") or {}).get("encodedPolyline"),
        "legs": [
            {
                "distance": _distance(leg.get("distanceMeters")),
                "duration": _duration(leg.get("duration")),
                "startLocation": _lat_lng(leg.get("startLocation")),
                "endLocation": _lat_lng(leg.get("endLocation")),
                "steps": [_format_step(step) for step in leg.get("steps") or []],
            }
            for leg in route.get("legs") or []
        ],
        "warnings": route.get("warnings") or [],
        "tollInfo": advisory.get("tollInfo"),
        "speedReadingIntervals": advisory.get("speedReadingIntervals") or [],
        "labels": route.get("routeLabels") or [],
    }


def format_route_response(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Shape a computeRoutes payload; None when no route was found."""
    routes = data.get("routes") or []
    if not routes:
        return None
    formatted = [_format_route(route) for route in routes]
    return {
        "status": "OK",
        "routes": formatted[:1],
        "alternativeRoutes": formatted[1:],
    }


async def compute_route(
    places: PlacesClient,
    origin: Waypoint,
    destination: Waypoint,
    options: RouteOptions,
) -> Dict[str, Any]:
    """Compute a route and return it with the request echo.

    Raises:
        ValidationError: If origin or destination is missing
        UpstreamServiceError: If the Routes API call fails
    """
    if not origin.is_resolvable:
        raise ValidationError("Origin location is required (coordinates or placeId)")
    if not destination.is_resolvable:
        raise ValidationError("Destination location is required (coordinates or placeId)")

    body = build_route_request(origin, destination, options)
    logger.info(f"Computing {body['travelMode']} route with {len(options.waypoints)} waypoints")
    data = await places.compute_routes(body)

    return {
        "route": format_route_response(data),
        "origin": origin.describe(),
        "destination": destination.describe(),
        "options": options.model_dump(by_alias=True, exclude={"waypoints"}),
    }
