"""Map endpoints: provider search, provider details, routes and map config."""

import logging
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.deps import get_anonymous_id, get_places, get_resolver
from healthspot.api.v1.maps.models import (
    LatLng,
    MapConfigResponse,
    ProviderDetailResponse,
    ProviderRecord,
    ProviderSearchResponse,
    SearchCriteria,
)
from healthspot.api.v1.maps.routing import (
    RouteOptions,
    Waypoint,
    compute_route,
    parse_waypoints,
)
from healthspot.api.v1.maps.search_service import ProviderSearchService
from healthspot.api.v1.saved.service import UserService
from healthspot.core.config import settings
from healthspot.core.db import get_session
from healthspot.core.geocoding import GeocodeResolver
from healthspot.database.repositories import ProviderRepository
from healthspot.integrations.google_maps import PlacesClient

router = APIRouter(prefix="/maps", tags=["maps"])
logger = logging.getLogger(__name__)


def get_search_service(
    session: AsyncSession = Depends(get_session),
    places: PlacesClient = Depends(get_places),
    resolver: GeocodeResolver = Depends(get_resolver),
) -> ProviderSearchService:
    return ProviderSearchService(ProviderRepository(session), places, resolver)


@router.get("/config", response_model=MapConfigResponse)
async def get_map_config(
    places: PlacesClient = Depends(get_places),
) -> MapConfigResponse:
    """Initial map state for the client."""
    return MapConfigResponse(
        initial_center=LatLng(
            lat=settings.DEFAULT_CENTER_LAT, lng=settings.DEFAULT_CENTER_LNG
        ),
        api_status="ok" if places.is_configured else "unconfigured",
        google_maps_api_key=places.api_key,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/providers", response_model=ProviderSearchResponse)
async def search_providers(
    query: Optional[str] = Query(None, description="Free-text search"),
    lat: Optional[float] = Query(None, description="Latitude of the search center"),
    lng: Optional[float] = Query(None, description="Longitude of the search center"),
    pincode: Optional[str] = Query(None, description="Postal code to search around"),
    country: Optional[str] = Query(
        None, max_length=64, description="ISO country code hint for the postal code"
    ),
    radius: int = Query(
        settings.DEFAULT_SEARCH_RADIUS_METERS,
        gt=0,
        le=50000,
        description="Search radius in meters",
    ),
    type: Optional[str] = Query(None, description="Provider type, e.g. hospital"),
    specialty: Optional[str] = Query(None, description="Medical specialty"),
    price_range: Optional[int] = Query(
        None, alias="priceRange", ge=0, le=4, description="Maximum price level"
    ),
    insurance: Optional[str] = Query(
        None, description="Comma-separated insurance plan ids"
    ),
    min_rating: float = Query(0, alias="minRating", ge=0, le=5),
    service: ProviderSearchService = Depends(get_search_service),
    session: AsyncSession = Depends(get_session),
    anonymous_id: Optional[str] = Depends(get_anonymous_id),
) -> ProviderSearchResponse:
    """
    Search healthcare providers by coordinates, postal code or free text.

    At least one of `lat`/`lng`, `pincode` or `query` is required. When a
    postal code cannot be geocoded but `country` is given, the search runs
    around the country's approximate center and the response carries a
    `warning`.
    """
    criteria = SearchCriteria(
        query=query,
        lat=lat,
        lng=lng,
        pincode=pincode,
        country=country,
        radius=radius,
        type=type,
        specialty=specialty,
        price_range=price_range,
        insurance=insurance,
        min_rating=min_rating,
    )
    response = await service.search(criteria)

    if anonymous_id:
        users = UserService(session)
        await users.get_or_create_anonymous_id(anonymous_id)
        await users.save_search_history(
            anonymous_id,
            criteria.model_dump(exclude_defaults=True),
            len(response.providers),
        )
    return response


@router.get("/providers/{place_id}", response_model=ProviderDetailResponse)
async def get_provider(
    place_id: str,
    service: ProviderSearchService = Depends(get_search_service),
) -> ProviderDetailResponse:
    """Provider details by internal id or Google placeId."""
    provider = await service.get_details(place_id)
    return ProviderDetailResponse(provider=provider)


@router.get("/route")
async def get_route(
    origin_lat: Optional[float] = Query(None, alias="originLat"),
    origin_lng: Optional[float] = Query(None, alias="originLng"),
    origin_place_id: Optional[str] = Query(None, alias="originPlaceId"),
    dest_lat: Optional[float] = Query(None, alias="destLat"),
    dest_lng: Optional[float] = Query(None, alias="destLng"),
    dest_place_id: Optional[str] = Query(None, alias="destPlaceId"),
    travel_mode: str = Query("DRIVE", alias="travelMode"),
    alternatives: bool = Query(False),
    avoid_tolls: bool = Query(False, alias="avoidTolls"),
    avoid_highways: bool = Query(False, alias="avoidHighways"),
    avoid_ferries: bool = Query(False, alias="avoidFerries"),
    waypoints: Optional[str] = Query(None, description="JSON list of {lat, lng} or {placeId}"),
    places: PlacesClient = Depends(get_places),
) -> Dict[str, Any]:
    """Directions between two points through the Routes API."""
    options = RouteOptions(
        travel_mode=travel_mode,
        alternatives=alternatives,
        avoid_tolls=avoid_tolls,
        avoid_highways=avoid_highways,
        avoid_ferries=avoid_ferries,
        waypoints=parse_waypoints(waypoints),
    )
    return await compute_route(
        places,
        Waypoint(lat=origin_lat, lng=origin_lng, place_id=origin_place_id),
        Waypoint(lat=dest_lat, lng=dest_lng, place_id=dest_place_id),
        options,
    )


@router.post("/providers", response_model=ProviderDetailResponse)
async def save_provider(
    payload: ProviderRecord,
    response: Response,
    service: ProviderSearchService = Depends(get_search_service),
) -> ProviderDetailResponse:
    """Create or update a provider keyed by placeId."""
    existing = (
        await service.get_provider_by_place_id(payload.place_id)
        if payload.place_id
        else None
    )
    provider = await service.save_provider_details(
        payload.model_dump(exclude={"id"})
    )
    response.status_code = (
        status.HTTP_200_OK if existing is not None else status.HTTP_201_CREATED
    )
    return ProviderDetailResponse(provider=provider)
