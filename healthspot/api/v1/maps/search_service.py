"""Provider search with a read-through SQL cache in front of Google Places."""

import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from healthspot.api.v1.maps.models import (
    LatLng,
    NearbyCriteria,
    ProviderRecord,
    ProviderSearchResponse,
    SearchCriteria,
    UserLocation,
)
from healthspot.core.config import settings
from healthspot.core.coordinates import (
    bounding_box,
    filter_valid_coordinates,
    is_valid_coordinates,
    static_map_url,
    viewport_bounds,
)
from healthspot.core.errors import (
    GeocodingError,
    NotFoundError,
    UpstreamServiceError,
    ValidationError,
)
from healthspot.core.events import PROVIDER_CACHE_LOOKUPS_TOTAL
from healthspot.core.geocoding import GeocodeResolver, GeocodeResult, fallback_result
from healthspot.core.insurance import (
    check_insurance_acceptance,
    generate_placeholder_insurance,
)
from healthspot.database.models import ProviderModel
from healthspot.database.repositories import ProviderRepository
from healthspot.integrations.google_maps import PlacesClient

logger = logging.getLogger(__name__)

# Place types the Places API accepts for medical searches
MEDICAL_PLACE_TYPES = (
    "hospital",
    "doctor",
    "health",
    "dentist",
    "pharmacy",
    "physiotherapist",
    "medical_office",
)
DEFAULT_PLACE_TYPE = "hospital"

# Words that already make a text query healthcare-specific
HEALTHCARE_KEYWORDS = ("healthcare", "medical", "hospital", "clinic", "doctor")

POSTAL_CODE_SUGGESTIONS = [
    "Try entering the postal code without spaces or dashes",
    "Try specifying a country code (e.g., US, IN, GB)",
    "Try using a city name instead of a postal code",
    "Make sure you've entered the correct postal code",
]


def resolve_place_type(provider_type: Optional[str]) -> str:
    """Map a requested type onto the medical whitelist, defaulting to hospital."""
    if provider_type and provider_type.lower() in MEDICAL_PLACE_TYPES:
        return provider_type.lower()
    return DEFAULT_PLACE_TYPE


def build_nearby_keyword(
    specialty: Optional[str] = None, provider_type: Optional[str] = None
) -> str:
    parts = ["healthcare"]
    if specialty:
        parts.append(specialty)
    if provider_type and provider_type.lower() not in MEDICAL_PLACE_TYPES:
        parts.append(provider_type)
    return " ".join(parts)


def build_text_query(
    query: str, provider_type: Optional[str] = None, specialty: Optional[str] = None
) -> str:
    """Compose a Places text query, forcing a healthcare context."""
    search_query = " ".join(
        part for part in (query, provider_type, specialty) if part
    ).strip()
    lowered = search_query.lower()
    if not any(keyword in lowered for keyword in HEALTHCARE_KEYWORDS):
        search_query = f"{search_query} healthcare"
    return search_query


def text_search_place_type(query: str, provider_type: Optional[str] = None) -> str:
    if provider_type and provider_type.lower() in MEDICAL_PLACE_TYPES:
        return provider_type.lower()
    lowered = query.lower()
    for candidate in ("hospital", "pharmacy", "dentist"):
        if candidate in lowered:
            return candidate
    return "health"


def format_place(place: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Places result into provider fields (storage names)."""
    location = (place.get("geometry") or {}).get("location") or {}
    return {
        "place_id": place.get("place_id"),
        "name": place.get("name") or "Unknown Provider",
        "address": place.get("vicinity") or place.get("formatted_address"),
        "phone": place.get("formatted_phone_number")
        or place.get("international_phone_number"),
        "website": place.get("website"),
        "latitude": location.get("lat"),
        "longitude": location.get("lng"),
        "types": list(place.get("types") or []),
        "rating": place.get("rating"),
        "price_level": place.get("price_level"),
    }


def _record(provider: ProviderModel | Dict[str, Any]) -> ProviderRecord:
    return ProviderRecord.model_validate(provider)


class ProviderSearchService:
    """Resolves provider searches, preferring cached rows over Places calls."""

    def __init__(
        self,
        providers: ProviderRepository,
        places: PlacesClient,
        resolver: Optional[GeocodeResolver] = None,
        cache_min_results: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.providers = providers
        self.places = places
        self.resolver = resolver
        self.cache_min_results = (
            settings.PROVIDER_CACHE_MIN_RESULTS
            if cache_min_results is None
            else cache_min_results
        )
        self.rng = rng or random.Random()  # nosec B311

    async def find_nearby(self, criteria: NearbyCriteria) -> List[ProviderRecord]:
        """Find providers around a point.

        Cached rows win when at least ``cache_min_results`` match; otherwise
        the Places API is queried and every usable result is stored.
        Upstream errors propagate.
        """
        box = bounding_box(criteria.lat, criteria.lng, criteria.radius)
        cached = await self.providers.find_in_bounds(
            box,
            provider_type=criteria.type,
            specialty=criteria.specialty,
            max_price_level=criteria.price_range,
        )
        cached = [p for p in cached if check_insurance_acceptance(p, criteria.insurance)]
        cached = self._apply_min_rating(cached, criteria.min_rating)

        if len(cached) >= self.cache_min_results:
            PROVIDER_CACHE_LOOKUPS_TOTAL.labels(result="hit").inc()
            logger.info(f"Cache hit: {len(cached)} providers near {criteria.lat},{criteria.lng}")
            return [_record(p) for p in cached]

        PROVIDER_CACHE_LOOKUPS_TOTAL.labels(result="miss").inc()
        if not self.places.is_configured:
            logger.warning("Google Maps API key not configured, returning cached providers only")
            return [_record(p) for p in cached]

        logger.info(
            f"Cache miss ({len(cached)} < {self.cache_min_results}), querying Places API"
        )
        places = await self.places.nearby_search(
            criteria.lat,
            criteria.lng,
            criteria.radius,
            place_type=resolve_place_type(criteria.type),
            keyword=build_nearby_keyword(criteria.specialty, criteria.type),
        )

        if criteria.specialty:
            places = [
                p
                for p in places
                if any(
                    criteria.specialty.lower() in str(t).lower()
                    for t in p.get("types") or ()
                )
            ]
        if criteria.price_range is not None:
            places = [
                p
                for p in places
                if p.get("price_level") is not None
                and p["price_level"] <= criteria.price_range
            ]

        mapped = []
        for place in places:
            data = format_place(place)
            if not data["place_id"] or not is_valid_coordinates(
                data["latitude"], data["longitude"]
            ):
                logger.warning(f"Skipping place without id or coordinates: {data['name']}")
                continue
            data["insurance_accepted"] = generate_placeholder_insurance(
                self.rng.randint(1, 5), rng=self.rng
            )
            mapped.append(data)

        mapped = [p for p in mapped if check_insurance_acceptance(p, criteria.insurance)]
        mapped = self._apply_min_rating(mapped, criteria.min_rating)

        results = []
        for data in mapped:
            place_id = data.pop("place_id")
            provider, created = await self.providers.find_or_create(place_id, data)
            if created:
                logger.debug(f"Cached provider {place_id}")
            results.append(_record(provider))
        return results

    @staticmethod
    def _apply_min_rating(items: List[Any], min_rating: float) -> List[Any]:
        if not min_rating or min_rating <= 0:
            return items
        filtered = []
        for item in items:
            rating = item.get("rating") if isinstance(item, dict) else item.rating
            if rating is not None and rating >= min_rating:
                filtered.append(item)
        return filtered

    async def get_details(self, identifier: str | int) -> ProviderRecord:
        """Return a provider with contact details, fetching them when missing.

        Raises:
            NotFoundError: If neither the cache nor Places knows the identifier
        """
        provider = await self.providers.get_by_id_or_place_id(identifier)
        if provider is not None and provider.phone:
            return _record(provider)

        place_id = provider.place_id if provider is not None else str(identifier)
        if not place_id or not self.places.is_configured:
            if provider is not None:
                return _record(provider)
            raise NotFoundError(f"Provider {identifier} not found")

        try:
            details = await self.places.place_details(place_id)
        except UpstreamServiceError as e:
            if e.details.get("status") in ("NOT_FOUND", "INVALID_REQUEST"):
                details = None
            else:
                raise

        if not details:
            if provider is not None:
                return _record(provider)
            raise NotFoundError(f"Provider {identifier} not found")

        data = format_place({**details, "place_id": place_id})
        if provider is None:
            if not is_valid_coordinates(data["latitude"], data["longitude"]):
                raise NotFoundError(f"Provider {identifier} has no usable location")
            data.pop("place_id")
            data["insurance_accepted"] = generate_placeholder_insurance(
                self.rng.randint(1, 5), rng=self.rng
            )
            provider, _ = await self.providers.find_or_create(place_id, data)
        else:
            provider = await self.providers.update(
                provider.id,
                phone=data["phone"] or provider.phone,
                website=data["website"] or provider.website,
            )
        return _record(provider)

    async def get_provider_by_place_id(self, place_id: str) -> Optional[ProviderRecord]:
        provider = await self.providers.get_by_place_id(place_id)
        return _record(provider) if provider is not None else None

    async def save_provider_details(self, data: Dict[str, Any]) -> ProviderRecord:
        """Create or update a provider keyed by its placeId."""
        record = ProviderRecord.model_validate(data)
        if not record.place_id:
            raise ValidationError("placeId is required")
        fields = {
            "name": record.name,
            "address": record.address,
            "phone": record.phone,
            "website": record.website,
            "latitude": record.lat,
            "longitude": record.lng,
            "types": record.types,
            "specialties": record.specialties,
            "insurance_accepted": record.insurance_accepted,
            "rating": record.rating,
            "price_level": record.price_level,
        }
        provider, created = await self.providers.find_or_create(record.place_id, fields)
        if not created:
            provider = await self.providers.update(provider.id, **fields)
        return _record(provider)

    async def text_search(
        self,
        query: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius: Optional[int] = None,
        provider_type: Optional[str] = None,
        specialty: Optional[str] = None,
    ) -> List[ProviderRecord]:
        """Free-text Places search. Results are not cached."""
        search_query = build_text_query(query, provider_type, specialty)
        place_type = text_search_place_type(query, provider_type)
        logger.info(f"Text search '{search_query}' (type {place_type})")
        places = await self.places.text_search(
            search_query, lat=lat, lng=lng, radius=radius, place_type=place_type
        )
        records = []
        for place in places:
            data = format_place(place)
            if is_valid_coordinates(data["latitude"], data["longitude"]):
                records.append(_record(data))
        return records

    async def _places_fallback(
        self, lat: float, lng: float, criteria: SearchCriteria
    ) -> List[ProviderRecord]:
        keyword = criteria.type or criteria.specialty or "medical healthcare"
        places = await self.places.nearby_search(
            lat,
            lng,
            criteria.radius,
            place_type=resolve_place_type(criteria.type or DEFAULT_PLACE_TYPE),
            keyword=build_text_query(keyword),
        )
        records = []
        for place in places:
            data = format_place(place)
            if is_valid_coordinates(data["latitude"], data["longitude"]):
                records.append(_record(data))
        return records

    async def _geocode(self, criteria: SearchCriteria) -> Tuple[GeocodeResult, Optional[str]]:
        """Resolve a pincode, falling back to the country centroid when possible."""
        if self.resolver is None:
            raise ValidationError("Postal code search is not available")
        try:
            result = await run_in_threadpool(
                self.resolver.resolve, criteria.pincode, criteria.country
            )
            return result, None
        except GeocodingError as e:
            if criteria.country:
                logger.warning(
                    f"Using approximate location for {criteria.country}: {e.message}"
                )
                warning = (
                    f'Precise location for postal code "{criteria.pincode}" not found. '
                    "Using approximate country location instead."
                )
                return fallback_result(criteria.country), warning
            payload = {
                "suggestions": POSTAL_CODE_SUGGESTIONS,
                "providers": [],
                "mapUrl": None,
            }
            raise ValidationError(
                f'Unable to find location for postal code "{criteria.pincode}": '
                f"{e.message}",
                details=payload,
                extra=payload,
            ) from e

    async def search(self, criteria: SearchCriteria) -> ProviderSearchResponse:
        """Run a provider search from request criteria.

        Raises:
            ValidationError: Missing input, bad coordinates or an unresolvable
                postal code without a country hint
        """
        if not (criteria.has_coordinates or criteria.query or criteria.pincode):
            raise ValidationError(
                "Search query, location (lat/lng), or pincode is required",
                details={"providers": [], "mapUrl": None},
                extra={"providers": [], "mapUrl": None},
            )

        center = {"lat": settings.DEFAULT_CENTER_LAT, "lng": settings.DEFAULT_CENTER_LNG}
        formatted_address: Optional[str] = None
        warning: Optional[str] = None
        user_location: Optional[UserLocation] = None

        if criteria.pincode:
            location, warning = await self._geocode(criteria)
            center = {"lat": location.lat, "lng": location.lng}
            formatted_address = location.formatted_address
            user_location = UserLocation(
                lat=location.lat,
                lng=location.lng,
                address=location.formatted_address,
                is_approximate=location.is_approximate,
            )
        elif criteria.has_coordinates:
            if not is_valid_coordinates(criteria.lat, criteria.lng):
                raise ValidationError("Invalid coordinates provided")
            center = {"lat": float(criteria.lat), "lng": float(criteria.lng)}
        else:
            providers = await self.text_search(
                criteria.query,
                radius=criteria.radius,
                provider_type=criteria.type,
                specialty=criteria.specialty,
            )
            if providers:
                center = {"lat": providers[0].lat, "lng": providers[0].lng}
                formatted_address = providers[0].address
            return self._build_response(providers, center, formatted_address)

        providers = await self.find_nearby(criteria.nearby(center["lat"], center["lng"]))
        if not providers and self.places.is_configured:
            logger.info("No providers from nearby search, trying a broader Places search")
            providers = await self._places_fallback(center["lat"], center["lng"], criteria)

        return self._build_response(
            providers, center, formatted_address, warning, user_location
        )

    def _build_response(
        self,
        providers: List[ProviderRecord],
        center: Dict[str, float],
        formatted_address: Optional[str],
        warning: Optional[str] = None,
        user_location: Optional[UserLocation] = None,
    ) -> ProviderSearchResponse:
        providers = filter_valid_coordinates(providers)
        return ProviderSearchResponse(
            providers=providers,
            map_url=static_map_url(center, providers, self.places.api_key),
            center=LatLng(**center),
            formatted_address=formatted_address,
            bounds=viewport_bounds([center, *providers]),
            warning=warning,
            user_location=user_location,
        )
