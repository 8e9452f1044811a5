"""Async client for the Google Places and Routes APIs."""

from typing import Any, Optional

import httpx

from healthspot.core.config import settings
from healthspot.core.errors import ConfigurationError, UpstreamServiceError
from healthspot.core.logging import get_logger

logger = get_logger().bind(module="google_maps")

DETAILS_FIELDS = (
    "name",
    "formatted_address",
    "formatted_phone_number",
    "website",
    "geometry",
    "type",
    "price_level",
    "rating",
)

ROUTES_FIELD_MASK = ",".join(
    (
        "routes.duration",
        "routes.distanceMeters",
        "routes.polyline.encodedPolyline",
        "routes.legs",
        "routes.travelAdvisory",
        "routes.routeLabels",
    )
)

# Statuses that carry no usable results but are not failures
_EMPTY_STATUSES = {"OK", "ZERO_RESULTS"}


class PlacesClient:
    """Thin wrapper over the Places web service and the Routes API.

    Non-OK statuses (other than ZERO_RESULTS) and transport failures are
    raised as UpstreamServiceError with the upstream message preserved.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        routes_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.GOOGLE_MAPS_BASE_URL).rstrip("/")
        self.routes_url = routes_url or settings.GOOGLE_ROUTES_URL
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.HTTP_TIMEOUT
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("Google Maps API key is not configured")
        return self.api_key

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        params = {k: v for k, v in params.items() if v is not None}
        params["key"] = self._require_key()
        url = f"{self.base_url}/{path}"
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error("places_request_failed", path=path, error=str(e))
            raise UpstreamServiceError(
                f"Google Maps request failed: {e}", service="google_maps"
            ) from e

        status = data.get("status", "OK")
        if status not in _EMPTY_STATUSES:
            message = data.get("error_message") or status
            logger.error("places_api_error", path=path, status=status, message=message)
            raise UpstreamServiceError(
                f"Google Maps API error: {message}",
                service="google_maps",
                details={"status": status},
            )
        return data

    async def nearby_search(
        self,
        lat: float,
        lng: float,
        radius: int,
        place_type: Optional[str] = None,
        keyword: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        data = await self._get(
            "place/nearbysearch/json",
            {
                "location": f"{lat},{lng}",
                "radius": radius,
                "type": place_type,
                "keyword": keyword,
            },
        )
        return data.get("results", [])

    async def text_search(
        self,
        query: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius: Optional[int] = None,
        place_type: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        location = f"{lat},{lng}" if lat is not None and lng is not None else None
        data = await self._get(
            "place/textsearch/json",
            {
                "query": query,
                "location": location,
                "radius": radius if location else None,
                "type": place_type,
            },
        )
        return data.get("results", [])

    async def place_details(
        self, place_id: str, fields: tuple[str, ...] = DETAILS_FIELDS
    ) -> Optional[dict[str, Any]]:
        data = await self._get(
            "place/details/json",
            {"place_id": place_id, "fields": ",".join(fields)},
        )
        return data.get("result") or None

    async def compute_routes(self, body: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self._require_key(),
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        try:
            response = await self._client.post(self.routes_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamServiceError(
                f"Failed to get route: {e}", service="google_routes"
            ) from e

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = {"error": {"message": response.text}}
            message = (payload.get("error") or {}).get("message") or response.reason_phrase
            logger.error(
                "routes_api_error", status_code=response.status_code, message=message
            )
            raise UpstreamServiceError(
                f"Routes API error: {response.status_code} {message}",
                service="google_routes",
            )
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


_places_client: Optional[PlacesClient] = None


def get_places_client() -> PlacesClient:
    """Get or create the shared Places client."""
    global _places_client
    if _places_client is None:
        _places_client = PlacesClient(api_key=settings.GOOGLE_MAPS_API_KEY)
    return _places_client


async def close_places_client() -> None:
    global _places_client
    if _places_client is not None:
        await _places_client.aclose()
        _places_client = None
