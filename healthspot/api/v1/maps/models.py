"""Request and response models for the maps API."""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from healthspot.core.insurance import parse_insurance_filter


class ProviderRecord(BaseModel):
    """A healthcare provider as returned to clients."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: Optional[int] = None
    place_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("placeId", "place_id"),
        serialization_alias="placeId",
    )
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    lat: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(
        ..., ge=-180, le=180, validation_alias=AliasChoices("lng", "longitude")
    )
    types: List[str] = Field(default_factory=list)
    specialties: List[str] = Field(default_factory=list)
    insurance_accepted: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("insuranceAccepted", "insurance_accepted"),
        serialization_alias="insuranceAccepted",
    )
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    price_level: Optional[int] = Field(
        default=None,
        ge=0,
        le=4,
        validation_alias=AliasChoices("priceLevel", "price_level"),
        serialization_alias="priceLevel",
    )

    @field_validator("types", "specialties", "insurance_accepted", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class NearbyCriteria(BaseModel):
    """Filters for a radius search around a known point."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    radius: int = Field(default=5000, gt=0)
    type: Optional[str] = None
    specialty: Optional[str] = None
    price_range: Optional[int] = Field(default=None, ge=0, le=4)
    insurance: List[str] = Field(default_factory=list)
    min_rating: float = Field(default=0, ge=0, le=5)

    @field_validator("insurance", mode="before")
    @classmethod
    def _split_insurance(cls, value: Any) -> List[str]:
        return parse_insurance_filter(value)


class SearchCriteria(BaseModel):
    """Everything a provider search request may carry.

    At least one of ``lat``/``lng``, ``query`` or ``pincode`` must be present;
    that rule and coordinate range checks are enforced by the search service
    so they surface as 400 responses.
    """

    query: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    radius: int = Field(default=5000, gt=0, le=50000)
    type: Optional[str] = None
    specialty: Optional[str] = None
    price_range: Optional[int] = Field(default=None, ge=0, le=4)
    insurance: List[str] = Field(default_factory=list)
    min_rating: float = Field(default=0, ge=0, le=5)

    @field_validator("insurance", mode="before")
    @classmethod
    def _split_insurance(cls, value: Any) -> List[str]:
        return parse_insurance_filter(value)

    @field_validator("query", "pincode", "country", "type", "specialty", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None or self.lng is not None

    def nearby(self, lat: float, lng: float) -> NearbyCriteria:
        return NearbyCriteria(
            lat=lat,
            lng=lng,
            radius=self.radius,
            type=self.type,
            specialty=self.specialty,
            price_range=self.price_range,
            insurance=self.insurance,
            min_rating=self.min_rating,
        )


class LatLng(BaseModel):
    lat: float
    lng: float


class UserLocation(BaseModel):
    lat: float
    lng: float
    address: Optional[str] = None
    is_approximate: bool = Field(default=False, serialization_alias="isApproximate")


class ProviderSearchResponse(BaseModel):
    """Providers plus everything a client needs to draw the map."""

    providers: List[ProviderRecord]
    map_url: Optional[str] = Field(default=None, serialization_alias="mapUrl")
    center: LatLng
    formatted_address: Optional[str] = Field(
        default=None, serialization_alias="formattedAddress"
    )
    bounds: Optional[dict[str, float]] = None
    map_provider: str = Field(default="google", serialization_alias="mapProvider")
    warning: Optional[str] = None
    user_location: Optional[UserLocation] = Field(
        default=None, serialization_alias="userLocation"
    )


class ProviderDetailResponse(BaseModel):
    provider: ProviderRecord


class MapConfigResponse(BaseModel):
    initial_center: LatLng = Field(serialization_alias="initialCenter")
    api_status: str = Field(serialization_alias="apiStatus")
    map_provider: str = Field(default="google", serialization_alias="mapProvider")
    google_maps_api_key: Optional[str] = Field(
        default=None, serialization_alias="googleMapsApiKey"
    )
    timestamp: str
