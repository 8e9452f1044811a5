"""Request and response models for the SMS API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PHONE_CHARS = set("+0123456789")


def normalize_phone(value: str) -> str:
    cleaned = "".join(ch for ch in value.strip() if ch not in " -().")
    if len(cleaned) < 7 or not set(cleaned) <= _PHONE_CHARS or "+" in cleaned[1:]:
        raise ValueError("Invalid phone number")
    return cleaned


class SmsPreferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_types: List[str] = Field(default_factory=list, alias="providerTypes")
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: Optional[float] = Field(default=None, gt=0)


class SubscribeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber")
    anonymous_id: str = Field(alias="anonymousId", min_length=1)
    preferences: SmsPreferences = Field(default_factory=SmsPreferences)

    @field_validator("phone_number")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        return normalize_phone(value)


class ProviderInfo(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    website: Optional[str] = None


class SendProviderInfoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber")
    provider_info: ProviderInfo = Field(alias="providerInfo")

    @field_validator("phone_number")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        return normalize_phone(value)


class BulkFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_types: List[str] = Field(default_factory=list, alias="providerTypes")
    anonymous_id: Optional[str] = Field(default=None, alias="anonymousId")


class SendBulkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_info: ProviderInfo = Field(alias="providerInfo")
    filter: BulkFilter = Field(default_factory=BulkFilter)


class SubscriptionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone_number: str = Field(serialization_alias="phoneNumber")
    provider_types: List[str] = Field(
        default_factory=list, serialization_alias="providerTypes"
    )
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None
    anonymous_id: Optional[str] = Field(default=None, serialization_alias="anonymousId")
    is_verified: bool = Field(default=False, serialization_alias="isVerified")
    last_notification_sent: Optional[datetime] = Field(
        default=None, serialization_alias="lastNotificationSent"
    )


class SmsResult(BaseModel):
    success: bool
    message: str
    subscription: Optional[SubscriptionRecord] = None
    results: Optional[List[Dict[str, Any]]] = None
