"""Saved providers and search history endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.deps import get_anonymous_id
from healthspot.api.v1.maps.models import ProviderRecord
from healthspot.api.v1.saved.service import SavedProviderService, UserService
from healthspot.core.db import get_session
from healthspot.core.errors import ValidationError

router = APIRouter(tags=["saved"])


class SaveProviderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_id: int = Field(alias="providerId", gt=0)


class SavedProviderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int = Field(serialization_alias="providerId")
    provider: Optional[ProviderRecord] = None


class SearchHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    search_params: Dict[str, Any] = Field(serialization_alias="searchParams")
    result_count: int = Field(serialization_alias="resultCount")
    timestamp: Any


def _require_anonymous_id(anonymous_id: Optional[str]) -> str:
    if not anonymous_id:
        raise ValidationError("Anonymous id cookie is missing")
    return anonymous_id


@router.post("/saved", response_model=SavedProviderResponse)
async def save_provider(
    payload: SaveProviderRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    anonymous_id: Optional[str] = Depends(get_anonymous_id),
) -> SavedProviderResponse:
    saved, created = await SavedProviderService(session).save(
        _require_anonymous_id(anonymous_id), payload.provider_id
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return SavedProviderResponse.model_validate(saved)


@router.get("/saved", response_model=List[SavedProviderResponse])
async def list_saved_providers(
    session: AsyncSession = Depends(get_session),
    anonymous_id: Optional[str] = Depends(get_anonymous_id),
) -> List[SavedProviderResponse]:
    saved = await SavedProviderService(session).list_saved(
        _require_anonymous_id(anonymous_id)
    )
    return [SavedProviderResponse.model_validate(item) for item in saved]


@router.delete("/saved/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_saved_provider(
    provider_id: int,
    session: AsyncSession = Depends(get_session),
    anonymous_id: Optional[str] = Depends(get_anonymous_id),
) -> Response:
    await SavedProviderService(session).remove(
        _require_anonymous_id(anonymous_id), provider_id
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/history", response_model=List[SearchHistoryEntry])
async def get_search_history(
    session: AsyncSession = Depends(get_session),
    anonymous_id: Optional[str] = Depends(get_anonymous_id),
) -> List[SearchHistoryEntry]:
    """The 20 most recent searches for this visitor."""
    entries = await UserService(session).get_search_history(
        _require_anonymous_id(anonymous_id)
    )
    return [SearchHistoryEntry.model_validate(entry) for entry in entries]


@router.delete("/history")
async def clear_search_history(
    session: AsyncSession = Depends(get_session),
    anonymous_id: Optional[str] = Depends(get_anonymous_id),
) -> Dict[str, Any]:
    removed = await UserService(session).clear_search_history(
        _require_anonymous_id(anonymous_id)
    )
    return {"success": True, "removed": removed}
