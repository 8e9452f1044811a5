"""Anonymous user identity, search history and saved providers."""

import secrets
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.core.errors import NotFoundError, ValidationError
from healthspot.core.logging import get_logger
from healthspot.database.models import SavedProviderModel, SearchHistoryModel
from healthspot.database.repositories import (
    AnonymousUserRepository,
    ProviderRepository,
    SavedProviderRepository,
    SearchHistoryRepository,
)

logger = get_logger().bind(module="user_service")

SEARCH_HISTORY_LIMIT = 20


def generate_anonymous_id() -> str:
    return secrets.token_hex(16)


class UserService:
    """Per-visitor state keyed by the anonymous id cookie."""

    def __init__(self, session: AsyncSession):
        self.users = AnonymousUserRepository(session)
        self.history = SearchHistoryRepository(session)

    async def get_or_create_anonymous_id(self, anonymous_id: Optional[str] = None) -> str:
        """Register the id (or a fresh one) and bump its last access time."""
        anonymous_id = anonymous_id or generate_anonymous_id()
        await self.users.touch(anonymous_id)
        return anonymous_id

    async def save_search_history(
        self, anonymous_id: str, search_params: Dict[str, Any], result_count: int
    ) -> SearchHistoryModel:
        params = {k: v for k, v in search_params.items() if v not in (None, "", [])}
        entry = await self.history.create(
            anonymous_id=anonymous_id,
            search_params=params,
            result_count=result_count,
        )
        logger.debug("search_history_saved", anonymous_id=anonymous_id, results=result_count)
        return entry

    async def get_search_history(
        self, anonymous_id: str, limit: int = SEARCH_HISTORY_LIMIT
    ) -> List[SearchHistoryModel]:
        return await self.history.latest(anonymous_id, limit=limit)

    async def clear_search_history(self, anonymous_id: str) -> int:
        removed = await self.history.clear(anonymous_id)
        logger.info("search_history_cleared", anonymous_id=anonymous_id, removed=removed)
        return removed


class SavedProviderService:
    """Bookmarks from anonymous users to cached providers."""

    def __init__(self, session: AsyncSession):
        self.saved = SavedProviderRepository(session)
        self.providers = ProviderRepository(session)

    async def save(self, anonymous_id: str, provider_id: int) -> Tuple[SavedProviderModel, bool]:
        """Save a provider; returns the bookmark and whether it was new.

        Raises:
            NotFoundError: If the provider does not exist
        """
        if not anonymous_id:
            raise ValidationError("Anonymous id is required")
        provider = await self.providers.get_by_id(provider_id)
        if provider is None:
            raise NotFoundError(f"Provider {provider_id} not found")

        existing = await self.saved.get_saved(anonymous_id, provider_id)
        if existing is not None:
            return existing, False

        created = await self.saved.create(anonymous_id=anonymous_id, provider_id=provider_id)
        # Reload so the joined provider relationship is populated
        saved = await self.saved.get_saved(anonymous_id, provider_id)
        return saved or created, True

    async def list_saved(self, anonymous_id: str) -> List[SavedProviderModel]:
        return await self.saved.list_for_user(anonymous_id)

    async def remove(self, anonymous_id: str, provider_id: int) -> None:
        if not await self.saved.remove(anonymous_id, provider_id):
            raise NotFoundError(f"Provider {provider_id} is not saved")
