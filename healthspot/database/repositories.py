"""Repository pattern for database operations."""

from abc import ABC
from datetime import datetime
from typing import Any, Generic, Optional, Sequence, TypeVar

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.core.coordinates import BoundingBox, is_valid_coordinates

from .base import utcnow
from .models import (
    AnonymousUserModel,
    ProviderModel,
    ReviewModel,
    SavedProviderModel,
    SearchHistoryModel,
    SmsSubscriptionModel,
)

ModelType = TypeVar("ModelType")


def _contains_substring(values: Sequence[str] | None, needle: str) -> bool:
    needle = needle.lower()
    return any(needle in str(value).lower() for value in values or ())


class BaseRepository(ABC, Generic[ModelType]):
    """Base repository for common database operations."""

    def __init__(self, session: AsyncSession, model: type[ModelType]):
        self.session = session
        self.model = model

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get entity by ID."""
        return await self.session.get(self.model, id)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[dict[str, Any]] = None,
    ) -> Sequence[ModelType]:
        """Get all entities with optional equality filtering."""
        query = select(self.model)
        if filters:
            for key, value in filters.items():
                if hasattr(self.model, key):
                    query = query.filter(getattr(self.model, key) == value)
        query = query.offset(skip).limit(limit)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def count(self, filters: Optional[dict[str, Any]] = None) -> int:
        """Count entities with optional equality filtering."""
        query = select(func.count()).select_from(self.model)
        if filters:
            for key, value in filters.items():
                if hasattr(self.model, key):
                    query = query.filter(getattr(self.model, key) == value)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def create(self, **kwargs) -> ModelType:
        """Create new entity."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.commit()
        await self.session.refresh(instance)
        return instance

    async def insert_ignoring_conflict(self, conflict_column: str, **values) -> bool:
        """Insert a row unless another already holds the same unique value.

        A concurrent writer that loses the race on the unique index gets a
        no-op instead of an IntegrityError.

        Returns:
            True when this call wrote the row
        """
        dialect = self.session.get_bind().dialect.name
        insert = postgresql_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(self.model.__table__)  # type: ignore[attr-defined]
            .values(**values)
            .on_conflict_do_nothing(index_elements=[conflict_column])
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update entity by ID."""
        instance = await self.get_by_id(id)
        if instance:
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            await self.session.commit()
            await self.session.refresh(instance)
        return instance

    async def delete(self, id: int) -> bool:
        """Delete entity by ID."""
        instance = await self.get_by_id(id)
        if instance:
            await self.session.delete(instance)
            await self.session.commit()
            return True
        return False


class ProviderRepository(BaseRepository[ProviderModel]):
    """Repository for cached providers."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProviderModel)

    async def get_by_place_id(self, place_id: str) -> Optional[ProviderModel]:
        result = await self.session.execute(
            select(self.model).filter(self.model.place_id == place_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id_or_place_id(self, identifier: str | int) -> Optional[ProviderModel]:
        """Look up by internal numeric id or by external placeId."""
        conditions = [self.model.place_id == str(identifier)]
        if str(identifier).isdigit():
            conditions.append(self.model.id == int(identifier))
        result = await self.session.execute(
            select(self.model).filter(or_(*conditions)).limit(1)
        )
        return result.scalars().first()

    async def find_in_bounds(
        self,
        box: BoundingBox,
        provider_type: Optional[str] = None,
        specialty: Optional[str] = None,
        max_price_level: Optional[int] = None,
    ) -> list[ProviderModel]:
        """Providers inside a bounding box, filtered by type, specialty and price.

        The box and price ceiling are applied in SQL; type and specialty are
        substring matches against the stored lists.
        """
        query = select(self.model).filter(
            and_(
                self.model.latitude.between(box.south, box.north),
                self.model.longitude.between(box.west, box.east),
            )
        )
        if max_price_level is not None:
            query = query.filter(self.model.price_level <= max_price_level)

        result = await self.session.execute(query.order_by(self.model.id))
        providers = list(result.scalars().all())

        if provider_type:
            providers = [p for p in providers if _contains_substring(p.types, provider_type)]
        if specialty:
            providers = [
                p for p in providers if _contains_substring(p.specialties, specialty)
            ]
        return providers

    async def find_or_create(
        self, place_id: str, defaults: dict[str, Any]
    ) -> tuple[ProviderModel, bool]:
        """Create a provider unless one with the same placeId exists.

        Existing rows are returned untouched.
        """
        existing = await self.get_by_place_id(place_id)
        if existing is not None:
            return existing, False
        if not is_valid_coordinates(defaults.get("latitude"), defaults.get("longitude")):
            raise ValueError(f"Invalid coordinates for provider {place_id}")
        created = await self.insert_ignoring_conflict(
            "place_id", place_id=place_id, **defaults
        )
        result = await self.session.execute(
            select(self.model).filter(self.model.place_id == place_id)
        )
        return result.scalar_one(), created


class ReviewRepository(BaseRepository[ReviewModel]):
    """Repository for provider reviews."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ReviewModel)

    async def recent_for_provider(
        self, provider_id: int, source: str, since: datetime
    ) -> list[ReviewModel]:
        """Reviews from one source created after ``since``, newest first."""
        result = await self.session.execute(
            select(self.model)
            .filter(
                self.model.provider_id == provider_id,
                self.model.source == source,
                self.model.created_at >= since,
            )
            .order_by(self.model.created_at.desc(), self.model.id.desc())
        )
        return list(result.scalars().all())

    async def bulk_create(self, reviews: list[dict[str, Any]]) -> list[ReviewModel]:
        instances = [self.model(**review) for review in reviews]
        self.session.add_all(instances)
        await self.session.commit()
        return instances


class SmsSubscriptionRepository(BaseRepository[SmsSubscriptionModel]):
    """Repository for SMS subscriptions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SmsSubscriptionModel)

    async def get_by_phone(
        self, phone_number: str, verified_only: bool = False
    ) -> Optional[SmsSubscriptionModel]:
        query = select(self.model).filter(self.model.phone_number == phone_number)
        if verified_only:
            query = query.filter(self.model.is_verified.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_anonymous_id(self, anonymous_id: str) -> list[SmsSubscriptionModel]:
        result = await self.session.execute(
            select(self.model).filter(self.model.anonymous_id == anonymous_id)
        )
        return list(result.scalars().all())

    async def list_verified(
        self,
        provider_types: Optional[list[str]] = None,
        anonymous_id: Optional[str] = None,
    ) -> list[SmsSubscriptionModel]:
        """Verified subscribers, optionally matching any of the given provider types."""
        query = select(self.model).filter(self.model.is_verified.is_(True))
        if anonymous_id:
            query = query.filter(self.model.anonymous_id == anonymous_id)
        result = await self.session.execute(query.order_by(self.model.id))
        subscribers = list(result.scalars().all())
        if provider_types:
            subscribers = [
                s
                for s in subscribers
                if any(_contains_substring(s.provider_types, t) for t in provider_types)
            ]
        return subscribers

    async def delete_by_phone(self, phone_number: str) -> bool:
        result = await self.session.execute(
            delete(self.model).where(self.model.phone_number == phone_number)
        )
        await self.session.commit()
        return bool(result.rowcount)

    async def save(self, instance: SmsSubscriptionModel, **changes) -> SmsSubscriptionModel:
        for key, value in changes.items():
            setattr(instance, key, value)
        await self.session.commit()
        await self.session.refresh(instance)
        return instance


class SavedProviderRepository(BaseRepository[SavedProviderModel]):
    """Repository for providers saved by anonymous users."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SavedProviderModel)

    async def get_saved(
        self, anonymous_id: str, provider_id: int
    ) -> Optional[SavedProviderModel]:
        result = await self.session.execute(
            select(self.model).filter(
                self.model.anonymous_id == anonymous_id,
                self.model.provider_id == provider_id,
            )
        )
        return result.unique().scalar_one_or_none()

    async def list_for_user(self, anonymous_id: str) -> list[SavedProviderModel]:
        result = await self.session.execute(
            select(self.model)
            .filter(self.model.anonymous_id == anonymous_id)
            .order_by(self.model.created_at.desc())
        )
        return list(result.unique().scalars().all())

    async def remove(self, anonymous_id: str, provider_id: int) -> bool:
        result = await self.session.execute(
            delete(self.model).where(
                self.model.anonymous_id == anonymous_id,
                self.model.provider_id == provider_id,
            )
        )
        await self.session.commit()
        return bool(result.rowcount)


class AnonymousUserRepository(BaseRepository[AnonymousUserModel]):
    """Repository for cookie-identified users."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AnonymousUserModel)

    async def touch(self, anonymous_id: str) -> AnonymousUserModel:
        """Create the user on first sight, otherwise bump ``last_access``."""
        query = select(self.model).filter(self.model.anonymous_id == anonymous_id)
        user = (await self.session.execute(query)).scalar_one_or_none()
        if user is None:
            if await self.insert_ignoring_conflict("anonymous_id", anonymous_id=anonymous_id):
                return (await self.session.execute(query)).scalar_one()
            user = (await self.session.execute(query)).scalar_one()
        user.last_access = utcnow()
        await self.session.commit()
        return user


class SearchHistoryRepository(BaseRepository[SearchHistoryModel]):
    """Repository for per-user search history."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SearchHistoryModel)

    async def latest(self, anonymous_id: str, limit: int = 20) -> list[SearchHistoryModel]:
        result = await self.session.execute(
            select(self.model)
            .filter(self.model.anonymous_id == anonymous_id)
            .order_by(self.model.timestamp.desc(), self.model.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def clear(self, anonymous_id: str) -> int:
        result = await self.session.execute(
            delete(self.model).where(self.model.anonymous_id == anonymous_id)
        )
        await self.session.commit()
        return result.rowcount or 0
