"""Tests for saved providers and search history."""

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.v1.saved.service import (
    SavedProviderService,
    UserService,
    generate_anonymous_id,
)
from healthspot.core.errors import NotFoundError, ValidationError
from healthspot.database.repositories import AnonymousUserRepository, ProviderRepository

ANON = "fedcba9876543210fedcba9876543210"
COOKIES = {"Cookie": f"anonymousId={ANON}"}


@pytest_asyncio.fixture
async def provider(db_session: AsyncSession):
    created, _ = await ProviderRepository(db_session).find_or_create(
        "ChIJsaved",
        {"name": "Saved Clinic", "latitude": 37.77, "longitude": -122.41},
    )
    return created


def test_generate_anonymous_id():
    first = generate_anonymous_id()

    assert len(first) == 32
    assert int(first, 16) >= 0
    assert first != generate_anonymous_id()


@pytest.mark.asyncio
async def test_get_or_create_anonymous_id(db_session):
    users = UserService(db_session)

    generated = await users.get_or_create_anonymous_id()
    kept = await users.get_or_create_anonymous_id(ANON)

    assert len(generated) == 32
    assert kept == ANON
    assert await AnonymousUserRepository(db_session).count() == 2


@pytest.mark.asyncio
async def test_search_history_drops_empty_params(db_session):
    users = UserService(db_session)

    await users.save_search_history(
        ANON, {"query": "clinic", "type": None, "insurance": [], "pincode": ""}, 3
    )
    history = await users.get_search_history(ANON)

    assert history[0].search_params == {"query": "clinic"}
    assert history[0].result_count == 3
    assert await users.clear_search_history(ANON) == 1


@pytest.mark.asyncio
async def test_save_provider_is_idempotent(db_session, provider):
    service = SavedProviderService(db_session)

    saved, created = await service.save(ANON, provider.id)
    again, created_again = await service.save(ANON, provider.id)

    assert created is True
    assert created_again is False
    assert again.id == saved.id
    assert saved.provider.name == "Saved Clinic"


@pytest.mark.asyncio
async def test_save_unknown_provider(db_session):
    with pytest.raises(NotFoundError):
        await SavedProviderService(db_session).save(ANON, 999)


@pytest.mark.asyncio
async def test_save_requires_anonymous_id(db_session, provider):
    with pytest.raises(ValidationError):
        await SavedProviderService(db_session).save("", provider.id)


@pytest.mark.asyncio
async def test_remove_unsaved_provider(db_session, provider):
    with pytest.raises(NotFoundError):
        await SavedProviderService(db_session).remove(ANON, provider.id)


@pytest.mark.asyncio
async def test_saved_endpoints(client: AsyncClient, provider):
    created = await client.post(
        "/api/saved", json={"providerId": provider.id}, headers=COOKIES
    )
    repeated = await client.post(
        "/api/saved", json={"providerId": provider.id}, headers=COOKIES
    )
    listed = await client.get("/api/saved", headers=COOKIES)
    removed = await client.delete(f"/api/saved/{provider.id}", headers=COOKIES)
    removed_again = await client.delete(f"/api/saved/{provider.id}", headers=COOKIES)

    assert created.status_code == 201
    assert created.json()["providerId"] == provider.id
    assert created.json()["provider"]["placeId"] == "ChIJsaved"
    assert repeated.status_code == 200
    assert [item["providerId"] for item in listed.json()] == [provider.id]
    assert removed.status_code == 204
    assert removed_again.status_code == 404


@pytest.mark.asyncio
async def test_saved_list_is_per_visitor(client: AsyncClient, provider):
    await client.post("/api/saved", json={"providerId": provider.id}, headers=COOKIES)

    other = await client.get(
        "/api/saved", headers={"Cookie": "anonymousId=" + "1" * 32}
    )

    assert other.json() == []


@pytest.mark.asyncio
async def test_clear_history_endpoint(client: AsyncClient, db_session):
    await UserService(db_session).save_search_history(ANON, {"query": "x"}, 0)

    response = await client.delete("/api/history", headers=COOKIES)

    assert response.json() == {"success": True, "removed": 1}
