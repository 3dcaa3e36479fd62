"""
Tests for DynamoDB lookups when secondary indexes are missing.
"""
import logging

import pytest
import pytest_asyncio

from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.factory import ServiceFactory
from pickem.utils import constants as c


@pytest_asyncio.fixture
async def partial_provider(make_dynamodb_provider):
    """Only the composite pick index exists."""
    provider = await make_dynamodb_provider({"user_game_football-index"})
    for item in (
        {"id": "p1", "user_id": "u1", "game_id": "g1", "football_game_id": "f1", "season_id": "s1", "week": 1},
        {"id": "p2", "user_id": "u1", "game_id": "g1", "football_game_id": "f2", "season_id": "s1", "week": 1},
        {"id": "p3", "user_id": "u2", "game_id": "g1", "football_game_id": "f1", "season_id": "s1", "week": 1},
    ):
        await provider.put(c.PICKS, item)
    provider.calls.clear()
    yield provider
    await provider.close()


@pytest.mark.asyncio
async def test_lookup_uses_first_available_index(partial_provider):
    base = DynamoDBServiceBase(partial_provider)

    items = await base._lookup(
        c.PICKS,
        {"user_id": "u1", "game_id": "g1", "football_game_id": "f2"},
        ["user_game_football-index", "user_id-index"],
    )

    assert [item["id"] for item in items] == ["p2"]
    assert partial_provider.calls == [("query", c.PICKS, "user_game_football-index")]


@pytest.mark.asyncio
async def test_lookup_skips_missing_index(partial_provider, caplog):
    caplog.set_level(logging.WARNING)
    base = DynamoDBServiceBase(partial_provider)

    items = await base._lookup(
        c.PICKS,
        {"user_id": "u1", "game_id": "g1", "football_game_id": "f1"},
        ["user_id-index", "user_game_football-index"],
    )

    assert [item["id"] for item in items] == ["p1"]
    assert "user_id-index missing" in caplog.text
    assert "falling back" in caplog.text
    assert ("scan", c.PICKS) not in partial_provider.calls


@pytest.mark.asyncio
async def test_lookup_scans_when_no_index_exists(partial_provider, caplog):
    caplog.set_level(logging.WARNING)
    base = DynamoDBServiceBase(partial_provider)

    items = await base._lookup(c.PICKS, {"user_id": "u1"}, ["user_id-index", "user_id_game_id-index"])

    assert sorted(item["id"] for item in items) == ["p1", "p2"]
    assert partial_provider.calls[-1] == ("scan", c.PICKS)
    assert "scanning" in caplog.text


@pytest.mark.asyncio
async def test_services_work_without_any_index(make_dynamodb_provider, caplog):
    """A table created without GSIs still answers every lookup."""
    caplog.set_level(logging.WARNING)
    provider = await make_dynamodb_provider(set())
    users = ServiceFactory(provider).get_user_service()

    created = await users.create_user(
        {"email": "alice@example.com", "password": "hash", "first_name": "Alice", "last_name": "Adams"}
    )

    assert (await users.get_user_by_email("ALICE@example.com"))["id"] == created["id"]
    assert "email-index missing" in caplog.text


@pytest.mark.asyncio
async def test_lookup_skips_index_the_criteria_cannot_key(partial_provider):
    base = DynamoDBServiceBase(partial_provider)

    items = await base._lookup(c.PICKS, {"user_id": "u2"}, ["user_game_football-index"])

    assert [item["id"] for item in items] == ["p3"]
    assert partial_provider.calls == [("scan", c.PICKS)]
