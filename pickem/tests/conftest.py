"""
Shared pytest configuration for the data layer tests.

Every service test runs against both backends: SQLite on an in-memory
database, and DynamoDB on MemoryDynamoDBProvider, which keeps tables in
dicts and replaces only the boto3 hooks. Everything above the hooks
(encoding, composites, update expressions, index fallbacks) is the real
provider code.
"""

import copy
from decimal import Decimal

import pytest
import pytest_asyncio

from pickem.errors import BackendUnavailableError, IndexNotFoundError
from pickem.providers import keys
from pickem.providers.dynamodb_provider import DynamoDBProvider
from pickem.providers.sqlite_provider import SQLiteProvider
from pickem.services.factory import ServiceFactory
from pickem.utils.constants import ALL_TABLES


def _as_stored(value):
    """Numbers come back from DynamoDB as Decimal."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _as_stored(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_as_stored(v) for v in value]
    return value


def _equal(stored, wanted) -> bool:
    if isinstance(stored, bool) or isinstance(wanted, bool):
        return type(stored) is type(wanted) and stored == wanted
    return stored == wanted


class MemoryDynamoDBProvider(DynamoDBProvider):
    """
    DynamoDB provider over in-memory tables.

    Args:
        declared_indexes: Index names that exist; None declares every index in
            the registry. Querying an undeclared index raises IndexNotFoundError
            the same way a missing GSI does.
    """

    def __init__(self, declared_indexes=None, **kwargs):
        super().__init__(**kwargs)
        if declared_indexes is None:
            declared_indexes = {name for indexes in keys.INDEXES.values() for name in indexes}
        self.declared_indexes = set(declared_indexes)
        self.tables = {}
        self.calls = []

    async def initialize(self):
        self.tables = {table: {} for table in ALL_TABLES}

    async def close(self):
        self.tables = {}

    def _store(self, table):
        if table not in self.tables:
            raise BackendUnavailableError("MemoryDynamoDBProvider is not initialized")
        return self.tables[table]

    async def _get_item(self, table, key):
        self.calls.append(("get", table))
        item = self._store(table).get(key["id"])
        return copy.deepcopy(item)

    async def _put_item(self, table, item):
        self.calls.append(("put", table))
        self._store(table)[item["id"]] = _as_stored(copy.deepcopy(item))

    async def _update_item(self, table, key, set_fields, remove_fields):
        self.calls.append(("update", table))
        item = self._store(table).get(key["id"])
        if item is None:
            return None
        item.update(_as_stored(copy.deepcopy(set_fields)))
        for name in remove_fields:
            item.pop(name, None)
        return copy.deepcopy(item)

    async def _delete_item(self, table, key):
        self.calls.append(("delete", table))
        self._store(table).pop(key["id"], None)

    async def _query_items(self, table, index_name, condition):
        self.calls.append(("query", table, index_name))
        if index_name is not None:
            if index_name not in self.declared_indexes or index_name not in keys.INDEXES.get(table, {}):
                raise IndexNotFoundError(
                    f"Index {index_name} not found on {self.table_name(table)}", table=table, index=index_name
                )
        return [
            copy.deepcopy(item)
            for item in self._store(table).values()
            if all(_equal(item.get(k), v) for k, v in condition.items())
        ]

    async def _scan_items(self, table, filters):
        self.calls.append(("scan", table))
        return [
            copy.deepcopy(item)
            for item in self._store(table).values()
            if all(
                (k not in item) if v is None else _equal(item.get(k), v)
                for k, v in filters.items()
            )
        ]

    async def _transact_items(self, operations):
        self.calls.append(("transaction", len(operations)))
        for op in operations:
            store = self._store(op["table"])
            if op["type"] == "update" and op["key"]["id"] not in store:
                raise BackendUnavailableError("ConditionalCheckFailed in transaction")
        for op in operations:
            if op["type"] == "put":
                await self._put_item(op["table"], op["item"])
            elif op["type"] == "update":
                await self._update_item(op["table"], op["key"], op["set"], op["remove"])
            else:
                await self._delete_item(op["table"], op["key"])


async def _make_provider(kind, declared_indexes=None):
    if kind == "sqlite":
        provider = SQLiteProvider(":memory:")
    else:
        provider = MemoryDynamoDBProvider(declared_indexes=declared_indexes)
    await provider.initialize()
    return provider


@pytest_asyncio.fixture(params=["sqlite", "dynamodb", "dynamodb-no-indexes"])
async def provider(request):
    """A fresh provider for every backend (and DynamoDB without any GSIs)."""
    kind = "dynamodb" if request.param.startswith("dynamodb") else "sqlite"
    declared = set() if request.param == "dynamodb-no-indexes" else None
    provider = await _make_provider(kind, declared)
    yield provider
    await provider.close()


@pytest_asyncio.fixture
async def sqlite_provider():
    provider = await _make_provider("sqlite")
    yield provider
    await provider.close()


@pytest_asyncio.fixture
async def dynamodb_provider():
    provider = await _make_provider("dynamodb")
    yield provider
    await provider.close()


@pytest.fixture
def make_dynamodb_provider():
    """Factory fixture: in-memory DynamoDB provider declaring only the given indexes."""

    async def _make(declared_indexes):
        return await _make_provider("dynamodb", declared_indexes)

    return _make


@pytest.fixture
def services(provider):
    """ServiceFactory bound to the parametrized provider."""
    return ServiceFactory(provider)


# ──────────────────────────────────────────────────────────────
# Data helpers
# ──────────────────────────────────────────────────────────────


@pytest.fixture
def make_user(services):
    """Factory fixture: create a user with a dummy password hash."""

    async def _make(email="alice@example.com", first_name="Alice", last_name="Adams", **extra):
        return await services.get_user_service().create_user(
            {"email": email, "password": "hash", "first_name": first_name, "last_name": last_name, **extra}
        )

    return _make


@pytest.fixture
def make_team(services):
    async def _make(code, name=None, city=None):
        return await services.get_nfl_data_service().create_or_update_team(
            {"team_code": code, "team_name": name or code, "team_city": city or ""}
        )

    return _make


@pytest.fixture
def make_football_game(services):
    """Factory fixture: schedule home vs away (team records) in a season week."""

    async def _make(season_id, week, home, away, **extra):
        return await services.get_nfl_data_service().create_football_game(
            {
                "season_id": season_id,
                "week": week,
                "home_team_id": home["id"],
                "away_team_id": away["id"],
                **extra,
            }
        )

    return _make


@pytest_asyncio.fixture
async def league(services, make_user, make_team, make_football_game):
    """
    Season 2025 (current), KC and DET, a week 1 KC@DET matchup, owner Alice
    and player Bob in "Test League".
    """
    alice = await make_user("alice@example.com", "Alice", "Adams")
    bob = await make_user("bob@example.com", "Bob", "Brown")
    season = await services.get_season_service().create_season("2025", is_current=True)
    kc = await make_team("KC", "Chiefs", "Kansas City")
    det = await make_team("DET", "Lions", "Detroit")
    matchup = await make_football_game(
        season["id"], 1, det, kc, start_time="2025-09-07T17:00:00+00:00"
    )
    game = await services.get_game_service().create_game(
        {"game_name": "Test League", "game_type": "weekly", "commissioner_id": alice["id"], "season_id": season["id"]}
    )
    await services.get_game_service().add_participant(game["id"], bob["id"])
    return {
        "alice": alice,
        "bob": bob,
        "season": season,
        "kc": kc,
        "det": det,
        "matchup": matchup,
        "game": game,
    }
