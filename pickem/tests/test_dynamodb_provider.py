"""
Tests for the DynamoDB provider.
Covers value encoding, update expressions, error translation on a mocked
boto3 table, pagination, transactions and composite maintenance.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from pickem.errors import (
    BackendUnavailableError,
    IndexNotFoundError,
    StorageError,
    TableNotFoundError,
)
from pickem.providers.base import delete_op, put_op, update_op
from pickem.providers.dynamodb_provider import (
    DynamoDBProvider,
    build_update_expression,
    decode_item,
    encode_item,
)
from pickem.utils import constants as c


def client_error(code, message="", operation="GetItem"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def mocked():
    """Provider wired to MagicMock boto3 resource and client."""
    provider = DynamoDBProvider(table_prefix="test_")
    provider._resource = MagicMock()
    provider._client = MagicMock()
    table = provider._resource.Table.return_value
    return provider, table


# --- Encoding ---


def test_encode_item_drops_none_and_encodes_index_booleans():
    encoded = encode_item(c.USERS, {"id": "u1", "is_admin": True, "phone": None, "score": 1.5})
    assert encoded == {"id": "u1", "is_admin": "true", "score": Decimal("1.5")}


def test_encode_item_keeps_plain_booleans_for_non_index_attributes():
    encoded = encode_item(c.PICKS, {"id": "p1", "is_correct": False})
    assert encoded["is_correct"] is False


def test_decode_item_reverses_encoding_and_strips_composites():
    stored = {
        "id": "s1",
        "season": "2025",
        "is_current": "false",
        "season_id_week": "ignored",
        "count": Decimal("3"),
        "ratio": Decimal("0.5"),
    }
    assert decode_item(c.SEASONS, stored) == {
        "id": "s1",
        "season": "2025",
        "is_current": False,
        "season_id_week": "ignored",
        "count": 3,
        "ratio": 0.5,
    }
    pick = decode_item(c.PICKS, {"id": "p1", "season_id_week": "s1:1", "week": Decimal("1")})
    assert pick == {"id": "p1", "week": 1}


def test_decode_item_none():
    assert decode_item(c.USERS, None) is None


def test_build_update_expression_set_and_remove():
    params = build_update_expression({"first_name": "Al", "updated_at": "t"}, ["phone"])
    assert params["UpdateExpression"] == "SET #field0 = :value0, #field1 = :value1 REMOVE #field2"
    assert params["ExpressionAttributeNames"] == {
        "#pk": "id",
        "#field0": "first_name",
        "#field1": "updated_at",
        "#field2": "phone",
    }
    assert params["ExpressionAttributeValues"] == {":value0": "Al", ":value1": "t"}
    assert params["ConditionExpression"] == "attribute_exists(#pk)"


def test_build_update_expression_remove_only_has_no_values():
    params = build_update_expression({}, ["phone"])
    assert params["UpdateExpression"] == "REMOVE #field0"
    assert "ExpressionAttributeValues" not in params


# --- boto3 calls ---


@pytest.mark.asyncio
async def test_put_writes_normalized_item(mocked):
    provider, table = mocked
    record = await provider.put(
        c.PICKS,
        {"user_id": "u1", "game_id": "g1", "football_game_id": "f1", "season_id": "s1", "week": 2, "is_correct": None},
    )

    item = table.put_item.call_args.kwargs["Item"]
    assert item["user_game_football"] == "u1:g1:f1"
    assert item["season_id_week"] == "s1:2"
    assert "is_correct" not in item
    assert item["created_at"] and item["updated_at"]
    provider._resource.Table.assert_called_with("test_picks")
    # Callers never see composite attributes
    assert "user_game_football" not in record
    assert record["id"] == item["id"]


@pytest.mark.asyncio
async def test_get_translates_missing_table(mocked):
    provider, table = mocked
    table.get_item.side_effect = client_error("ResourceNotFoundException", "Requested resource not found")

    with pytest.raises(TableNotFoundError) as exc_info:
        await provider.get(c.USERS, {"id": "u1"})
    assert exc_info.value.table == c.USERS


@pytest.mark.asyncio
async def test_query_translates_missing_index(mocked):
    provider, table = mocked
    table.query.side_effect = client_error(
        "ValidationException", "The table does not have the specified index: email-index", "Query"
    )

    with pytest.raises(IndexNotFoundError) as exc_info:
        await provider.query(c.USERS, {"email": "a@example.com"}, index_name="email-index")
    assert exc_info.value.index == "email-index"


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["UnrecognizedClientException", "ExpiredTokenException"])
async def test_credential_errors_become_backend_unavailable(mocked, code):
    provider, table = mocked
    table.scan.side_effect = client_error(code, "bad credentials", "Scan")

    with pytest.raises(BackendUnavailableError):
        await provider.scan(c.USERS)


@pytest.mark.asyncio
async def test_connection_errors_become_backend_unavailable(mocked):
    provider, table = mocked
    table.get_item.side_effect = EndpointConnectionError(endpoint_url="http://localhost:8000")

    with pytest.raises(BackendUnavailableError):
        await provider.get(c.USERS, {"id": "u1"})


@pytest.mark.asyncio
async def test_unrecognized_client_errors_propagate(mocked):
    provider, table = mocked
    table.put_item.side_effect = client_error("ProvisionedThroughputExceededException", "slow down", "PutItem")

    with pytest.raises(ClientError):
        await provider.put(c.USERS, {"email": "a@example.com"})


@pytest.mark.asyncio
async def test_update_missing_record_returns_none(mocked):
    provider, table = mocked
    table.update_item.side_effect = client_error("ConditionalCheckFailedException", "", "UpdateItem")

    assert await provider.update(c.USERS, {"id": "missing"}, {"first_name": "X"}) is None


@pytest.mark.asyncio
async def test_update_sets_and_removes(mocked):
    provider, table = mocked
    table.update_item.return_value = {"Attributes": {"id": "u1", "first_name": "Al", "is_admin": "true"}}

    result = await provider.update(c.USERS, {"id": "u1"}, {"first_name": "Al", "phone": None})

    kwargs = table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"id": "u1"}
    assert kwargs["ReturnValues"] == "ALL_NEW"
    assert "REMOVE" in kwargs["UpdateExpression"]
    assert "phone" in kwargs["ExpressionAttributeNames"].values()
    assert result == {"id": "u1", "first_name": "Al", "is_admin": True}


@pytest.mark.asyncio
async def test_query_follows_pagination(mocked):
    provider, table = mocked
    table.query.side_effect = [
        {"Items": [{"id": "a", "game_id": "g1"}], "LastEvaluatedKey": {"id": "a"}},
        {"Items": [{"id": "b", "game_id": "g1"}]},
    ]

    items = await provider.query(c.PARTICIPANTS, {"game_id": "g1"}, index_name="game_id-index")

    assert [i["id"] for i in items] == ["a", "b"]
    second = table.query.call_args_list[1].kwargs
    assert second["ExclusiveStartKey"] == {"id": "a"}
    assert second["IndexName"] == "game_id-index"


@pytest.mark.asyncio
async def test_query_by_primary_key_uses_get_item(mocked):
    provider, table = mocked
    table.get_item.return_value = {"Item": {"id": "u1"}}

    assert await provider.query(c.USERS, {"id": "u1"}) == [{"id": "u1"}]
    table.query.assert_not_called()


@pytest.mark.asyncio
async def test_query_requires_condition(mocked):
    provider, _ = mocked
    with pytest.raises(ValueError):
        await provider.query(c.USERS, {})


@pytest.mark.asyncio
async def test_uninitialized_provider_raises():
    provider = DynamoDBProvider()
    with pytest.raises(BackendUnavailableError):
        await provider.get(c.USERS, {"id": "u1"})


def test_storage_errors_are_not_value_errors():
    assert issubclass(TableNotFoundError, StorageError)
    assert not issubclass(IndexNotFoundError, ValueError)


# --- Transactions ---


@pytest.mark.asyncio
async def test_transaction_over_limit_is_rejected(mocked):
    provider, _ = mocked
    operations = [delete_op(c.PICKS, {"id": str(i)}) for i in range(26)]

    with pytest.raises(ValueError):
        await provider.transaction(operations)
    provider._client.transact_write_items.assert_not_called()


@pytest.mark.asyncio
async def test_transaction_serializes_operations(mocked):
    provider, _ = mocked
    await provider.transaction(
        [
            put_op(c.SEASONS, {"id": "s1", "season": "2025", "is_current": True}),
            update_op(c.SEASONS, {"id": "s0"}, {"is_current": False}),
            delete_op(c.PICKS, {"id": "p1"}),
        ]
    )

    items = provider._client.transact_write_items.call_args.kwargs["TransactItems"]
    assert [next(iter(i)) for i in items] == ["Put", "Update", "Delete"]
    put = items[0]["Put"]
    assert put["TableName"] == "test_seasons"
    assert put["Item"]["is_current"] == {"S": "true"}
    update = items[1]["Update"]
    assert update["Key"] == {"id": {"S": "s0"}}
    assert {"S": "false"} in update["ExpressionAttributeValues"].values()
    assert items[2]["Delete"]["Key"] == {"id": {"S": "p1"}}


@pytest.mark.asyncio
async def test_transaction_rejects_unknown_operation(mocked):
    provider, _ = mocked
    with pytest.raises(ValueError):
        await provider.transaction([{"type": "upsert", "table": c.USERS, "item": {}}])


# --- Lifecycle ---


@pytest.mark.asyncio
async def test_initialize_warns_about_missing_tables(caplog):
    client = MagicMock()
    client.list_tables.return_value = {"TableNames": ["football_pickem_users"]}
    with patch("boto3.resource") as resource, patch("boto3.client", return_value=client):
        provider = DynamoDBProvider(endpoint_url="http://localhost:8000")
        await provider.initialize()

    assert resource.call_args.kwargs["endpoint_url"] == "http://localhost:8000"
    assert "football_pickem_picks" in caplog.text
    assert provider._client is client


@pytest.mark.asyncio
async def test_initialize_failure_raises_backend_unavailable():
    client = MagicMock()
    client.list_tables.side_effect = client_error("UnrecognizedClientException", "bad token", "ListTables")
    with patch("boto3.resource"), patch("boto3.client", return_value=client):
        provider = DynamoDBProvider()
        with pytest.raises(BackendUnavailableError):
            await provider.initialize()
    assert provider._client is None


# --- Composites (in-memory tables) ---


@pytest.mark.asyncio
async def test_update_recomputes_composites(dynamodb_provider):
    pick = await dynamodb_provider.put(
        c.PICKS, {"user_id": "u1", "game_id": "g1", "football_game_id": "f1", "season_id": "s1", "week": 1}
    )

    await dynamodb_provider.update(c.PICKS, {"id": pick["id"]}, {"week": 2})

    stored = dynamodb_provider.tables[c.PICKS][pick["id"]]
    assert stored["season_id_week"] == "s1:2"
    assert stored["user_game_football"] == "u1:g1:f1"


@pytest.mark.asyncio
async def test_update_ignores_caller_supplied_composites(dynamodb_provider):
    pick = await dynamodb_provider.put(
        c.PICKS, {"user_id": "u1", "game_id": "g1", "football_game_id": "f1", "season_id": "s1", "week": 1}
    )

    await dynamodb_provider.update(c.PICKS, {"id": pick["id"]}, {"season_id_week": "bogus", "is_correct": True})

    stored = dynamodb_provider.tables[c.PICKS][pick["id"]]
    assert stored["season_id_week"] == "s1:1"
    assert stored["is_correct"] is True


@pytest.mark.asyncio
async def test_boolean_index_keys_query_by_bool(dynamodb_provider):
    await dynamodb_provider.put(c.SEASONS, {"id": "s1", "season": "2024", "is_current": False})
    await dynamodb_provider.put(c.SEASONS, {"id": "s2", "season": "2025", "is_current": True})

    current = await dynamodb_provider.query(c.SEASONS, {"is_current": True}, index_name="is_current-index")

    assert [s["id"] for s in current] == ["s2"]
    assert current[0]["is_current"] is True
    assert dynamodb_provider.tables[c.SEASONS]["s2"]["is_current"] == "true"


@pytest.mark.asyncio
async def test_put_preserves_created_at(dynamodb_provider):
    record = await dynamodb_provider.put(c.USERS, {"id": "u1", "email": "a@example.com", "created_at": "2020-01-01T00:00:00+00:00"})
    assert record["created_at"] == "2020-01-01T00:00:00+00:00"
    assert record["updated_at"] != record["created_at"]
