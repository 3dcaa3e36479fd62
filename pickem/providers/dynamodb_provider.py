"""
Key-value storage provider on DynamoDB (boto3).

Records are normalized before they reach boto3: composite attributes are
recomputed, None values stripped, timestamps stamped, index-key booleans
encoded as "true"/"false" and floats converted to Decimal. Reads reverse the
encoding and drop the composites, so callers see the same record shape the
SQLite provider returns.

The boto3 calls live in the _*_items hooks and run in a worker thread via
asyncio.to_thread. ClientErrors are translated into the typed storage errors;
nothing is retried.
"""

import asyncio
import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pickem.errors import (
    BackendUnavailableError,
    IndexNotFoundError,
    NotFoundError,
    TableNotFoundError,
)
from pickem.providers import keys
from pickem.providers.base import StorageProvider
from pickem.utils.constants import ALL_TABLES, MAX_TRANSACTION_ITEMS
from pickem.utils.datetime_utils import utcnow_iso

logger = logging.getLogger(__name__)

CONNECTIVITY_ERROR_CODES = {
    "UnrecognizedClientException",
    "InvalidSignatureException",
    "AccessDeniedException",
    "ExpiredTokenException",
    "ServiceUnavailable",
    "InternalServerError",
}


# --- Value encoding ---


def _to_dynamo_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_to_dynamo_value(v) for v in value]
    return value


def _from_dynamo_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo_value(v) for v in value]
    return value


def encode_item(table: str, item: Dict[str, Any]) -> Dict[str, Any]:
    """Prepare a record for DynamoDB: drop None, encode index booleans and floats."""
    bool_keys = keys.BOOLEAN_KEY_ATTRIBUTES.get(table, ())
    encoded = {}
    for name, value in item.items():
        if value is None:
            continue
        if name in bool_keys and isinstance(value, bool):
            value = "true" if value else "false"
        encoded[name] = _to_dynamo_value(value)
    return encoded


def decode_item(table: str, item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Reverse encode_item and drop derived composite attributes."""
    if item is None:
        return None
    bool_keys = keys.BOOLEAN_KEY_ATTRIBUTES.get(table, ())
    decoded = {}
    for name, value in keys.strip_composites(table, item).items():
        if name in bool_keys and isinstance(value, str):
            value = value == "true"
        decoded[name] = _from_dynamo_value(value)
    return decoded


def encode_condition(table: str, condition: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Encode condition values the same way stored values are encoded."""
    bool_keys = keys.BOOLEAN_KEY_ATTRIBUTES.get(table, ())
    encoded = {}
    for name, value in (condition or {}).items():
        if name in bool_keys and isinstance(value, bool):
            value = "true" if value else "false"
        encoded[name] = _to_dynamo_value(value)
    return encoded


def build_update_expression(set_fields: Dict[str, Any], remove_fields: List[str]) -> Dict[str, Any]:
    """
    Build UpdateExpression parameters.

    Returns:
        dict with UpdateExpression, ExpressionAttributeNames and (when
        anything is SET) ExpressionAttributeValues
    """
    names = {"#pk": "id"}
    values = {}
    set_parts = []
    remove_parts = []
    for i, (name, value) in enumerate(set_fields.items()):
        names[f"#field{i}"] = name
        values[f":value{i}"] = value
        set_parts.append(f"#field{i} = :value{i}")
    offset = len(set_fields)
    for j, name in enumerate(remove_fields):
        names[f"#field{offset + j}"] = name
        remove_parts.append(f"#field{offset + j}")

    expression = []
    if set_parts:
        expression.append("SET " + ", ".join(set_parts))
    if remove_parts:
        expression.append("REMOVE " + ", ".join(remove_parts))

    params = {
        "UpdateExpression": " ".join(expression),
        "ExpressionAttributeNames": names,
        "ConditionExpression": "attribute_exists(#pk)",
    }
    if values:
        params["ExpressionAttributeValues"] = values
    return params


class DynamoDBProvider(StorageProvider):
    """Storage provider backed by DynamoDB tables named prefix + logical name."""

    provider_type = "dynamodb"

    def __init__(
        self,
        region: str = "us-east-1",
        table_prefix: str = "football_pickem_",
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.region = region
        self.table_prefix = table_prefix
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._resource = None
        self._client = None

    def table_name(self, table: str) -> str:
        return f"{self.table_prefix}{table}"

    # --- Lifecycle ---

    def _session_kwargs(self) -> Dict[str, Any]:
        kwargs = {"region_name": self.region}
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        return kwargs

    async def initialize(self):
        if self._client is not None:
            return
        # Lazy import keeps boto3 off the import path of SQLite-only processes
        import boto3
        from botocore.exceptions import BotoCoreError, ClientError

        kwargs = self._session_kwargs()
        self._resource = boto3.resource("dynamodb", **kwargs)
        self._client = boto3.client("dynamodb", **kwargs)
        try:
            response = await self._call(self._client.list_tables)
        except BackendUnavailableError:
            self._resource = None
            self._client = None
            raise
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB initialization failed: {e}")
            self._resource = None
            self._client = None
            raise BackendUnavailableError(f"DynamoDB initialization failed: {e}") from e
        existing = set(response.get("TableNames", []))
        missing = [t for t in ALL_TABLES if self.table_name(t) not in existing]
        if missing:
            logger.warning(f"DynamoDB tables not found: {', '.join(self.table_name(t) for t in missing)}")
        logger.info(f"DynamoDB provider initialized (region={self.region}, prefix={self.table_prefix})")

    async def close(self):
        self._resource = None
        self._client = None
        logger.info("DynamoDB provider closed")

    def _table(self, table: str):
        if self._resource is None:
            raise BackendUnavailableError("DynamoDB provider is not initialized")
        return self._resource.Table(self.table_name(table))

    async def _call(self, fn, *args, table: str = None, index: str = None, **kwargs):
        """Run a blocking boto3 call in a thread and translate its errors."""
        from botocore.exceptions import (
            ClientError,
            EndpointConnectionError,
            NoCredentialsError,
            PartialCredentialsError,
        )

        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ClientError as e:
            translated = self._translate_client_error(e, table, index)
            if translated is e:
                raise
            raise translated from e
        except (EndpointConnectionError, NoCredentialsError, PartialCredentialsError) as e:
            logger.error(f"DynamoDB unavailable: {e}")
            raise BackendUnavailableError(f"DynamoDB unavailable: {e}") from e

    def _translate_client_error(self, error, table: str = None, index: str = None):
        code = error.response.get("Error", {}).get("Code", "")
        message = error.response.get("Error", {}).get("Message", "")
        if index and (
            code == "ValidationException" and "index" in message.lower()
            or code == "ResourceNotFoundException" and "index" in message.lower()
        ):
            return IndexNotFoundError(
                f"Index {index} not found on {self.table_name(table)}", table=table, index=index
            )
        if code == "ResourceNotFoundException":
            return TableNotFoundError(
                f"Table {self.table_name(table) if table else ''} not found: {message}", table=table
            )
        if code in CONNECTIVITY_ERROR_CODES:
            logger.error(f"DynamoDB unavailable ({code}): {message}")
            return BackendUnavailableError(f"DynamoDB unavailable ({code}): {message}")
        return error

    # --- boto3 hooks ---

    async def _get_item(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = await self._call(self._table(table).get_item, Key=key, table=table)
        return response.get("Item")

    async def _put_item(self, table: str, item: Dict[str, Any]) -> None:
        await self._call(self._table(table).put_item, Item=item, table=table)

    async def _update_item(
        self, table: str, key: Dict[str, Any], set_fields: Dict[str, Any], remove_fields: List[str]
    ) -> Optional[Dict[str, Any]]:
        from botocore.exceptions import ClientError

        params = build_update_expression(set_fields, remove_fields)
        try:
            response = await self._call(
                self._table(table).update_item,
                Key=key,
                ReturnValues="ALL_NEW",
                table=table,
                **params,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return None
            raise
        return response.get("Attributes")

    async def _delete_item(self, table: str, key: Dict[str, Any]) -> None:
        await self._call(self._table(table).delete_item, Key=key, table=table)

    async def _query_items(
        self, table: str, index_name: Optional[str], condition: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        from boto3.dynamodb.conditions import Attr, Key

        (partition_name, partition_value), *rest = condition.items()
        params = {"KeyConditionExpression": Key(partition_name).eq(partition_value)}
        if index_name:
            params["IndexName"] = index_name
        if rest:
            filter_expression = None
            for name, value in rest:
                clause = Attr(name).eq(value)
                filter_expression = clause if filter_expression is None else filter_expression & clause
            params["FilterExpression"] = filter_expression
        return await self._paginate(self._table(table).query, params, table, index_name)

    async def _scan_items(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        from boto3.dynamodb.conditions import Attr

        params = {}
        filter_expression = None
        for name, value in filters.items():
            clause = Attr(name).not_exists() if value is None else Attr(name).eq(value)
            filter_expression = clause if filter_expression is None else filter_expression & clause
        if filter_expression is not None:
            params["FilterExpression"] = filter_expression
        return await self._paginate(self._table(table).scan, params, table, None)

    async def _paginate(self, fn, params, table, index_name) -> List[Dict[str, Any]]:
        items = []
        while True:
            response = await self._call(fn, table=table, index=index_name, **params)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            params = dict(params, ExclusiveStartKey=last_key)

    async def _transact_items(self, operations: List[Dict[str, Any]]) -> None:
        from boto3.dynamodb.types import TypeSerializer

        serializer = TypeSerializer()

        def serialize(values):
            return {k: serializer.serialize(v) for k, v in values.items()}

        transact_items = []
        for op in operations:
            name = self.table_name(op["table"])
            if op["type"] == "put":
                transact_items.append({"Put": {"TableName": name, "Item": serialize(op["item"])}})
            elif op["type"] == "update":
                params = build_update_expression(op["set"], op["remove"])
                entry = {
                    "TableName": name,
                    "Key": serialize(op["key"]),
                    "UpdateExpression": params["UpdateExpression"],
                    "ExpressionAttributeNames": params["ExpressionAttributeNames"],
                    "ConditionExpression": params["ConditionExpression"],
                }
                if "ExpressionAttributeValues" in params:
                    entry["ExpressionAttributeValues"] = serialize(params["ExpressionAttributeValues"])
                transact_items.append({"Update": entry})
            else:
                transact_items.append({"Delete": {"TableName": name, "Key": serialize(op["key"])}})

        if self._client is None:
            raise BackendUnavailableError("DynamoDB provider is not initialized")
        await self._call(self._client.transact_write_items, TransactItems=transact_items)

    # --- Normalization ---

    def _prepare_put(self, table: str, item: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow_iso()
        record = keys.apply_composites(table, item)
        record.setdefault("id", str(uuid.uuid4()))
        if not record.get("created_at"):
            record["created_at"] = now
        record["updated_at"] = now
        return encode_item(table, record)

    async def _prepare_update(
        self, table: str, key: Dict[str, Any], fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Split fields into SET/REMOVE parts, recomputing composites when a part changes."""
        changes = {k: v for k, v in fields.items() if k != "id" and k not in keys.composite_attributes(table)}
        if keys.touches_composite(table, changes):
            current = await self._get_item(table, key)
            if current is None:
                return None
            merged = dict(decode_item(table, current), **changes)
            for attribute, value in keys.apply_composites(table, merged).items():
                if attribute in keys.composite_attributes(table):
                    changes[attribute] = value
        changes["updated_at"] = utcnow_iso()

        set_fields = encode_item(table, {k: v for k, v in changes.items() if v is not None})
        remove_fields = [k for k, v in changes.items() if v is None]
        return {"set": set_fields, "remove": remove_fields}

    # --- Primitives ---

    async def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return decode_item(table, await self._get_item(table, key))

    async def put(self, table: str, item: Dict[str, Any]) -> Dict[str, Any]:
        record = self._prepare_put(table, item)
        await self._put_item(table, record)
        return decode_item(table, record)

    async def update(
        self, table: str, key: Dict[str, Any], fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        prepared = await self._prepare_update(table, key, fields)
        if prepared is None:
            return None
        updated = await self._update_item(table, key, prepared["set"], prepared["remove"])
        return decode_item(table, updated)

    async def delete(self, table: str, key: Dict[str, Any]) -> None:
        await self._delete_item(table, key)

    async def query(
        self,
        table: str,
        key_condition: Dict[str, Any],
        index_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query the table or one of its secondary indexes.

        Raises:
            IndexNotFoundError: If index_name does not exist on the table
        """
        if not key_condition:
            raise ValueError("query requires a key condition")
        if index_name is None and list(key_condition) == ["id"]:
            item = await self.get(table, key_condition)
            return [item] if item else []
        items = await self._query_items(table, index_name, encode_condition(table, key_condition))
        return [decode_item(table, item) for item in items]

    async def scan(
        self, table: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        items = await self._scan_items(table, encode_condition(table, filters))
        return [decode_item(table, item) for item in items]

    async def transaction(self, operations: List[Dict[str, Any]]) -> None:
        if len(operations) > MAX_TRANSACTION_ITEMS:
            raise ValueError(
                f"Transaction has {len(operations)} operations; the limit is {MAX_TRANSACTION_ITEMS}"
            )
        prepared = []
        for op in operations:
            if op["type"] == "put":
                prepared.append({"type": "put", "table": op["table"], "item": self._prepare_put(op["table"], op["item"])})
            elif op["type"] == "update":
                parts = await self._prepare_update(op["table"], op["key"], op["fields"])
                if parts is None:
                    raise NotFoundError(f"Cannot update missing record {op['key']} in {op['table']}")
                prepared.append({"type": "update", "table": op["table"], "key": op["key"], **parts})
            elif op["type"] == "delete":
                prepared.append({"type": "delete", "table": op["table"], "key": op["key"]})
            else:
                raise ValueError(f"Unknown transaction operation: {op['type']}")
        await self._transact_items(prepared)
