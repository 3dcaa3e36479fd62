"""
Storage provider contract shared by the SQLite and DynamoDB backends.

Records are plain dicts keyed by attribute name. Keys are dicts too
(always {"id": ...} for the tables in this package). Conditions and filters
are equality-only dicts; query() names an optional index that the relational
backend treats as advisory.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


def put_op(table: str, item: Dict[str, Any]) -> Dict[str, Any]:
    """Transaction operation that writes a whole record."""
    return {"type": "put", "table": table, "item": item}


def update_op(table: str, key: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Transaction operation that changes some fields of an existing record."""
    return {"type": "update", "table": table, "key": key, "fields": fields}


def delete_op(table: str, key: Dict[str, Any]) -> Dict[str, Any]:
    """Transaction operation that removes a record."""
    return {"type": "delete", "table": table, "key": key}


class StorageProvider(ABC):
    """Primitive operations against one physical backend."""

    provider_type: str = None

    def get_type(self) -> str:
        return self.provider_type

    @abstractmethod
    async def initialize(self):
        """Connect and verify the backend; raise BackendUnavailableError on failure."""

    @abstractmethod
    async def close(self):
        """Release connections."""

    @abstractmethod
    async def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Fetch one record by primary key, or None."""

    @abstractmethod
    async def put(self, table: str, item: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace a record, stamping created_at/updated_at. Returns the stored record."""

    @abstractmethod
    async def update(
        self, table: str, key: Dict[str, Any], fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Change fields of an existing record and stamp updated_at.

        A None value clears the field. Returns the updated record, or None if
        no record has that key.
        """

    @abstractmethod
    async def delete(self, table: str, key: Dict[str, Any]) -> None:
        """Remove a record; deleting a missing key is a no-op."""

    @abstractmethod
    async def query(
        self,
        table: str,
        key_condition: Dict[str, Any],
        index_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Records matching key_condition, read through index_name where the backend has one."""

    @abstractmethod
    async def scan(
        self, table: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Full-table read with an optional equality filter."""

    @abstractmethod
    async def transaction(self, operations: List[Dict[str, Any]]) -> None:
        """Apply put/update/delete operations all-or-nothing."""
