"""
Lookup helpers shared by the DynamoDB service implementations.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from pickem.errors import ConflictError, IndexNotFoundError
from pickem.providers import keys
from pickem.providers.dynamodb_provider import DynamoDBProvider

logger = logging.getLogger(__name__)


class DynamoDBServiceBase:
    """Index-first lookups with explicit fallbacks for missing indexes."""

    def __init__(self, provider: DynamoDBProvider):
        self.provider = provider

    async def _lookup(
        self, table: str, criteria: Dict[str, Any], indexes: Sequence[str]
    ) -> List[Dict[str, Any]]:
        """
        Records matching every criterion.

        Tries each index in order (most specific first). The first index that
        exists answers the query and the remaining criteria are applied in
        memory. If none exists, falls back to a filtered scan.
        """
        for index_name in indexes:
            if not keys.can_use_index(table, index_name, criteria):
                logger.debug(f"Skipping {index_name} on {table}: criteria lack its key parts")
                continue
            condition = keys.index_condition(table, index_name, criteria)
            try:
                items = await self.provider.query(table, condition, index_name=index_name)
            except IndexNotFoundError:
                logger.warning(
                    f"Index {index_name} missing on {self.provider.table_name(table)}; "
                    f"falling back. Add the index to avoid slower lookups."
                )
                continue
            return [item for item in items if keys.matches(item, criteria)]

        if indexes:
            logger.warning(f"No usable index on {self.provider.table_name(table)} for {sorted(criteria)}; scanning")
        return await self.provider.scan(table, criteria)

    async def _lookup_one(
        self, table: str, criteria: Dict[str, Any], indexes: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        items = await self._lookup(table, criteria, indexes)
        return items[0] if items else None

    async def _delete_all(self, table: str, items: List[Dict[str, Any]]) -> int:
        for item in items:
            await self.provider.delete(table, {"id": item["id"]})
        return len(items)

    async def _delete_where(
        self, table: str, criteria: Dict[str, Any], indexes: Sequence[str]
    ) -> int:
        return await self._delete_all(table, await self._lookup(table, criteria, indexes))

    async def _count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return len(await self.provider.scan(table, filters))

    async def _duplicate_winner(
        self, table: str, record: Dict[str, Any], criteria: Dict[str, Any], indexes: Sequence[str]
    ) -> Dict[str, Any]:
        """Earliest of record and every stored record matching criteria."""
        candidates = {item["id"]: item for item in await self._lookup(table, criteria, indexes)}
        candidates.setdefault(record["id"], record)
        return min(candidates.values(), key=lambda r: (r.get("created_at") or "", r["id"]))

    async def _guard_duplicate(
        self,
        table: str,
        record: Dict[str, Any],
        criteria: Dict[str, Any],
        indexes: Sequence[str],
        message: str,
    ):
        """
        Compensating check after an insert guarded only by a prior read.

        If a concurrent writer slipped in a duplicate, the earliest record
        wins; ours is removed and ConflictError raised.
        """
        winner = await self._duplicate_winner(table, record, criteria, indexes)
        if winner["id"] != record["id"]:
            await self.provider.delete(table, {"id": record["id"]})
            raise ConflictError(message)
