"""
Relational storage provider on SQLite (SQLAlchemy async + aiosqlite).

The primitive operations compile to parameterized Core statements against the
ORM tables. Services that need joins or aggregates open an AsyncSession via
session().
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import Table, and_, delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from pickem.database.db import (
    Base,
    create_engine_for_path,
    create_session_factory,
    init_database,
)
from pickem.errors import BackendUnavailableError, ConflictError, TableNotFoundError
from pickem.providers.base import StorageProvider
from pickem.utils.datetime_utils import utcnow_iso

logger = logging.getLogger(__name__)


def raise_for_integrity_error(error: IntegrityError, table: str):
    """Map a UNIQUE violation to ConflictError; other integrity errors propagate."""
    message = str(error.orig) if error.orig is not None else str(error)
    if "UNIQUE constraint failed" in message:
        raise ConflictError(f"Duplicate record in {table}: {message}") from error
    raise error


class SQLiteProvider(StorageProvider):
    """Storage provider backed by a SQLite file (or :memory:)."""

    provider_type = "sqlite"

    def __init__(self, path: str, echo: bool = False):
        self.path = path
        self.echo = echo
        self.engine = None
        self._session_factory = None

    async def initialize(self):
        if self.engine is not None:
            return
        try:
            self.engine = create_engine_for_path(self.path, echo=self.echo)
            self._session_factory = create_session_factory(self.engine)
            await init_database(self.engine)
        except (OperationalError, OSError) as e:
            logger.error(f"Failed to initialize SQLite database at {self.path}: {e}")
            self.engine = None
            raise BackendUnavailableError(f"SQLite database unavailable: {e}") from e
        logger.info(f"SQLite provider initialized ({self.path})")

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
            logger.info("SQLite provider closed")

    def session(self) -> AsyncSession:
        """New AsyncSession; use as `async with provider.session() as session`."""
        if self._session_factory is None:
            raise BackendUnavailableError("SQLite provider is not initialized")
        return self._session_factory()

    # --- Helpers ---

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise TableNotFoundError(f"Unknown table: {name}", table=name)
        return table

    def _columns_only(self, table: Table, values: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in values.items() if k in table.c}

    def _where(self, table: Table, conditions: Optional[Dict[str, Any]]):
        clauses = []
        for column, value in (conditions or {}).items():
            if column not in table.c:
                raise ValueError(f"Unknown column {table.name}.{column}")
            if value is None:
                clauses.append(table.c[column].is_(None))
            else:
                clauses.append(table.c[column] == value)
        return and_(*clauses) if clauses else None

    def _connect(self):
        if self.engine is None:
            raise BackendUnavailableError("SQLite provider is not initialized")
        return self.engine.begin()

    async def _select(self, table_name: str, conditions: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        table = self._table(table_name)
        stmt = select(table)
        where = self._where(table, conditions)
        if where is not None:
            stmt = stmt.where(where)
        async with self._connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result.fetchall()]

    def _prepare_put(self, table: Table, item: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow_iso()
        record = self._columns_only(table, item)
        record.setdefault("id", str(uuid.uuid4()))
        if not record.get("created_at"):
            record["created_at"] = now
        record["updated_at"] = now
        return record

    def _put_statement(self, table: Table, record: Dict[str, Any]):
        stmt = sqlite_insert(table).values(**record)
        changes = {k: v for k, v in record.items() if k not in ("id", "created_at")}
        return stmt.on_conflict_do_update(index_elements=[table.c.id], set_=changes)

    def _update_statement(self, table: Table, key: Dict[str, Any], fields: Dict[str, Any]):
        values = self._columns_only(table, fields)
        values.pop("id", None)
        values["updated_at"] = utcnow_iso()
        return update(table).where(self._where(table, key)).values(**values)

    # --- Primitives ---

    async def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self._select(table, key)
        return rows[0] if rows else None

    async def put(self, table: str, item: Dict[str, Any]) -> Dict[str, Any]:
        tbl = self._table(table)
        record = self._prepare_put(tbl, item)
        try:
            async with self._connect() as conn:
                await conn.execute(self._put_statement(tbl, record))
        except IntegrityError as e:
            raise_for_integrity_error(e, table)
        return await self.get(table, {"id": record["id"]})

    async def update(
        self, table: str, key: Dict[str, Any], fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        tbl = self._table(table)
        try:
            async with self._connect() as conn:
                result = await conn.execute(self._update_statement(tbl, key, fields))
        except IntegrityError as e:
            raise_for_integrity_error(e, table)
        if result.rowcount == 0:
            return None
        return await self.get(table, key)

    async def delete(self, table: str, key: Dict[str, Any]) -> None:
        tbl = self._table(table)
        async with self._connect() as conn:
            await conn.execute(delete(tbl).where(self._where(tbl, key)))

    async def query(
        self,
        table: str,
        key_condition: Dict[str, Any],
        index_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        # SQLite plans its own index use; index_name is advisory here
        return await self._select(table, key_condition)

    async def scan(
        self, table: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return await self._select(table, filters)

    async def transaction(self, operations: List[Dict[str, Any]]) -> None:
        statements = []
        for op in operations:
            tbl = self._table(op["table"])
            if op["type"] == "put":
                statements.append((op["table"], self._put_statement(tbl, self._prepare_put(tbl, op["item"]))))
            elif op["type"] == "update":
                statements.append((op["table"], self._update_statement(tbl, op["key"], op["fields"])))
            elif op["type"] == "delete":
                statements.append((op["table"], delete(tbl).where(self._where(tbl, op["key"]))))
            else:
                raise ValueError(f"Unknown transaction operation: {op['type']}")

        current_table = None
        try:
            async with self._connect() as conn:
                for current_table, stmt in statements:
                    await conn.execute(stmt)
        except IntegrityError as e:
            raise_for_integrity_error(e, current_table)
