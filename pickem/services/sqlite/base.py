"""
Shared plumbing for the SQLite service implementations.
"""

from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pickem.database.models import model_to_dict
from pickem.providers.sqlite_provider import SQLiteProvider


class SQLiteServiceBase:
    """Holds the provider; joins and aggregates go through ORM sessions."""

    def __init__(self, provider: SQLiteProvider):
        self.provider = provider

    def session(self) -> AsyncSession:
        return self.provider.session()

    async def _all(self, stmt) -> List[Dict[str, Any]]:
        """Run a select of ORM entities and return them as dicts."""
        async with self.session() as session:
            result = await session.execute(stmt)
            return [model_to_dict(obj) for obj in result.scalars().all()]

    async def _count(self, model, *where) -> int:
        stmt = select(func.count()).select_from(model)
        if where:
            stmt = stmt.where(*where)
        async with self.session() as session:
            return (await session.execute(stmt)).scalar_one()
