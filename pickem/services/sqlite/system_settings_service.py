"""
System settings for the SQLite backend.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from pickem.database.models import SystemSetting
from pickem.errors import NotFoundError
from pickem.services.interfaces import SystemSettingsService, setting_id
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils import constants as c
from pickem.utils.datetime_utils import utcnow_iso


class SQLiteSystemSettingsService(SQLiteServiceBase, SystemSettingsService):

    async def get_settings_by_category(self, category: str) -> List[Dict[str, Any]]:
        return await self._all(
            select(SystemSetting).where(SystemSetting.category == category).order_by(SystemSetting.key)
        )

    async def get_settings_for_categories(self, categories: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {category: [] for category in categories}
        if not categories:
            return grouped
        rows = await self._all(
            select(SystemSetting)
            .where(SystemSetting.category.in_(categories))
            .order_by(SystemSetting.category, SystemSetting.key)
        )
        for row in rows:
            grouped[row["category"]].append(row)
        return grouped

    async def get_setting(self, category: str, key: str) -> Optional[Dict[str, Any]]:
        rows = await self.provider.query(c.SYSTEM_SETTINGS, {"category": category, "key": key})
        return rows[0] if rows else None

    async def update_setting(
        self,
        category: str,
        key: str,
        value: Optional[str],
        encrypted: bool = False,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        now = utcnow_iso()
        changes = {"value": value, "encrypted": bool(encrypted), "updated_at": now}
        if description is not None:
            changes["description"] = description
        stmt = (
            sqlite_insert(SystemSetting)
            .values(
                id=setting_id(category, key),
                category=category,
                key=key,
                description=description,
                created_at=now,
                **{k: v for k, v in changes.items() if k != "description"},
            )
            .on_conflict_do_update(index_elements=["category", "key"], set_=changes)
        )
        async with self.session() as session:
            async with session.begin():
                await session.execute(stmt)
        return await self.get_setting(category, key)

    async def delete_setting(self, category: str, key: str) -> None:
        setting = await self.get_setting(category, key)
        if not setting:
            raise NotFoundError("Setting not found")
        await self.provider.delete(c.SYSTEM_SETTINGS, {"id": setting["id"]})
