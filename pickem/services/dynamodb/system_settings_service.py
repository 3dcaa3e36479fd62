"""
System settings for the DynamoDB backend.
"""

from typing import Any, Dict, List, Optional

from pickem.errors import NotFoundError
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import SystemSettingsService, setting_id
from pickem.utils import constants as c


class DynamoDBSystemSettingsService(DynamoDBServiceBase, SystemSettingsService):

    async def get_settings_by_category(self, category: str) -> List[Dict[str, Any]]:
        settings = await self._lookup(c.SYSTEM_SETTINGS, {"category": category}, ["category-index"])
        return sorted(settings, key=lambda s: s["key"])

    async def get_settings_for_categories(self, categories: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        return {category: await self.get_settings_by_category(category) for category in categories}

    async def get_setting(self, category: str, key: str) -> Optional[Dict[str, Any]]:
        setting = await self.provider.get(c.SYSTEM_SETTINGS, {"id": setting_id(category, key)})
        if setting:
            return setting
        # Rows written by other tools may carry their own ids
        return await self._lookup_one(
            c.SYSTEM_SETTINGS, {"category": category, "key": key}, ["category_key-index", "category-index"]
        )

    async def update_setting(
        self,
        category: str,
        key: str,
        value: Optional[str],
        encrypted: bool = False,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        existing = await self.get_setting(category, key)
        record = {
            "id": existing["id"] if existing else setting_id(category, key),
            "category": category,
            "key": key,
            "value": value,
            "encrypted": bool(encrypted),
            "description": description if description is not None else (existing or {}).get("description"),
        }
        if existing:
            record["created_at"] = existing.get("created_at")
        return await self.provider.put(c.SYSTEM_SETTINGS, record)

    async def delete_setting(self, category: str, key: str) -> None:
        setting = await self.get_setting(category, key)
        if not setting:
            raise NotFoundError("Setting not found")
        await self.provider.delete(c.SYSTEM_SETTINGS, {"id": setting["id"]})
