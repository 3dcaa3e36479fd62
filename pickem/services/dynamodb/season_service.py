"""
Season service for the DynamoDB backend.

DynamoDB has no multi-record atomic swap outside small transactions, so
set_current_season writes the swap as one TransactWriteItems batch when it
fits and otherwise as sequential updates. get_current_season repairs the
state an interrupted sequential swap can leave behind.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pickem.errors import ConflictError, NotFoundError
from pickem.providers.base import update_op
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import SeasonService, season_sort_key
from pickem.utils import constants as c

logger = logging.getLogger(__name__)


class DynamoDBSeasonService(DynamoDBServiceBase, SeasonService):

    async def _current_seasons(self) -> List[Dict[str, Any]]:
        return await self._lookup(c.SEASONS, {"is_current": True}, ["is_current-index"])

    async def get_all_seasons(self) -> List[Dict[str, Any]]:
        seasons = await self.provider.scan(c.SEASONS)
        return sorted(seasons, key=season_sort_key, reverse=True)

    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        current = await self._current_seasons()
        if not current:
            return None
        if len(current) > 1:
            return await self.fix_multiple_current_seasons()
        return current[0]

    async def fix_multiple_current_seasons(self) -> Optional[Dict[str, Any]]:
        current = await self._current_seasons()
        if not current:
            return None
        keep = max(current, key=season_sort_key)
        for season in current:
            if season["id"] != keep["id"]:
                await self.provider.update(c.SEASONS, {"id": season["id"]}, {"is_current": False})
        if len(current) > 1:
            logger.warning(
                f"Found {len(current)} current seasons; kept {keep['season']} and unset "
                f"{', '.join(s['season'] for s in current if s['id'] != keep['id'])}"
            )
        return keep

    async def get_season_by_id(self, season_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.SEASONS, {"id": season_id})

    async def get_season_by_year(self, year: str) -> Optional[Dict[str, Any]]:
        return await self._lookup_one(c.SEASONS, {"season": str(year)}, ["season-index"])

    async def create_season(self, year: str, is_current: bool = False) -> Dict[str, Any]:
        year = str(year).strip()
        if await self.get_season_by_year(year):
            raise ConflictError("Season already exists")
        season = await self.provider.put(
            c.SEASONS, {"id": str(uuid.uuid4()), "season": year, "is_current": False}
        )
        await self._guard_duplicate(
            c.SEASONS, season, {"season": year}, ["season-index"], "Season already exists"
        )
        if is_current:
            season = await self.set_current_season(season["id"])
        logger.info(f"Created season {year}")
        return season

    async def update_season(self, season_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        season = await self.get_season_by_id(season_id)
        if not season:
            raise NotFoundError("Season not found")
        fields = {}
        if updates.get("season") is not None:
            year = str(updates["season"]).strip()
            existing = await self.get_season_by_year(year)
            if existing and existing["id"] != season_id:
                raise ConflictError("Season already exists")
            fields["season"] = year
        if fields:
            season = await self.provider.update(c.SEASONS, {"id": season_id}, fields)
        if "is_current" in updates:
            if updates["is_current"]:
                season = await self.set_current_season(season_id)
            else:
                season = await self.provider.update(c.SEASONS, {"id": season_id}, {"is_current": False})
        return season

    async def set_current_season(self, season_id: str) -> Dict[str, Any]:
        if not await self.get_season_by_id(season_id):
            raise NotFoundError("Season not found")
        others = [s for s in await self._current_seasons() if s["id"] != season_id]
        operations = [update_op(c.SEASONS, {"id": s["id"]}, {"is_current": False}) for s in others]
        operations.append(update_op(c.SEASONS, {"id": season_id}, {"is_current": True}))

        if len(operations) <= c.MAX_TRANSACTION_ITEMS:
            await self.provider.transaction(operations)
        else:
            # Set the new season first; get_current_season repairs an interrupted run
            await self.provider.update(c.SEASONS, {"id": season_id}, {"is_current": True})
            for season in others:
                await self.provider.update(c.SEASONS, {"id": season["id"]}, {"is_current": False})
        logger.info(f"Set current season to {season_id}")
        return await self.get_season_by_id(season_id)

    async def delete_season(self, season_id: str) -> None:
        if not await self.get_season_by_id(season_id):
            raise NotFoundError("Season not found")
        if await self.get_season_game_count(season_id) > 0:
            raise ConflictError("Cannot delete season that has associated games")
        await self.provider.delete(c.SEASONS, {"id": season_id})

    async def _games(self, season_id: str, week: Optional[int] = None) -> List[Dict[str, Any]]:
        if week is None:
            return await self._lookup(c.FOOTBALL_GAMES, {"season_id": season_id}, ["season_id-index"])
        return await self._lookup(
            c.FOOTBALL_GAMES,
            {"season_id": season_id, "week": int(week)},
            ["season_id_week-index", "season_id-index"],
        )

    async def get_season_games(self, season_id: str, week: Optional[int] = None) -> List[Dict[str, Any]]:
        games = [
            g for g in await self._games(season_id, week)
            if g.get("season_type") != c.SEASON_TYPE_PRESEASON
        ]
        teams = {t["id"]: t for t in await self.provider.scan(c.TEAMS)}
        result = []
        for game in games:
            record = dict(game)
            for side in ("home", "away"):
                team = teams.get(game.get(f"{side}_team_id"), {})
                record[f"{side}_team_code"] = team.get("team_code")
                record[f"{side}_team_name"] = team.get("team_name")
                record[f"{side}_team_city"] = team.get("team_city")
            result.append(record)
        return sorted(result, key=lambda g: (g["week"], g.get("start_time") or ""))

    async def get_season_game_count(self, season_id: str) -> int:
        return len(await self._games(season_id))

    async def get_all_seasons_with_counts(self) -> List[Dict[str, Any]]:
        seasons = await self.get_all_seasons()
        games = await self.provider.scan(c.FOOTBALL_GAMES)
        counts: Dict[str, int] = {}
        for game in games:
            counts[game["season_id"]] = counts.get(game["season_id"], 0) + 1
        return [{**s, "game_count": counts.get(s["id"], 0)} for s in seasons]

    async def get_season_count(self) -> int:
        return await self._count(c.SEASONS)
