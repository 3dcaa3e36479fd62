"""
Season service for the SQLite backend.

The current-season swap runs inside one transaction, so the multiple-current
state can only come from data written elsewhere; get_current_season still
repairs it if found.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import aliased

from pickem.database.models import FootballGame, Season, Team, model_to_dict
from pickem.errors import ConflictError, NotFoundError
from pickem.services.interfaces import SeasonService, season_sort_key
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils import constants as c
from pickem.utils.datetime_utils import utcnow_iso

logger = logging.getLogger(__name__)


class SQLiteSeasonService(SQLiteServiceBase, SeasonService):

    async def get_all_seasons(self) -> List[Dict[str, Any]]:
        seasons = await self.provider.scan(c.SEASONS)
        return sorted(seasons, key=season_sort_key, reverse=True)

    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        current = await self.provider.query(c.SEASONS, {"is_current": True})
        if not current:
            return None
        if len(current) > 1:
            return await self.fix_multiple_current_seasons()
        return current[0]

    async def fix_multiple_current_seasons(self) -> Optional[Dict[str, Any]]:
        current = await self.provider.query(c.SEASONS, {"is_current": True})
        if not current:
            return None
        keep = max(current, key=season_sort_key)
        if len(current) > 1:
            async with self.session() as session:
                async with session.begin():
                    await session.execute(
                        update(Season)
                        .where(Season.is_current.is_(True), Season.id != keep["id"])
                        .values(is_current=False, updated_at=utcnow_iso())
                    )
            logger.warning(
                f"Found {len(current)} current seasons; kept {keep['season']} and unset "
                f"{', '.join(s['season'] for s in current if s['id'] != keep['id'])}"
            )
        return keep

    async def get_season_by_id(self, season_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.SEASONS, {"id": season_id})

    async def get_season_by_year(self, year: str) -> Optional[Dict[str, Any]]:
        seasons = await self.provider.query(c.SEASONS, {"season": str(year)})
        return seasons[0] if seasons else None

    async def create_season(self, year: str, is_current: bool = False) -> Dict[str, Any]:
        year = str(year).strip()
        if await self.get_season_by_year(year):
            raise ConflictError("Season already exists")
        season = await self.provider.put(
            c.SEASONS, {"id": str(uuid.uuid4()), "season": year, "is_current": False}
        )
        if is_current:
            season = await self.set_current_season(season["id"])
        logger.info(f"Created season {year}")
        return season

    async def update_season(self, season_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        season = await self.get_season_by_id(season_id)
        if not season:
            raise NotFoundError("Season not found")
        if updates.get("season") is not None:
            year = str(updates["season"]).strip()
            existing = await self.get_season_by_year(year)
            if existing and existing["id"] != season_id:
                raise ConflictError("Season already exists")
            season = await self.provider.update(c.SEASONS, {"id": season_id}, {"season": year})
        if "is_current" in updates:
            if updates["is_current"]:
                season = await self.set_current_season(season_id)
            else:
                season = await self.provider.update(c.SEASONS, {"id": season_id}, {"is_current": False})
        return season

    async def set_current_season(self, season_id: str) -> Dict[str, Any]:
        if not await self.get_season_by_id(season_id):
            raise NotFoundError("Season not found")
        now = utcnow_iso()
        async with self.session() as session:
            async with session.begin():
                await session.execute(
                    update(Season).where(Season.id != season_id).values(is_current=False, updated_at=now)
                )
                await session.execute(
                    update(Season).where(Season.id == season_id).values(is_current=True, updated_at=now)
                )
        logger.info(f"Set current season to {season_id}")
        return await self.get_season_by_id(season_id)

    async def delete_season(self, season_id: str) -> None:
        if not await self.get_season_by_id(season_id):
            raise NotFoundError("Season not found")
        if await self.get_season_game_count(season_id) > 0:
            raise ConflictError("Cannot delete season that has associated games")
        await self.provider.delete(c.SEASONS, {"id": season_id})

    async def get_season_games(self, season_id: str, week: Optional[int] = None) -> List[Dict[str, Any]]:
        home = aliased(Team)
        away = aliased(Team)
        stmt = (
            select(FootballGame, home, away)
            .join(home, FootballGame.home_team_id == home.id)
            .join(away, FootballGame.away_team_id == away.id)
            .where(
                FootballGame.season_id == season_id,
                FootballGame.season_type != c.SEASON_TYPE_PRESEASON,
            )
            .order_by(FootballGame.week, FootballGame.start_time)
        )
        if week is not None:
            stmt = stmt.where(FootballGame.week == int(week))
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()

        result = []
        for game, home_team, away_team in rows:
            record = model_to_dict(game)
            for side, team in (("home", home_team), ("away", away_team)):
                record[f"{side}_team_code"] = team.team_code
                record[f"{side}_team_name"] = team.team_name
                record[f"{side}_team_city"] = team.team_city
            result.append(record)
        return result

    async def get_season_game_count(self, season_id: str) -> int:
        return await self._count(FootballGame, FootballGame.season_id == season_id)

    async def get_all_seasons_with_counts(self) -> List[Dict[str, Any]]:
        stmt = (
            select(Season, func.count(FootballGame.id))
            .outerjoin(FootballGame, FootballGame.season_id == Season.id)
            .group_by(Season.id)
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        seasons = [{**model_to_dict(season), "game_count": count} for season, count in rows]
        return sorted(seasons, key=season_sort_key, reverse=True)

    async def get_season_count(self) -> int:
        return await self._count(Season)
