"""
Pick service for the SQLite backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.orm import aliased

from pickem.database.models import FootballGame, GameParticipant, Pick, Team, User, model_to_dict
from pickem.errors import AccessDeniedError, NotFoundError
from pickem.models.schemas import PickCreate
from pickem.services.interfaces import (
    PickService,
    pick_percentage,
    pick_stats,
    sort_summary,
    to_model,
)
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils import constants as c
from pickem.utils.datetime_utils import utcnow_iso

logger = logging.getLogger(__name__)


class SQLitePickService(SQLiteServiceBase, PickService):

    async def get_user_picks(
        self,
        user_id: str,
        game_id: Optional[str] = None,
        season_id: Optional[str] = None,
        week: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        pick_team = aliased(Team)
        home = aliased(Team)
        away = aliased(Team)
        stmt = (
            select(
                Pick,
                pick_team.team_code,
                home.team_code,
                away.team_code,
                FootballGame.start_time,
                FootballGame.status,
            )
            .join(FootballGame, Pick.football_game_id == FootballGame.id)
            .outerjoin(pick_team, Pick.pick_team_id == pick_team.id)
            .outerjoin(home, FootballGame.home_team_id == home.id)
            .outerjoin(away, FootballGame.away_team_id == away.id)
            .where(Pick.user_id == user_id)
            .order_by(Pick.week, FootballGame.start_time)
        )
        if game_id:
            stmt = stmt.where(Pick.game_id == game_id)
        if season_id:
            stmt = stmt.where(Pick.season_id == season_id)
        if week is not None:
            stmt = stmt.where(Pick.week == int(week))

        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        return [
            {
                **model_to_dict(pick),
                "pick_team_code": pick_code,
                "home_team_code": home_code,
                "away_team_code": away_code,
                "start_time": start_time,
                "game_status": status,
            }
            for pick, pick_code, home_code, away_code, start_time, status in rows
        ]

    async def get_pick_by_id(self, pick_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.PICKS, {"id": pick_id})

    async def get_existing_pick(
        self, user_id: str, game_id: str, football_game_id: str
    ) -> Optional[Dict[str, Any]]:
        picks = await self.provider.query(
            c.PICKS, {"user_id": user_id, "game_id": game_id, "football_game_id": football_game_id}
        )
        return picks[0] if picks else None

    async def create_or_update_pick(self, pick_data) -> Dict[str, Any]:
        data = to_model(PickCreate, pick_data)
        football_game = await self.provider.get(c.FOOTBALL_GAMES, {"id": data.football_game_id})
        if not football_game:
            raise NotFoundError("Football game not found")

        fields = {
            "pick_team_id": data.pick_team_id,
            "tiebreaker": data.tiebreaker,
            "season_id": football_game["season_id"],
            "week": football_game["week"],
        }
        existing = await self.get_existing_pick(data.user_id, data.game_id, data.football_game_id)
        if existing:
            if existing["pick_team_id"] != data.pick_team_id:
                fields["is_correct"] = None
            return await self.provider.update(c.PICKS, {"id": existing["id"]}, fields)

        return await self.provider.put(
            c.PICKS,
            {
                "id": str(uuid.uuid4()),
                "user_id": data.user_id,
                "game_id": data.game_id,
                "football_game_id": data.football_game_id,
                **fields,
            },
        )

    async def delete_pick(self, pick_id: str, user_id: str) -> None:
        pick = await self.get_pick_by_id(pick_id)
        if not pick:
            raise NotFoundError("Pick not found")
        if pick["user_id"] != user_id:
            raise AccessDeniedError("Access denied")
        await self.provider.delete(c.PICKS, {"id": pick_id})

    async def has_picked_team_in_survivor(
        self, user_id: str, game_id: str, team_id: str, season_id: str
    ) -> bool:
        count = await self._count(
            Pick,
            Pick.user_id == user_id,
            Pick.game_id == game_id,
            Pick.pick_team_id == team_id,
            Pick.season_id == season_id,
        )
        return count > 0

    async def update_pick_correctness(self, pick_id: str, is_correct: Optional[bool]) -> None:
        if await self.provider.update(c.PICKS, {"id": pick_id}, {"is_correct": is_correct}) is None:
            raise NotFoundError("Pick not found")

    async def bulk_update_pick_correctness(self, updates: List[Dict[str, Any]]) -> int:
        applied = 0
        now = utcnow_iso()
        async with self.session() as session:
            async with session.begin():
                for item in updates:
                    result = await session.execute(
                        update(Pick)
                        .where(Pick.id == item["pick_id"])
                        .values(is_correct=item["is_correct"], updated_at=now)
                    )
                    applied += result.rowcount
        return applied

    async def update_picks_for_game(
        self, football_game_id: str, winning_team_id: Optional[str]
    ) -> Dict[str, int]:
        if winning_team_id is None:
            is_correct = False
        else:
            is_correct = case((Pick.pick_team_id == winning_team_id, True), else_=False)
        async with self.session() as session:
            async with session.begin():
                result = await session.execute(
                    update(Pick)
                    .where(Pick.football_game_id == football_game_id)
                    .values(is_correct=is_correct, updated_at=utcnow_iso())
                )
        return {"updated_count": result.rowcount}

    async def get_picks_stats_by_season(self, season_id: str, week: Optional[int] = None) -> Dict[str, Any]:
        stmt = select(Pick).where(Pick.season_id == season_id)
        if week is not None:
            stmt = stmt.where(Pick.week == int(week))
        return pick_stats(await self._all(stmt))

    async def get_game_picks_summary(
        self, game_id: str, season_id: Optional[str] = None, week: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        join_on = [Pick.user_id == GameParticipant.user_id, Pick.game_id == game_id]
        if season_id:
            join_on.append(Pick.season_id == season_id)
        if week is not None:
            join_on.append(Pick.week == int(week))

        stmt = (
            select(
                GameParticipant.user_id,
                User.first_name,
                User.last_name,
                func.count(Pick.id),
                func.coalesce(func.sum(case((Pick.is_correct.is_(True), 1), else_=0)), 0),
            )
            .outerjoin(User, GameParticipant.user_id == User.id)
            .outerjoin(Pick, and_(*join_on))
            .where(GameParticipant.game_id == game_id)
            .group_by(GameParticipant.user_id, User.first_name, User.last_name)
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()

        return sort_summary(
            [
                {
                    "user_id": user_id,
                    "first_name": first_name,
                    "last_name": last_name,
                    "total_picks": total,
                    "correct_picks": correct,
                    "pick_percentage": pick_percentage(correct, total),
                }
                for user_id, first_name, last_name, total, correct in rows
            ]
        )

    async def _delete(self, *where) -> int:
        async with self.session() as session:
            async with session.begin():
                result = await session.execute(delete(Pick).where(*where))
        return result.rowcount

    async def delete_picks_for_game(self, game_id: str) -> int:
        return await self._delete(Pick.game_id == game_id)

    async def delete_picks_for_user_in_game(self, user_id: str, game_id: str) -> int:
        return await self._delete(Pick.user_id == user_id, Pick.game_id == game_id)

    async def delete_picks_for_user(self, user_id: str) -> int:
        return await self._delete(Pick.user_id == user_id)
