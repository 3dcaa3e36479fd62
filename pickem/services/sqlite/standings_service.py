"""
Weekly standings for the SQLite backend.
"""

import uuid
from typing import Any, Dict, List

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from pickem.database.models import GameParticipant, Pick, WeeklyStanding
from pickem.services.interfaces import StandingsService, pick_percentage, rank_standings
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils.datetime_utils import utcnow_iso


class SQLiteStandingsService(SQLiteServiceBase, StandingsService):

    async def recalculate_week(self, game_id: str, season_id: str, week: int) -> List[Dict[str, Any]]:
        week = int(week)
        totals = (
            select(
                GameParticipant.user_id,
                func.count(Pick.id),
                func.coalesce(func.sum(case((Pick.is_correct.is_(True), 1), else_=0)), 0),
            )
            .outerjoin(
                Pick,
                and_(
                    Pick.user_id == GameParticipant.user_id,
                    Pick.game_id == game_id,
                    Pick.season_id == season_id,
                    Pick.week == week,
                ),
            )
            .where(GameParticipant.game_id == game_id)
            .group_by(GameParticipant.user_id)
        )

        now = utcnow_iso()
        async with self.session() as session:
            async with session.begin():
                rows = [
                    {
                        "user_id": user_id,
                        "game_id": game_id,
                        "season_id": season_id,
                        "week": week,
                        "correct_picks": correct,
                        "total_picks": total,
                        "pick_percentage": pick_percentage(correct, total),
                    }
                    for user_id, total, correct in (await session.execute(totals)).all()
                ]
                for row in rank_standings(rows):
                    changes = {
                        "correct_picks": row["correct_picks"],
                        "total_picks": row["total_picks"],
                        "pick_percentage": row["pick_percentage"],
                        "weekly_rank": row["weekly_rank"],
                        "updated_at": now,
                    }
                    await session.execute(
                        sqlite_insert(WeeklyStanding)
                        .values(id=str(uuid.uuid4()), created_at=now, **row, updated_at=now)
                        .on_conflict_do_update(
                            index_elements=["user_id", "game_id", "season_id", "week"], set_=changes
                        )
                    )
                # Rows for users who have left the game
                await session.execute(
                    delete(WeeklyStanding).where(
                        WeeklyStanding.game_id == game_id,
                        WeeklyStanding.season_id == season_id,
                        WeeklyStanding.week == week,
                        WeeklyStanding.user_id.not_in([row["user_id"] for row in rows]),
                    )
                )
        return await self.get_weekly_standings(game_id, season_id, week)

    async def get_weekly_standings(self, game_id: str, season_id: str, week: int) -> List[Dict[str, Any]]:
        return await self._all(
            select(WeeklyStanding)
            .where(
                WeeklyStanding.game_id == game_id,
                WeeklyStanding.season_id == season_id,
                WeeklyStanding.week == int(week),
            )
            .order_by(WeeklyStanding.weekly_rank, WeeklyStanding.user_id)
        )

    async def _delete(self, where) -> int:
        async with self.session() as session:
            async with session.begin():
                result = await session.execute(delete(WeeklyStanding).where(where))
        return result.rowcount

    async def delete_standings_for_game(self, game_id: str) -> int:
        return await self._delete(WeeklyStanding.game_id == game_id)

    async def delete_standings_for_user(self, user_id: str) -> int:
        return await self._delete(WeeklyStanding.user_id == user_id)
