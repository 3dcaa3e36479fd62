"""
Weekly standings for the DynamoDB backend.
"""

import uuid
from typing import Any, Dict, List

from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import StandingsService, pick_percentage, rank_standings
from pickem.utils import constants as c

WEEK_INDEXES = ["game_season_week-index", "game_id-index"]


class DynamoDBStandingsService(DynamoDBServiceBase, StandingsService):

    async def recalculate_week(self, game_id: str, season_id: str, week: int) -> List[Dict[str, Any]]:
        week = int(week)
        participants = await self._lookup(c.PARTICIPANTS, {"game_id": game_id}, ["game_id-index"])
        picks = await self._lookup(
            c.PICKS, {"game_id": game_id, "season_id": season_id, "week": week}, ["game_id-index"]
        )
        existing = {
            row["user_id"]: row
            for row in await self._lookup(
                c.WEEKLY_STANDINGS, {"game_id": game_id, "season_id": season_id, "week": week}, WEEK_INDEXES
            )
        }

        rows = []
        for participant in participants:
            mine = [p for p in picks if p["user_id"] == participant["user_id"]]
            correct = sum(1 for p in mine if p.get("is_correct") is True)
            rows.append(
                {
                    "user_id": participant["user_id"],
                    "game_id": game_id,
                    "season_id": season_id,
                    "week": week,
                    "correct_picks": correct,
                    "total_picks": len(mine),
                    "pick_percentage": pick_percentage(correct, len(mine)),
                }
            )

        stored = []
        for row in rank_standings(rows):
            previous = existing.get(row["user_id"])
            if previous:
                row["id"] = previous["id"]
                row["created_at"] = previous.get("created_at")
            else:
                row["id"] = str(uuid.uuid4())
            stored.append(await self.provider.put(c.WEEKLY_STANDINGS, row))

        # Rows for users who have left the game
        ranked = {row["user_id"] for row in rows}
        await self._delete_all(
            c.WEEKLY_STANDINGS, [row for user_id, row in existing.items() if user_id not in ranked]
        )
        return stored

    async def get_weekly_standings(self, game_id: str, season_id: str, week: int) -> List[Dict[str, Any]]:
        rows = await self._lookup(
            c.WEEKLY_STANDINGS, {"game_id": game_id, "season_id": season_id, "week": int(week)}, WEEK_INDEXES
        )
        return sorted(rows, key=lambda r: (r.get("weekly_rank") or 0, r["user_id"]))

    async def delete_standings_for_game(self, game_id: str) -> int:
        return await self._delete_where(c.WEEKLY_STANDINGS, {"game_id": game_id}, ["game_id-index"])

    async def delete_standings_for_user(self, user_id: str) -> int:
        return await self._delete_where(c.WEEKLY_STANDINGS, {"user_id": user_id}, ["user_id-index"])
