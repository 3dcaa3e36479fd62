"""
Pick service for the DynamoDB backend.

Upserts are keyed by the user_game_football composite. When that index is
missing the lookup narrows through user_id-index and filters in memory.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pickem.errors import AccessDeniedError, NotFoundError
from pickem.models.schemas import PickCreate
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import (
    PickService,
    pick_percentage,
    pick_stats,
    sort_summary,
    to_model,
)
from pickem.utils import constants as c

logger = logging.getLogger(__name__)

EXISTING_PICK_INDEXES = ["user_game_football-index", "user_id_game_id-index", "user_id-index"]


class DynamoDBPickService(DynamoDBServiceBase, PickService):

    async def _user_picks(
        self,
        user_id: str,
        game_id: Optional[str] = None,
        season_id: Optional[str] = None,
        week: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        criteria: Dict[str, Any] = {"user_id": user_id}
        indexes = ["user_id-index"]
        if game_id:
            criteria["game_id"] = game_id
            indexes.insert(0, "user_id_game_id-index")
        if season_id:
            criteria["season_id"] = season_id
            if not game_id:
                indexes.insert(0, "user_id_season_id-index")
        if week is not None:
            criteria["week"] = int(week)
        return await self._lookup(c.PICKS, criteria, indexes)

    async def _picks_for_season(self, season_id: str, week: Optional[int] = None) -> List[Dict[str, Any]]:
        if week is None:
            return await self._lookup(c.PICKS, {"season_id": season_id}, ["season_id-index"])
        return await self._lookup(
            c.PICKS,
            {"season_id": season_id, "week": int(week)},
            ["season_id_week-index", "season_id-index"],
        )

    async def get_user_picks(
        self,
        user_id: str,
        game_id: Optional[str] = None,
        season_id: Optional[str] = None,
        week: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        picks = await self._user_picks(user_id, game_id, season_id, week)
        teams: Dict[str, Dict[str, Any]] = {}
        football_games: Dict[str, Dict[str, Any]] = {}

        async def team(team_id):
            if team_id and team_id not in teams:
                teams[team_id] = await self.provider.get(c.TEAMS, {"id": team_id}) or {}
            return teams.get(team_id, {})

        result = []
        for pick in picks:
            fg_id = pick["football_game_id"]
            if fg_id not in football_games:
                football_games[fg_id] = await self.provider.get(c.FOOTBALL_GAMES, {"id": fg_id}) or {}
            football_game = football_games[fg_id]
            result.append(
                {
                    **pick,
                    "pick_team_code": (await team(pick["pick_team_id"])).get("team_code"),
                    "home_team_code": (await team(football_game.get("home_team_id"))).get("team_code"),
                    "away_team_code": (await team(football_game.get("away_team_id"))).get("team_code"),
                    "start_time": football_game.get("start_time"),
                    "game_status": football_game.get("status"),
                }
            )
        return sorted(result, key=lambda p: (p["week"], p.get("start_time") or ""))

    async def get_pick_by_id(self, pick_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.PICKS, {"id": pick_id})

    async def get_existing_pick(
        self, user_id: str, game_id: str, football_game_id: str
    ) -> Optional[Dict[str, Any]]:
        criteria = {"user_id": user_id, "game_id": game_id, "football_game_id": football_game_id}
        return await self._lookup_one(c.PICKS, criteria, EXISTING_PICK_INDEXES)

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
            return await self._repick(existing, fields)

        criteria = {"user_id": data.user_id, "game_id": data.game_id, "football_game_id": data.football_game_id}
        pick = await self.provider.put(c.PICKS, {"id": str(uuid.uuid4()), **criteria, **fields})
        winner = await self._duplicate_winner(c.PICKS, pick, criteria, EXISTING_PICK_INDEXES)
        if winner["id"] == pick["id"]:
            return pick
        # A concurrent insert got there first; fold this pick into it
        logger.warning(f"Merging duplicate pick {pick['id']} into {winner['id']}")
        await self.provider.delete(c.PICKS, {"id": pick["id"]})
        return await self._repick(winner, fields)

    async def _repick(self, existing: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        if existing["pick_team_id"] != fields["pick_team_id"]:
            fields = {**fields, "is_correct": None}
        return await self.provider.update(c.PICKS, {"id": existing["id"]}, fields)

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
        picks = await self._user_picks(user_id, game_id=game_id, season_id=season_id)
        return any(p["pick_team_id"] == team_id for p in picks)

    async def update_pick_correctness(self, pick_id: str, is_correct: Optional[bool]) -> None:
        if await self.provider.update(c.PICKS, {"id": pick_id}, {"is_correct": is_correct}) is None:
            raise NotFoundError("Pick not found")

    async def bulk_update_pick_correctness(self, updates: List[Dict[str, Any]]) -> int:
        applied = 0
        for item in updates:
            if await self.provider.update(c.PICKS, {"id": item["pick_id"]}, {"is_correct": item["is_correct"]}):
                applied += 1
        return applied

    async def update_picks_for_game(
        self, football_game_id: str, winning_team_id: Optional[str]
    ) -> Dict[str, int]:
        picks = await self._lookup(
            c.PICKS, {"football_game_id": football_game_id}, ["football_game_id-index"]
        )
        for pick in picks:
            is_correct = winning_team_id is not None and pick["pick_team_id"] == winning_team_id
            await self.provider.update(c.PICKS, {"id": pick["id"]}, {"is_correct": is_correct})
        return {"updated_count": len(picks)}

    async def get_picks_stats_by_season(self, season_id: str, week: Optional[int] = None) -> Dict[str, Any]:
        return pick_stats(await self._picks_for_season(season_id, week))

    async def get_game_picks_summary(
        self, game_id: str, season_id: Optional[str] = None, week: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        participants = await self._lookup(c.PARTICIPANTS, {"game_id": game_id}, ["game_id-index"])
        picks = await self._lookup(c.PICKS, {"game_id": game_id}, ["game_id-index"])
        if season_id:
            picks = [p for p in picks if p.get("season_id") == season_id]
        if week is not None:
            picks = [p for p in picks if p.get("week") == int(week)]

        rows = []
        for participant in participants:
            user = await self.provider.get(c.USERS, {"id": participant["user_id"]}) or {}
            mine = [p for p in picks if p["user_id"] == participant["user_id"]]
            correct = sum(1 for p in mine if p.get("is_correct") is True)
            rows.append(
                {
                    "user_id": participant["user_id"],
                    "first_name": user.get("first_name"),
                    "last_name": user.get("last_name"),
                    "total_picks": len(mine),
                    "correct_picks": correct,
                    "pick_percentage": pick_percentage(correct, len(mine)),
                }
            )
        return sort_summary(rows)

    async def delete_picks_for_game(self, game_id: str) -> int:
        return await self._delete_where(c.PICKS, {"game_id": game_id}, ["game_id-index"])

    async def delete_picks_for_user_in_game(self, user_id: str, game_id: str) -> int:
        return await self._delete_where(
            c.PICKS, {"user_id": user_id, "game_id": game_id}, ["user_id_game_id-index", "user_id-index"]
        )

    async def delete_picks_for_user(self, user_id: str) -> int:
        return await self._delete_where(c.PICKS, {"user_id": user_id}, ["user_id-index"])
