"""
Teams and scheduled games for the DynamoDB backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pickem.errors import ConflictError, NotFoundError
from pickem.models.schemas import FootballGameCreate, TeamUpsert
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.dynamodb.season_service import DynamoDBSeasonService
from pickem.services.interfaces import (
    FOOTBALL_GAME_KEY,
    NFLDataService,
    new_team_record,
    team_fills,
    to_model,
)
from pickem.utils import constants as c
from pickem.utils.datetime_utils import utcnow_iso

logger = logging.getLogger(__name__)

FOOTBALL_GAME_INDEXES = ["season_id_week-index", "season_id-index"]


def _sort_games(games: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(games, key=lambda g: (g["week"], g.get("start_time") or ""))


class DynamoDBNFLDataService(DynamoDBServiceBase, NFLDataService):

    def __init__(self, provider, season_service: Optional[DynamoDBSeasonService] = None):
        super().__init__(provider)
        self.season_service = season_service or DynamoDBSeasonService(provider)

    async def get_all_teams(self) -> List[Dict[str, Any]]:
        teams = await self.provider.scan(c.TEAMS)
        return sorted(teams, key=lambda t: t["team_code"])

    async def get_team_by_id(self, team_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.TEAMS, {"id": team_id})

    async def get_team_by_code(self, team_code: str) -> Optional[Dict[str, Any]]:
        if not team_code:
            return None
        return await self._lookup_one(c.TEAMS, {"team_code": team_code.strip().upper()}, ["team_code-index"])

    async def create_or_update_team(self, team_data) -> Dict[str, Any]:
        data = to_model(TeamUpsert, team_data).model_dump()
        existing = await self.get_team_by_code(data["team_code"])
        if existing:
            fills = team_fills(existing, data)
            if not fills:
                return existing
            return await self.provider.update(c.TEAMS, {"id": existing["id"]}, fills)

        team = await self.provider.put(c.TEAMS, {"id": str(uuid.uuid4()), **new_team_record(data)})
        logger.info(f"Created team {team['team_code']}")
        return team

    async def get_team_count(self) -> int:
        return await self._count(c.TEAMS)

    async def find_football_game(
        self, season_id: str, week: int, home_team_id: str, away_team_id: str
    ) -> Optional[Dict[str, Any]]:
        criteria = {
            "season_id": season_id,
            "week": int(week),
            "home_team_id": home_team_id,
            "away_team_id": away_team_id,
        }
        return await self._lookup_one(
            c.FOOTBALL_GAMES, criteria, FOOTBALL_GAME_INDEXES
        )

    async def create_football_game(self, game_data) -> Dict[str, Any]:
        data = to_model(FootballGameCreate, game_data).model_dump()
        if await self.find_football_game(
            data["season_id"], data["week"], data["home_team_id"], data["away_team_id"]
        ):
            raise ConflictError("Football game already exists")
        game = await self.provider.put(c.FOOTBALL_GAMES, {"id": str(uuid.uuid4()), **data})
        await self._guard_duplicate(
            c.FOOTBALL_GAMES,
            game,
            {k: data[k] for k in FOOTBALL_GAME_KEY},
            FOOTBALL_GAME_INDEXES,
            "Football game already exists",
        )
        return game

    async def update_football_game(self, game_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        fields = await self._checked_football_game_update(game_id, updates)
        game = await self.provider.update(c.FOOTBALL_GAMES, {"id": game_id}, fields)
        if game is None:
            raise NotFoundError("Football game not found")
        return game

    async def update_game_score(
        self, game_id: str, home_score: int, away_score: int, status: Optional[str] = None
    ) -> Dict[str, Any]:
        fields = {
            "home_score": home_score,
            "away_score": away_score,
            "scores_updated_at": utcnow_iso(),
        }
        if status is not None:
            fields["status"] = status
        return await self.update_football_game(game_id, fields)

    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        return await self.season_service.get_current_season()

    async def get_games_by_season_and_week(self, season_id: str, week: int) -> List[Dict[str, Any]]:
        games = await self._lookup(
            c.FOOTBALL_GAMES,
            {"season_id": season_id, "week": int(week)},
            FOOTBALL_GAME_INDEXES,
        )
        return _sort_games(games)

    async def get_games_by_season(self, season_id: str) -> List[Dict[str, Any]]:
        games = await self._lookup(c.FOOTBALL_GAMES, {"season_id": season_id}, ["season_id-index"])
        return _sort_games(games)

    async def get_football_game_by_id(self, game_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.FOOTBALL_GAMES, {"id": game_id})
