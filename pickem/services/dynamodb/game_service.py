"""
Pick'em games and participants for the DynamoDB backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pickem.errors import AccessDeniedError, ConflictError, NotFoundError
from pickem.models.schemas import ParticipantCreate, PickemGameCreate, normalize_game_type
from pickem.services.cascade import CascadeDelete
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import (
    GameService,
    display_name,
    sort_participants,
    to_model,
)
from pickem.utils import constants as c
from pickem.utils.slugify import slugify

logger = logging.getLogger(__name__)

PARTICIPANT_INDEXES = ["game_id-user_id-index", "game_id-index"]


class DynamoDBGameService(DynamoDBServiceBase, GameService):

    async def _require_game(self, game_id: str) -> Dict[str, Any]:
        game = await self.provider.get(c.PICKEM_GAMES, {"id": game_id})
        if not game:
            raise NotFoundError("Game not found")
        return game

    async def _participants(self, game_id: str) -> List[Dict[str, Any]]:
        return await self._lookup(c.PARTICIPANTS, {"game_id": game_id}, ["game_id-index"])

    async def _with_counts(self, game: Dict[str, Any]) -> Dict[str, Any]:
        participants = await self._participants(game["id"])
        return {
            **game,
            "player_count": len(participants),
            "owner_count": sum(1 for p in participants if p["role"] == c.ROLE_OWNER),
        }

    async def _with_participants(self, game: Dict[str, Any]) -> Dict[str, Any]:
        participants = await self.get_game_participants(game["id"])
        return {
            **game,
            "participants": participants,
            "player_count": len(participants),
            "owner_count": sum(1 for p in participants if p["role"] == c.ROLE_OWNER),
        }

    async def get_user_games(self, user_id: str) -> List[Dict[str, Any]]:
        memberships = await self._lookup(c.PARTICIPANTS, {"user_id": user_id}, ["user_id-index"])
        games = []
        for membership in memberships:
            game = await self.provider.get(c.PICKEM_GAMES, {"id": membership["game_id"]})
            if game:
                games.append({**(await self._with_counts(game)), "user_role": membership["role"]})
        return sorted(games, key=lambda g: g.get("created_at") or "", reverse=True)

    async def get_game_by_id(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        if not await self.get_participant(game_id, user_id):
            raise AccessDeniedError("Access denied")
        game = await self.provider.get(c.PICKEM_GAMES, {"id": game_id})
        if not game:
            return None
        return await self._with_participants(game)

    async def get_game_by_slug(self, slug: str, user_id: str) -> Optional[Dict[str, Any]]:
        games = await self.provider.scan(c.PICKEM_GAMES)
        game = next((g for g in games if slugify(g["game_name"]) == slug), None)
        if not game:
            return None
        if game.get("commissioner_id") != user_id and not await self.get_participant(game["id"], user_id):
            raise AccessDeniedError("Access denied")
        commissioner = None
        if game.get("commissioner_id"):
            commissioner = await self.provider.get(c.USERS, {"id": game["commissioner_id"]})
        result = await self._with_participants(game)
        result["commissioner_name"] = display_name(commissioner) if commissioner else None
        return result

    async def get_game_by_id_for_admin(self, game_id: str) -> Optional[Dict[str, Any]]:
        game = await self.provider.get(c.PICKEM_GAMES, {"id": game_id})
        if not game:
            return None
        return await self._with_participants(game)

    async def create_game(self, game_data) -> Dict[str, Any]:
        data = to_model(PickemGameCreate, game_data)
        game = await self.provider.put(
            c.PICKEM_GAMES,
            {
                "id": str(uuid.uuid4()),
                "game_name": data.game_name.strip(),
                "type": data.game_type,
                "commissioner_id": data.commissioner_id,
                "season_id": data.season_id,
                "is_active": True,
            },
        )
        await self.add_participant(game["id"], data.commissioner_id, c.ROLE_OWNER)
        logger.info(f"Created game {game['id']} ({game['game_name']})")
        return await self._with_counts(game)

    async def update_game(self, game_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        allowed = {"game_name", "type", "season_id", "is_active", "commissioner_id"}
        fields = {k: v for k, v in updates.items() if k in allowed}
        if "type" in fields:
            fields["type"] = normalize_game_type(fields["type"])
        await self._require_game(game_id)
        if not fields:
            return await self.provider.get(c.PICKEM_GAMES, {"id": game_id})
        return await self.provider.update(c.PICKEM_GAMES, {"id": game_id}, fields)

    async def delete_game(self, game_id: str) -> Dict[str, int]:
        async def delete_game_record() -> int:
            if not await self.provider.get(c.PICKEM_GAMES, {"id": game_id}):
                return 0
            await self.provider.delete(c.PICKEM_GAMES, {"id": game_id})
            return 1

        cascade = (
            CascadeDelete(f"game {game_id}")
            .step("picks", lambda: self._delete_where(c.PICKS, {"game_id": game_id}, ["game_id-index"]))
            .step(
                "invitations",
                lambda: self._delete_where(c.INVITATIONS, {"game_id": game_id}, ["game_id-index"]),
            )
            .step(
                "participants",
                lambda: self._delete_where(c.PARTICIPANTS, {"game_id": game_id}, ["game_id-index"]),
            )
            .step(
                "weekly_standings",
                lambda: self._delete_where(c.WEEKLY_STANDINGS, {"game_id": game_id}, ["game_id-index"]),
            )
            .step("game", delete_game_record)
        )
        return await cascade.run()

    async def add_participant(self, game_id: str, user_id: str, role: str = c.ROLE_PLAYER) -> Dict[str, Any]:
        data = to_model(ParticipantCreate, {"user_id": user_id, "role": role})
        await self._require_game(game_id)
        if await self.get_participant(game_id, user_id):
            raise ConflictError("User is already in this game")
        participant = await self.provider.put(
            c.PARTICIPANTS,
            {"id": str(uuid.uuid4()), "game_id": game_id, "user_id": data.user_id, "role": data.role},
        )
        await self._guard_duplicate(
            c.PARTICIPANTS,
            participant,
            {"game_id": game_id, "user_id": user_id},
            PARTICIPANT_INDEXES,
            "User is already in this game",
        )
        return participant

    async def remove_participant(self, game_id: str, user_id: str) -> None:
        participant = await self.get_participant(game_id, user_id)
        if not participant:
            raise NotFoundError("User is not in this game")
        if participant["role"] == c.ROLE_OWNER:
            raise AccessDeniedError("Cannot remove game owner")
        await self._delete_where(
            c.PICKS,
            {"user_id": user_id, "game_id": game_id},
            ["user_id_game_id-index", "user_id-index"],
        )
        await self.provider.delete(c.PARTICIPANTS, {"id": participant["id"]})

    async def get_participant(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        if not game_id or not user_id:
            return None
        return await self._lookup_one(
            c.PARTICIPANTS, {"game_id": game_id, "user_id": user_id}, PARTICIPANT_INDEXES
        )

    async def get_game_participants(self, game_id: str) -> List[Dict[str, Any]]:
        participants = []
        for participant in await self._participants(game_id):
            user = await self.provider.get(c.USERS, {"id": participant["user_id"]}) or {}
            participants.append(
                {
                    **participant,
                    "first_name": user.get("first_name"),
                    "last_name": user.get("last_name"),
                    "email": user.get("email"),
                    "display_name": display_name(user),
                }
            )
        return sort_participants(participants)

    async def get_game_count(self) -> int:
        return await self._count(c.PICKEM_GAMES)

    async def get_all_games(self) -> List[Dict[str, Any]]:
        games = await self.provider.scan(c.PICKEM_GAMES)
        return sorted(games, key=lambda g: g.get("created_at") or "", reverse=True)

    async def get_all_games_with_details(self) -> List[Dict[str, Any]]:
        users = {u["id"]: u for u in await self.provider.scan(c.USERS)}
        seasons = {s["id"]: s for s in await self.provider.scan(c.SEASONS)}
        participants = await self.provider.scan(c.PARTICIPANTS)
        counts: Dict[str, int] = {}
        for participant in participants:
            counts[participant["game_id"]] = counts.get(participant["game_id"], 0) + 1

        result = []
        for game in await self.get_all_games():
            commissioner = users.get(game.get("commissioner_id"))
            season = seasons.get(game.get("season_id"), {})
            result.append(
                {
                    **game,
                    "commissioner_name": display_name(commissioner) if commissioner else None,
                    "commissioner_email": commissioner.get("email") if commissioner else None,
                    "season_year": season.get("season"),
                    "participant_count": counts.get(game["id"], 0),
                }
            )
        return result

    async def update_game_season(self, game_id: str, season_id: str) -> Dict[str, Any]:
        await self._require_game(game_id)
        return await self.provider.update(c.PICKEM_GAMES, {"id": game_id}, {"season_id": season_id})

    async def update_game_status(self, game_id: str, is_active: bool) -> Dict[str, Any]:
        await self._require_game(game_id)
        return await self.provider.update(c.PICKEM_GAMES, {"id": game_id}, {"is_active": bool(is_active)})

    async def assign_commissioner_to_orphaned_games(self, user_id: str) -> int:
        orphaned = [g for g in await self.provider.scan(c.PICKEM_GAMES) if not g.get("commissioner_id")]
        for game in orphaned:
            await self.provider.update(c.PICKEM_GAMES, {"id": game["id"]}, {"commissioner_id": user_id})
        if orphaned:
            logger.info(f"Assigned {len(orphaned)} games without a commissioner to {user_id}")
        return len(orphaned)

    async def get_game_count_by_season(self, season_id: str) -> int:
        return len(await self._lookup(c.PICKEM_GAMES, {"season_id": season_id}, ["season_id-index"]))
