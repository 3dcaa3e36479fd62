"""
Pick'em games and participants for the SQLite backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import case, delete, func, select, update

from pickem.database.models import (
    GameInvitation,
    GameParticipant,
    Pick,
    PickemGame,
    Season,
    User,
    WeeklyStanding,
    model_to_dict,
)
from pickem.errors import AccessDeniedError, ConflictError, NotFoundError
from pickem.models.schemas import ParticipantCreate, PickemGameCreate, normalize_game_type
from pickem.services.interfaces import GameService, display_name, sort_participants, to_model
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils import constants as c
from pickem.utils.datetime_utils import utcnow_iso
from pickem.utils.slugify import slugify

logger = logging.getLogger(__name__)


def _counts_subquery():
    return (
        select(
            GameParticipant.game_id.label("game_id"),
            func.count(GameParticipant.id).label("player_count"),
            func.sum(case((GameParticipant.role == c.ROLE_OWNER, 1), else_=0)).label("owner_count"),
        )
        .group_by(GameParticipant.game_id)
        .subquery()
    )


class SQLiteGameService(SQLiteServiceBase, GameService):

    async def _require_game(self, game_id: str) -> Dict[str, Any]:
        game = await self.provider.get(c.PICKEM_GAMES, {"id": game_id})
        if not game:
            raise NotFoundError("Game not found")
        return game

    async def _with_participants(self, game: Dict[str, Any]) -> Dict[str, Any]:
        participants = await self.get_game_participants(game["id"])
        return {
            **game,
            "participants": participants,
            "player_count": len(participants),
            "owner_count": sum(1 for p in participants if p["role"] == c.ROLE_OWNER),
        }

    async def get_user_games(self, user_id: str) -> List[Dict[str, Any]]:
        counts = _counts_subquery()
        stmt = (
            select(PickemGame, GameParticipant.role, counts.c.player_count, counts.c.owner_count)
            .join(GameParticipant, GameParticipant.game_id == PickemGame.id)
            .outerjoin(counts, counts.c.game_id == PickemGame.id)
            .where(GameParticipant.user_id == user_id)
            .order_by(PickemGame.created_at.desc())
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        return [
            {
                **model_to_dict(game),
                "user_role": role,
                "player_count": player_count or 0,
                "owner_count": owner_count or 0,
            }
            for game, role, player_count, owner_count in rows
        ]

    async def get_game_by_id(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        if not await self.get_participant(game_id, user_id):
            raise AccessDeniedError("Access denied")
        game = await self.provider.get(c.PICKEM_GAMES, {"id": game_id})
        if not game:
            return None
        return await self._with_participants(game)

    async def get_game_by_slug(self, slug: str, user_id: str) -> Optional[Dict[str, Any]]:
        games = await self._all(select(PickemGame).order_by(PickemGame.created_at))
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
        return {**game, "player_count": 1, "owner_count": 1}

    async def update_game(self, game_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        allowed = {"game_name", "type", "season_id", "is_active", "commissioner_id"}
        fields = {k: v for k, v in updates.items() if k in allowed}
        if "type" in fields:
            fields["type"] = normalize_game_type(fields["type"])
        game = await self._require_game(game_id)
        if not fields:
            return game
        return await self.provider.update(c.PICKEM_GAMES, {"id": game_id}, fields)

    async def delete_game(self, game_id: str) -> Dict[str, int]:
        steps = [
            ("picks", delete(Pick).where(Pick.game_id == game_id)),
            ("invitations", delete(GameInvitation).where(GameInvitation.game_id == game_id)),
            ("participants", delete(GameParticipant).where(GameParticipant.game_id == game_id)),
            ("weekly_standings", delete(WeeklyStanding).where(WeeklyStanding.game_id == game_id)),
            ("game", delete(PickemGame).where(PickemGame.id == game_id)),
        ]
        results: Dict[str, int] = {}
        async with self.session() as session:
            async with session.begin():
                for label, stmt in steps:
                    results[label] = (await session.execute(stmt)).rowcount
        logger.info(f"Deleted game {game_id}: {results}")
        return results

    async def add_participant(self, game_id: str, user_id: str, role: str = c.ROLE_PLAYER) -> Dict[str, Any]:
        data = to_model(ParticipantCreate, {"user_id": user_id, "role": role})
        await self._require_game(game_id)
        if await self.get_participant(game_id, user_id):
            raise ConflictError("User is already in this game")
        return await self.provider.put(
            c.PARTICIPANTS,
            {"id": str(uuid.uuid4()), "game_id": game_id, "user_id": data.user_id, "role": data.role},
        )

    async def remove_participant(self, game_id: str, user_id: str) -> None:
        participant = await self.get_participant(game_id, user_id)
        if not participant:
            raise NotFoundError("User is not in this game")
        if participant["role"] == c.ROLE_OWNER:
            raise AccessDeniedError("Cannot remove game owner")
        async with self.session() as session:
            async with session.begin():
                await session.execute(delete(Pick).where(Pick.user_id == user_id, Pick.game_id == game_id))
                await session.execute(delete(GameParticipant).where(GameParticipant.id == participant["id"]))

    async def get_participant(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        if not game_id or not user_id:
            return None
        rows = await self.provider.query(c.PARTICIPANTS, {"game_id": game_id, "user_id": user_id})
        return rows[0] if rows else None

    async def get_game_participants(self, game_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(GameParticipant, User.first_name, User.last_name, User.email)
            .outerjoin(User, GameParticipant.user_id == User.id)
            .where(GameParticipant.game_id == game_id)
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        participants = []
        for participant, first_name, last_name, email in rows:
            names = {"first_name": first_name, "last_name": last_name}
            participants.append(
                {
                    **model_to_dict(participant),
                    **names,
                    "email": email,
                    "display_name": display_name(names),
                }
            )
        return sort_participants(participants)

    async def get_game_count(self) -> int:
        return await self._count(PickemGame)

    async def get_all_games(self) -> List[Dict[str, Any]]:
        return await self._all(select(PickemGame).order_by(PickemGame.created_at.desc()))

    async def get_all_games_with_details(self) -> List[Dict[str, Any]]:
        counts = _counts_subquery()
        stmt = (
            select(PickemGame, User, Season.season, counts.c.player_count)
            .outerjoin(User, PickemGame.commissioner_id == User.id)
            .outerjoin(Season, PickemGame.season_id == Season.id)
            .outerjoin(counts, counts.c.game_id == PickemGame.id)
            .order_by(PickemGame.created_at.desc())
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        result = []
        for game, commissioner, season_year, player_count in rows:
            commissioner = model_to_dict(commissioner) if commissioner else None
            result.append(
                {
                    **model_to_dict(game),
                    "commissioner_name": display_name(commissioner) if commissioner else None,
                    "commissioner_email": commissioner["email"] if commissioner else None,
                    "season_year": season_year,
                    "participant_count": player_count or 0,
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
        async with self.session() as session:
            async with session.begin():
                result = await session.execute(
                    update(PickemGame)
                    .where(PickemGame.commissioner_id.is_(None))
                    .values(commissioner_id=user_id, updated_at=utcnow_iso())
                )
        if result.rowcount:
            logger.info(f"Assigned {result.rowcount} games without a commissioner to {user_id}")
        return result.rowcount

    async def get_game_count_by_season(self, season_id: str) -> int:
        return await self._count(PickemGame, PickemGame.season_id == season_id)
