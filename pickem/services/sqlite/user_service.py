"""
User service for the SQLite backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, or_, select, update

from pickem.database.models import (
    GameInvitation,
    GameParticipant,
    Pick,
    PickemGame,
    Team,
    User,
    WeeklyStanding,
    model_to_dict,
)
from pickem.errors import ConflictError, NotFoundError
from pickem.models.schemas import UserCreate, UserUpdate
from pickem.services.interfaces import UserService, public_user, to_model
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils import constants as c
from pickem.utils.datetime_utils import is_expired, utcnow_iso

logger = logging.getLogger(__name__)


class SQLiteUserService(SQLiteServiceBase, UserService):

    async def _update(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        user = await self.provider.update(c.USERS, {"id": user_id}, fields)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_all_users(self) -> List[Dict[str, Any]]:
        stmt = (
            select(User, Team.team_name, Team.team_city)
            .outerjoin(Team, User.favorite_team_id == Team.id)
            .order_by(User.created_at.desc())
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        result = []
        for user, team_name, team_city in rows:
            record = public_user(model_to_dict(user))
            record["favorite_team_name"] = team_name
            record["favorite_team_city"] = team_city
            result.append(record)
        return result

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.USERS, {"id": user_id})

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        users = await self.provider.query(c.USERS, {"email": email.strip().lower()})
        return users[0] if users else None

    async def user_exists(self, email: str) -> bool:
        return await self.get_user_by_email(email) is not None

    async def create_user(self, user_data) -> Dict[str, Any]:
        data = to_model(UserCreate, user_data)
        if await self.get_user_by_email(data.email):
            raise ConflictError("User with this email already exists")
        user = await self.provider.put(c.USERS, {"id": str(uuid.uuid4()), **data.model_dump()})
        logger.info(f"Created user {user['id']}")
        return user

    async def update_user(self, user_id: str, updates) -> Dict[str, Any]:
        data = to_model(UserUpdate, updates).model_dump(exclude_unset=True)
        if not await self.get_user_by_id(user_id):
            raise NotFoundError("User not found")
        if data.get("email"):
            existing = await self.get_user_by_email(data["email"])
            if existing and existing["id"] != user_id:
                raise ConflictError("Email is already in use")
        if not data:
            return await self.get_user_by_id(user_id)
        return await self._update(user_id, data)

    async def update_admin_status(self, user_id: str, is_admin: bool) -> Dict[str, Any]:
        return await self._update(user_id, {"is_admin": bool(is_admin)})

    async def update_email_verified(self, user_id: str, verified: bool) -> Dict[str, Any]:
        fields = {"email_verified": bool(verified)}
        if verified:
            fields["email_verification_token"] = None
        return await self._update(user_id, fields)

    async def update_last_login(self, user_id: str) -> None:
        await self._update(user_id, {"last_login": utcnow_iso()})

    async def get_user_games(self, user_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(PickemGame, GameParticipant.role)
            .join(GameParticipant, GameParticipant.game_id == PickemGame.id)
            .where(GameParticipant.user_id == user_id)
            .order_by(PickemGame.created_at.desc())
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()
        return [{**model_to_dict(game), "user_role": role} for game, role in rows]

    async def set_password_reset_token(self, user_id: str, token: str, expires_at: str) -> None:
        await self._update(user_id, {"password_reset_token": token, "password_reset_expires": expires_at})

    async def get_user_by_reset_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not token or not isinstance(token, str):
            return None
        for user in await self.provider.query(c.USERS, {"password_reset_token": token}):
            if not is_expired(user.get("password_reset_expires")):
                return user
        return None

    async def reset_password(self, user_id: str, password_hash: str) -> None:
        await self._update(
            user_id,
            {"password": password_hash, "password_reset_token": None, "password_reset_expires": None},
        )

    async def get_first_admin_user(self) -> Optional[Dict[str, Any]]:
        admins = await self._all(
            select(User).where(User.is_admin.is_(True)).order_by(User.created_at).limit(1)
        )
        return admins[0] if admins else None

    async def get_any_user(self) -> Optional[Dict[str, Any]]:
        users = await self._all(select(User).order_by(User.created_at).limit(1))
        return users[0] if users else None

    async def get_user_count(self) -> int:
        return await self._count(User)

    async def get_user_basic_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = await self.get_user_by_id(user_id)
        if not user:
            return None
        return {k: user.get(k) for k in ("id", "email", "first_name", "last_name")}

    async def delete_user(self, user_id: str, reassign_to: Optional[str] = None) -> Dict[str, Any]:
        user = await self.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        snapshot = public_user(user)

        # Same order as the key-value cascade, but in one transaction
        async with self.session() as session:
            async with session.begin():
                await session.execute(delete(Pick).where(Pick.user_id == user_id))
                await session.execute(delete(WeeklyStanding).where(WeeklyStanding.user_id == user_id))
                await session.execute(
                    delete(GameInvitation).where(
                        or_(
                            GameInvitation.invited_by_user_id == user_id,
                            GameInvitation.email == user["email"],
                        )
                    )
                )
                await session.execute(delete(GameParticipant).where(GameParticipant.user_id == user_id))
                await session.execute(
                    update(PickemGame)
                    .where(PickemGame.commissioner_id == user_id)
                    .values(commissioner_id=reassign_to, updated_at=utcnow_iso())
                )
                await session.execute(delete(User).where(User.id == user_id))

        logger.info(f"Deleted user {user_id} ({snapshot['email']})")
        return snapshot
