"""
User service for the DynamoDB backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pickem.errors import ConflictError, NotFoundError
from pickem.models.schemas import UserCreate, UserUpdate
from pickem.services.cascade import CascadeDelete
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import UserService, public_user, to_model
from pickem.utils import constants as c
from pickem.utils.datetime_utils import is_expired, utcnow_iso

logger = logging.getLogger(__name__)


class DynamoDBUserService(DynamoDBServiceBase, UserService):

    async def _require_user(self, user_id: str) -> Dict[str, Any]:
        user = await self.provider.get(c.USERS, {"id": user_id})
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_all_users(self) -> List[Dict[str, Any]]:
        users = await self.provider.scan(c.USERS)
        teams = {t["id"]: t for t in await self.provider.scan(c.TEAMS)}
        result = []
        for user in users:
            team = teams.get(user.get("favorite_team_id"), {})
            record = public_user(user)
            record["favorite_team_name"] = team.get("team_name")
            record["favorite_team_city"] = team.get("team_city")
            result.append(record)
        return sorted(result, key=lambda u: u.get("created_at") or "", reverse=True)

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.USERS, {"id": user_id})

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        return await self._lookup_one(c.USERS, {"email": email.strip().lower()}, ["email-index"])

    async def user_exists(self, email: str) -> bool:
        return await self.get_user_by_email(email) is not None

    async def create_user(self, user_data) -> Dict[str, Any]:
        data = to_model(UserCreate, user_data)
        if await self.get_user_by_email(data.email):
            raise ConflictError("User with this email already exists")
        user = await self.provider.put(c.USERS, {"id": str(uuid.uuid4()), **data.model_dump()})
        await self._guard_duplicate(
            c.USERS, user, {"email": data.email}, ["email-index"], "User with this email already exists"
        )
        logger.info(f"Created user {user['id']}")
        return user

    async def update_user(self, user_id: str, updates) -> Dict[str, Any]:
        data = to_model(UserUpdate, updates).model_dump(exclude_unset=True)
        await self._require_user(user_id)
        if data.get("email"):
            existing = await self.get_user_by_email(data["email"])
            if existing and existing["id"] != user_id:
                raise ConflictError("Email is already in use")
        if not data:
            return await self.get_user_by_id(user_id)
        return await self.provider.update(c.USERS, {"id": user_id}, data)

    async def update_admin_status(self, user_id: str, is_admin: bool) -> Dict[str, Any]:
        user = await self.provider.update(c.USERS, {"id": user_id}, {"is_admin": bool(is_admin)})
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_email_verified(self, user_id: str, verified: bool) -> Dict[str, Any]:
        fields = {"email_verified": bool(verified)}
        if verified:
            fields["email_verification_token"] = None
        user = await self.provider.update(c.USERS, {"id": user_id}, fields)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_last_login(self, user_id: str) -> None:
        if await self.provider.update(c.USERS, {"id": user_id}, {"last_login": utcnow_iso()}) is None:
            raise NotFoundError("User not found")

    async def get_user_games(self, user_id: str) -> List[Dict[str, Any]]:
        participations = await self._lookup(c.PARTICIPANTS, {"user_id": user_id}, ["user_id-index"])
        games = []
        for participation in participations:
            game = await self.provider.get(c.PICKEM_GAMES, {"id": participation["game_id"]})
            if game:
                games.append({**game, "user_role": participation["role"]})
        return sorted(games, key=lambda g: g.get("created_at") or "", reverse=True)

    async def set_password_reset_token(self, user_id: str, token: str, expires_at: str) -> None:
        fields = {"password_reset_token": token, "password_reset_expires": expires_at}
        if await self.provider.update(c.USERS, {"id": user_id}, fields) is None:
            raise NotFoundError("User not found")

    async def get_user_by_reset_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not token or not isinstance(token, str):
            return None
        # No index on the reset token; resets are rare enough for a scan
        users = await self.provider.scan(c.USERS, {"password_reset_token": token})
        for user in users:
            if not is_expired(user.get("password_reset_expires")):
                return user
        return None

    async def reset_password(self, user_id: str, password_hash: str) -> None:
        fields = {
            "password": password_hash,
            "password_reset_token": None,
            "password_reset_expires": None,
        }
        if await self.provider.update(c.USERS, {"id": user_id}, fields) is None:
            raise NotFoundError("User not found")

    async def get_first_admin_user(self) -> Optional[Dict[str, Any]]:
        admins = await self._lookup(c.USERS, {"is_admin": True}, ["is_admin-index"])
        if not admins:
            return None
        return min(admins, key=lambda u: u.get("created_at") or "")

    async def get_any_user(self) -> Optional[Dict[str, Any]]:
        users = await self.provider.scan(c.USERS)
        return min(users, key=lambda u: u.get("created_at") or "") if users else None

    async def get_user_count(self) -> int:
        return await self._count(c.USERS)

    async def get_user_basic_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = await self.get_user_by_id(user_id)
        if not user:
            return None
        return {k: user.get(k) for k in ("id", "email", "first_name", "last_name")}

    async def delete_user(self, user_id: str, reassign_to: Optional[str] = None) -> Dict[str, Any]:
        user = await self._require_user(user_id)
        snapshot = public_user(user)

        async def delete_invitations() -> int:
            sent = await self._lookup(
                c.INVITATIONS, {"invited_by_user_id": user_id}, ["invited_by_user_id-index"]
            )
            received = await self._lookup(c.INVITATIONS, {"email": user["email"]}, ["email-index"])
            unique = {inv["id"]: inv for inv in sent + received}
            return await self._delete_all(c.INVITATIONS, list(unique.values()))

        async def reassign_games() -> int:
            games = await self._lookup(
                c.PICKEM_GAMES, {"commissioner_id": user_id}, ["commissioner_id-index"]
            )
            for game in games:
                await self.provider.update(c.PICKEM_GAMES, {"id": game["id"]}, {"commissioner_id": reassign_to})
            return len(games)

        async def delete_user_record() -> int:
            await self.provider.delete(c.USERS, {"id": user_id})
            return 1

        cascade = (
            CascadeDelete(f"user {user_id}")
            .step("picks", lambda: self._delete_where(c.PICKS, {"user_id": user_id}, ["user_id-index"]))
            .step(
                "weekly_standings",
                lambda: self._delete_where(c.WEEKLY_STANDINGS, {"user_id": user_id}, ["user_id-index"]),
            )
            .step("invitations", delete_invitations)
            .step(
                "participants",
                lambda: self._delete_where(c.PARTICIPANTS, {"user_id": user_id}, ["user_id-index"]),
            )
            .step("commissioned_games", reassign_games)
            .step("user", delete_user_record)
        )
        await cascade.run()
        logger.info(f"Deleted user {user_id} ({snapshot['email']})")
        return snapshot
