"""
Invitation service for the SQLite backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, or_, select

from pickem.database.models import GameInvitation, PickemGame, User, model_to_dict
from pickem.errors import ConflictError, NotFoundError
from pickem.models.schemas import InvitationCreate
from pickem.services.interfaces import InvitationService, display_name, new_token, to_model
from pickem.services.sqlite.base import SQLiteServiceBase
from pickem.utils import constants as c
from pickem.utils.datetime_utils import is_expired, iso_in

logger = logging.getLogger(__name__)


def _is_valid_token(token) -> bool:
    return isinstance(token, str) and 8 <= len(token) <= 256 and token.strip() == token


class SQLiteInvitationService(SQLiteServiceBase, InvitationService):

    async def _insert(self, data: InvitationCreate, is_admin: bool) -> Dict[str, Any]:
        return await self.provider.put(
            c.INVITATIONS,
            {
                "id": str(uuid.uuid4()),
                "game_id": None if is_admin else data.game_id,
                "email": data.email,
                "invited_by_user_id": data.invited_by_user_id,
                "invite_token": new_token(),
                "is_admin_invitation": is_admin,
                "status": c.INVITATION_PENDING,
                "expires_at": iso_in(days=data.expires_in_days),
            },
        )

    async def create_invitation(self, invitation_data) -> Dict[str, Any]:
        data = to_model(InvitationCreate, invitation_data)
        if not data.game_id:
            raise ValueError("game_id is required for a game invitation")
        if not await self.provider.get(c.PICKEM_GAMES, {"id": data.game_id}):
            raise NotFoundError("Game not found")
        if await self.check_existing_invitation(data.game_id, data.email):
            raise ConflictError("Invitation already sent to this email")
        invitation = await self._insert(data, is_admin=False)
        logger.info(f"Created invitation {invitation['id']} for game {data.game_id}")
        return invitation

    async def create_admin_invitation(self, invitation_data) -> Dict[str, Any]:
        data = to_model(InvitationCreate, invitation_data)
        if await self.check_existing_admin_invitation(data.email):
            raise ConflictError("Admin invitation already sent to this email")
        invitation = await self._insert(data, is_admin=True)
        logger.info(f"Created admin invitation {invitation['id']}")
        return invitation

    async def get_invitation_by_id(self, invitation_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.INVITATIONS, {"id": invitation_id})

    async def get_invitation_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not _is_valid_token(token):
            return None
        rows = await self.provider.query(c.INVITATIONS, {"invite_token": token})
        return rows[0] if rows else None

    async def _first_pending(self, *where) -> Optional[Dict[str, Any]]:
        rows = await self._all(
            select(GameInvitation)
            .where(GameInvitation.status == c.INVITATION_PENDING, *where)
            .order_by(GameInvitation.created_at, GameInvitation.id)
            .limit(1)
        )
        return rows[0] if rows else None

    async def check_existing_invitation(self, game_id: str, email: str) -> Optional[Dict[str, Any]]:
        return await self._first_pending(
            GameInvitation.game_id == game_id,
            GameInvitation.email == email.strip().lower(),
        )

    async def check_existing_admin_invitation(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._first_pending(
            GameInvitation.is_admin_invitation.is_(True),
            GameInvitation.email == email.strip().lower(),
        )

    async def get_pending_invitations(self, email: str) -> List[Dict[str, Any]]:
        stmt = (
            select(GameInvitation, PickemGame.game_name, User)
            .outerjoin(PickemGame, GameInvitation.game_id == PickemGame.id)
            .outerjoin(User, GameInvitation.invited_by_user_id == User.id)
            .where(
                GameInvitation.email == email.strip().lower(),
                GameInvitation.status == c.INVITATION_PENDING,
            )
            .order_by(GameInvitation.created_at.desc())
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).all()

        result = []
        for invitation, game_name, inviter in rows:
            record = model_to_dict(invitation)
            if is_expired(record["expires_at"]):
                continue
            record["game_name"] = game_name
            record["invited_by_name"] = display_name(model_to_dict(inviter)) if inviter else None
            result.append(record)
        return result

    async def get_game_invitations(self, game_id: str) -> List[Dict[str, Any]]:
        return await self._all(
            select(GameInvitation)
            .where(GameInvitation.game_id == game_id, GameInvitation.status == c.INVITATION_PENDING)
            .order_by(GameInvitation.created_at.desc())
        )

    async def update_invitation_status(self, invitation_id: str, status: str) -> Dict[str, Any]:
        if status not in c.INVITATION_STATUSES:
            raise ValueError(f"Invalid invitation status: {status}")
        invitation = await self.provider.update(c.INVITATIONS, {"id": invitation_id}, {"status": status})
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return invitation

    async def cancel_invitation(self, invitation_id: str) -> Dict[str, Any]:
        return await self.update_invitation_status(invitation_id, c.INVITATION_CANCELLED)

    async def _delete(self, where) -> int:
        async with self.session() as session:
            async with session.begin():
                result = await session.execute(delete(GameInvitation).where(where))
        return result.rowcount

    async def delete_invitations_by_game(self, game_id: str) -> int:
        return await self._delete(GameInvitation.game_id == game_id)

    async def delete_invitations_by_user(self, user_id: str, email: Optional[str] = None) -> int:
        where = GameInvitation.invited_by_user_id == user_id
        if email:
            where = or_(where, GameInvitation.email == email.strip().lower())
        return await self._delete(where)
