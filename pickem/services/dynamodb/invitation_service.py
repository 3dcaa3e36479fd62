"""
Invitation service for the DynamoDB backend.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from pickem.errors import ConflictError, NotFoundError
from pickem.models.schemas import InvitationCreate
from pickem.services.dynamodb.base import DynamoDBServiceBase
from pickem.services.interfaces import (
    InvitationService,
    display_name,
    new_token,
    to_model,
)
from pickem.utils import constants as c
from pickem.utils.datetime_utils import is_expired, iso_in

logger = logging.getLogger(__name__)


def _is_valid_token(token) -> bool:
    return isinstance(token, str) and 8 <= len(token) <= 256 and token.strip() == token


class DynamoDBInvitationService(DynamoDBServiceBase, InvitationService):

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
        pending = await self.check_existing_invitation(data.game_id, data.email)
        if pending and pending["id"] != invitation["id"]:
            await self.provider.delete(c.INVITATIONS, {"id": invitation["id"]})
            raise ConflictError("Invitation already sent to this email")
        logger.info(f"Created invitation {invitation['id']} for game {data.game_id}")
        return invitation

    async def create_admin_invitation(self, invitation_data) -> Dict[str, Any]:
        data = to_model(InvitationCreate, invitation_data)
        if await self.check_existing_admin_invitation(data.email):
            raise ConflictError("Admin invitation already sent to this email")
        invitation = await self._insert(data, is_admin=True)
        pending = await self.check_existing_admin_invitation(data.email)
        if pending and pending["id"] != invitation["id"]:
            await self.provider.delete(c.INVITATIONS, {"id": invitation["id"]})
            raise ConflictError("Admin invitation already sent to this email")
        logger.info(f"Created admin invitation {invitation['id']}")
        return invitation

    async def get_invitation_by_id(self, invitation_id: str) -> Optional[Dict[str, Any]]:
        return await self.provider.get(c.INVITATIONS, {"id": invitation_id})

    async def get_invitation_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not _is_valid_token(token):
            return None
        return await self._lookup_one(c.INVITATIONS, {"invite_token": token}, ["invite_token-index"])

    async def _pending_for_email(self, email: str) -> List[Dict[str, Any]]:
        return await self._lookup(
            c.INVITATIONS,
            {"email": email.strip().lower(), "status": c.INVITATION_PENDING},
            ["email-index"],
        )

    async def check_existing_invitation(self, game_id: str, email: str) -> Optional[Dict[str, Any]]:
        criteria = {"game_id": game_id, "email": email.strip().lower(), "status": c.INVITATION_PENDING}
        pending = await self._lookup(c.INVITATIONS, criteria, ["game_email-index", "game_id-index"])
        return min(pending, key=lambda i: (i.get("created_at") or "", i["id"])) if pending else None

    async def check_existing_admin_invitation(self, email: str) -> Optional[Dict[str, Any]]:
        pending = [i for i in await self._pending_for_email(email) if i.get("is_admin_invitation")]
        return min(pending, key=lambda i: (i.get("created_at") or "", i["id"])) if pending else None

    async def get_pending_invitations(self, email: str) -> List[Dict[str, Any]]:
        result = []
        for invitation in await self._pending_for_email(email):
            if is_expired(invitation.get("expires_at")):
                continue
            game = None
            if invitation.get("game_id"):
                game = await self.provider.get(c.PICKEM_GAMES, {"id": invitation["game_id"]})
            inviter = await self.provider.get(c.USERS, {"id": invitation["invited_by_user_id"]})
            result.append(
                {
                    **invitation,
                    "game_name": game["game_name"] if game else None,
                    "invited_by_name": display_name(inviter) if inviter else None,
                }
            )
        return sorted(result, key=lambda i: i.get("created_at") or "", reverse=True)

    async def get_game_invitations(self, game_id: str) -> List[Dict[str, Any]]:
        invitations = await self._lookup(
            c.INVITATIONS, {"game_id": game_id, "status": c.INVITATION_PENDING}, ["game_id-index"]
        )
        return sorted(invitations, key=lambda i: i.get("created_at") or "", reverse=True)

    async def update_invitation_status(self, invitation_id: str, status: str) -> Dict[str, Any]:
        if status not in c.INVITATION_STATUSES:
            raise ValueError(f"Invalid invitation status: {status}")
        invitation = await self.provider.update(c.INVITATIONS, {"id": invitation_id}, {"status": status})
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return invitation

    async def cancel_invitation(self, invitation_id: str) -> Dict[str, Any]:
        return await self.update_invitation_status(invitation_id, c.INVITATION_CANCELLED)

    async def delete_invitations_by_game(self, game_id: str) -> int:
        return await self._delete_where(c.INVITATIONS, {"game_id": game_id}, ["game_id-index"])

    async def delete_invitations_by_user(self, user_id: str, email: Optional[str] = None) -> int:
        found = await self._lookup(
            c.INVITATIONS, {"invited_by_user_id": user_id}, ["invited_by_user_id-index"]
        )
        if email:
            found += await self._lookup(c.INVITATIONS, {"email": email.strip().lower()}, ["email-index"])
        unique = {inv["id"]: inv for inv in found}
        return await self._delete_all(c.INVITATIONS, list(unique.values()))
