"""
Tests for game and admin invitations.
"""
import pytest

from pickem.errors import ConflictError, NotFoundError
from pickem.utils import constants as c
from pickem.utils.datetime_utils import iso_in, is_expired


@pytest.fixture
def invite(services, league):
    """Factory fixture: Alice invites email to the league game."""

    async def _invite(email="carol@example.com", **extra):
        return await services.get_invitation_service().create_invitation(
            {"email": email, "invited_by_user_id": league["alice"]["id"], "game_id": league["game"]["id"], **extra}
        )

    return _invite


@pytest.mark.asyncio
async def test_create_invitation(services, league, invite):
    invitations = services.get_invitation_service()

    invitation = await invite(" Carol@Example.com ")

    assert invitation["email"] == "carol@example.com"
    assert invitation["status"] == "pending"
    assert invitation["is_admin_invitation"] is False
    assert len(invitation["invite_token"]) >= 32
    assert not is_expired(invitation["expires_at"])
    assert (await invitations.get_invitation_by_token(invitation["invite_token"]))["id"] == invitation["id"]
    assert (await invitations.get_invitation_by_id(invitation["id"]))["game_id"] == league["game"]["id"]


@pytest.mark.asyncio
async def test_duplicate_pending_invitation_raises(services, invite):
    await invite()

    with pytest.raises(ConflictError):
        await invite("CAROL@example.com")


@pytest.mark.asyncio
async def test_reinvite_after_cancel(services, invite):
    invitations = services.get_invitation_service()
    first = await invite()

    cancelled = await invitations.cancel_invitation(first["id"])
    second = await invite()

    assert cancelled["status"] == "cancelled"
    assert second["id"] != first["id"]


@pytest.mark.asyncio
async def test_invitation_requires_existing_game(services, league):
    invitations = services.get_invitation_service()
    with pytest.raises(NotFoundError):
        await invitations.create_invitation(
            {"email": "carol@example.com", "invited_by_user_id": league["alice"]["id"], "game_id": "missing"}
        )
    with pytest.raises(ValueError):
        await invitations.create_invitation(
            {"email": "carol@example.com", "invited_by_user_id": league["alice"]["id"]}
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "short", " padded-token-value ", "x" * 300, 12345678])
async def test_malformed_tokens_find_nothing(services, invite, token):
    await invite()
    assert await services.get_invitation_service().get_invitation_by_token(token) is None


@pytest.mark.asyncio
async def test_unknown_token_finds_nothing(services, invite):
    await invite()
    assert await services.get_invitation_service().get_invitation_by_token("well-formed-but-unknown") is None


@pytest.mark.asyncio
async def test_admin_invitation(services, league, invite):
    invitations = services.get_invitation_service()
    await invite("dave@example.com")

    admin = await invitations.create_admin_invitation(
        {"email": "dave@example.com", "invited_by_user_id": league["alice"]["id"], "game_id": league["game"]["id"]}
    )

    assert admin["is_admin_invitation"] is True
    assert admin.get("game_id") is None
    assert (await invitations.check_existing_admin_invitation("dave@example.com"))["id"] == admin["id"]
    with pytest.raises(ConflictError):
        await invitations.create_admin_invitation(
            {"email": "dave@example.com", "invited_by_user_id": league["alice"]["id"]}
        )


@pytest.mark.asyncio
async def test_pending_invitations_skip_expired_and_settled(services, provider, league, invite):
    invitations = services.get_invitation_service()
    live = await invite("carol@example.com")
    other_game = await services.get_game_service().create_game(
        {"game_name": "Second League", "commissioner_id": league["bob"]["id"]}
    )
    expired = await invitations.create_invitation(
        {"email": "carol@example.com", "invited_by_user_id": league["bob"]["id"], "game_id": other_game["id"]}
    )
    await provider.update(c.INVITATIONS, {"id": expired["id"]}, {"expires_at": iso_in(days=-1)})

    pending = await invitations.get_pending_invitations("CAROL@example.com")

    assert [i["id"] for i in pending] == [live["id"]]
    assert pending[0]["game_name"] == "Test League"
    assert pending[0]["invited_by_name"] == "Alice Adams"

    await invitations.update_invitation_status(live["id"], "accepted")
    assert await invitations.get_pending_invitations("carol@example.com") == []


@pytest.mark.asyncio
async def test_update_status_validates(services, invite):
    invitations = services.get_invitation_service()
    invitation = await invite()

    with pytest.raises(ValueError):
        await invitations.update_invitation_status(invitation["id"], "maybe")
    with pytest.raises(NotFoundError):
        await invitations.update_invitation_status("missing", "accepted")


@pytest.mark.asyncio
async def test_game_invitations_lists_pending_only(services, league, invite):
    invitations = services.get_invitation_service()
    carol = await invite("carol@example.com")
    dave = await invite("dave@example.com")
    await invitations.cancel_invitation(dave["id"])

    assert [i["id"] for i in await invitations.get_game_invitations(league["game"]["id"])] == [carol["id"]]


@pytest.mark.asyncio
async def test_delete_invitations(services, league, invite):
    invitations = services.get_invitation_service()
    await invite("carol@example.com")
    await invite("bob@example.com")
    await invitations.create_admin_invitation(
        {"email": "erin@example.com", "invited_by_user_id": league["bob"]["id"]}
    )

    # Bob's admin invitation plus the one addressed to him
    assert await invitations.delete_invitations_by_user(league["bob"]["id"], "bob@example.com") == 2
    assert await invitations.delete_invitations_by_game(league["game"]["id"]) == 1
