"""
Tests for pick'em games and participants.
"""
import pytest

from pickem.errors import AccessDeniedError, ConflictError, NotFoundError


@pytest.mark.asyncio
async def test_create_game_adds_commissioner_as_owner(services, make_user):
    games = services.get_game_service()
    alice = await make_user()

    game = await games.create_game({"game_name": "  Office Pool ", "game_type": "week", "commissioner_id": alice["id"]})

    assert game["game_name"] == "Office Pool"
    assert game["type"] == "weekly"
    assert game["is_active"] is True
    assert game["player_count"] == 1
    assert game["owner_count"] == 1
    owner = await games.get_participant(game["id"], alice["id"])
    assert owner["role"] == "owner"


@pytest.mark.asyncio
async def test_create_game_validates_input(services, make_user):
    games = services.get_game_service()
    alice = await make_user()

    with pytest.raises(ValueError):
        await games.create_game({"game_name": "", "commissioner_id": alice["id"]})
    with pytest.raises(ValueError):
        await games.create_game({"game_name": "Pool", "game_type": "bracket", "commissioner_id": alice["id"]})


@pytest.mark.asyncio
async def test_get_user_games_counts_members(services, league):
    games = await services.get_game_service().get_user_games(league["bob"]["id"])

    assert len(games) == 1
    assert games[0]["user_role"] == "player"
    assert games[0]["player_count"] == 2
    assert games[0]["owner_count"] == 1


@pytest.mark.asyncio
async def test_game_visible_to_participants_only(services, league, make_user):
    games = services.get_game_service()
    outsider = await make_user("carol@example.com", "Carol", "Clark")

    game = await games.get_game_by_id(league["game"]["id"], league["bob"]["id"])
    assert [p["display_name"] for p in game["participants"]] == ["Alice Adams", "Bob Brown"]
    assert game["participants"][0]["role"] == "owner"

    with pytest.raises(AccessDeniedError):
        await games.get_game_by_id(league["game"]["id"], outsider["id"])


@pytest.mark.asyncio
async def test_get_game_by_slug(services, league, make_user):
    games = services.get_game_service()

    game = await games.get_game_by_slug("test-league", league["bob"]["id"])

    assert game["id"] == league["game"]["id"]
    assert game["commissioner_name"] == "Alice Adams"
    assert await games.get_game_by_slug("no-such-league", league["bob"]["id"]) is None
    outsider = await make_user("carol@example.com", "Carol", "Clark")
    with pytest.raises(AccessDeniedError):
        await games.get_game_by_slug("test-league", outsider["id"])


@pytest.mark.asyncio
async def test_admin_view_skips_membership_check(services, league):
    games = services.get_game_service()

    game = await games.get_game_by_id_for_admin(league["game"]["id"])

    assert game["player_count"] == 2
    assert await games.get_game_by_id_for_admin("missing") is None


@pytest.mark.asyncio
async def test_add_participant_twice_raises(services, league):
    games = services.get_game_service()

    with pytest.raises(ConflictError):
        await games.add_participant(league["game"]["id"], league["bob"]["id"])
    with pytest.raises(NotFoundError):
        await games.add_participant("missing", league["bob"]["id"])
    with pytest.raises(ValueError):
        await games.add_participant(league["game"]["id"], league["bob"]["id"], role="referee")


@pytest.mark.asyncio
async def test_remove_participant_deletes_their_picks(services, league):
    games = services.get_game_service()
    picks = services.get_pick_service()
    game_id = league["game"]["id"]
    await picks.create_or_update_pick(
        {
            "user_id": league["bob"]["id"],
            "game_id": game_id,
            "football_game_id": league["matchup"]["id"],
            "pick_team_id": league["kc"]["id"],
        }
    )

    await games.remove_participant(game_id, league["bob"]["id"])

    assert await games.get_participant(game_id, league["bob"]["id"]) is None
    assert await picks.get_user_picks(league["bob"]["id"], game_id=game_id) == []
    with pytest.raises(NotFoundError):
        await games.remove_participant(game_id, league["bob"]["id"])


@pytest.mark.asyncio
async def test_owner_cannot_be_removed(services, league):
    with pytest.raises(AccessDeniedError):
        await services.get_game_service().remove_participant(league["game"]["id"], league["alice"]["id"])


@pytest.mark.asyncio
async def test_update_game_fields(services, league):
    games = services.get_game_service()
    game_id = league["game"]["id"]

    updated = await games.update_game(game_id, {"game_name": "Renamed", "type": "survivor", "bogus": 1})
    assert updated["game_name"] == "Renamed"
    assert updated["type"] == "survivor"
    assert "bogus" not in updated

    assert (await games.update_game_status(game_id, False))["is_active"] is False
    with pytest.raises(NotFoundError):
        await games.update_game("missing", {"game_name": "x"})


@pytest.mark.asyncio
async def test_update_game_season_and_count(services, league):
    games = services.get_game_service()
    other = await services.get_season_service().create_season("2026")

    await games.update_game_season(league["game"]["id"], other["id"])

    assert await games.get_game_count_by_season(other["id"]) == 1
    assert await games.get_game_count_by_season(league["season"]["id"]) == 0
    assert await games.get_game_count() == 1


@pytest.mark.asyncio
async def test_all_games_with_details(services, league):
    games = await services.get_game_service().get_all_games_with_details()

    assert len(games) == 1
    assert games[0]["commissioner_name"] == "Alice Adams"
    assert games[0]["commissioner_email"] == "alice@example.com"
    assert games[0]["season_year"] == "2025"
    assert games[0]["participant_count"] == 2


@pytest.mark.asyncio
async def test_orphaned_games_get_a_commissioner(services, league):
    games = services.get_game_service()
    game_id = league["game"]["id"]
    await games.update_game(game_id, {"commissioner_id": None})

    assert await games.assign_commissioner_to_orphaned_games(league["bob"]["id"]) == 1
    assert (await games.get_game_by_id_for_admin(game_id))["commissioner_id"] == league["bob"]["id"]
    assert await games.assign_commissioner_to_orphaned_games(league["bob"]["id"]) == 0
