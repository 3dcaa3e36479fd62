"""
Tests for the pick calculator and the shared scoring helpers.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from pickem.errors import BackendUnavailableError
from pickem.services.interfaces import (
    accuracy_percentage,
    is_game_completed,
    pick_stats,
    rank_standings,
    winning_team_id,
)
from pickem.services.pick_calculator import PickCalculatorService


# --- Pure helpers ---


def test_pick_stats_accuracy_ignores_pending():
    """7 correct, 3 incorrect, 2 pending: accuracy is 7 / 10."""
    picks = [{"is_correct": True}] * 7 + [{"is_correct": False}] * 3 + [{}, {"is_correct": None}]

    assert pick_stats(picks) == {
        "total_picks": 12,
        "correct_picks": 7,
        "incorrect_picks": 3,
        "pending_picks": 2,
        "accuracy_percentage": 70.0,
    }


def test_accuracy_without_settled_picks_is_zero():
    assert accuracy_percentage(0, 0) == 0.0
    assert accuracy_percentage(1, 2) == 33.33


@pytest.mark.parametrize(
    "home_score,away_score,expected",
    [(24, 31, "away"), (31, 24, "home"), (20, 20, None), (None, 3, "away")],
)
def test_winning_team_id(home_score, away_score, expected):
    game = {"home_team_id": "home", "away_team_id": "away", "home_score": home_score, "away_score": away_score}
    assert winning_team_id(game) == expected


@pytest.mark.parametrize(
    "status,completed",
    [("STATUS_FINAL", True), ("STATUS_CLOSED", True), ("Final", True), ("STATUS_IN_PROGRESS", False), (None, False)],
)
def test_is_game_completed(status, completed):
    assert is_game_completed({"status": status}) is completed


def test_rank_standings_shares_ranks_on_ties():
    rows = [
        {"user_id": "a", "correct_picks": 3, "pick_percentage": 75.0},
        {"user_id": "b", "correct_picks": 5, "pick_percentage": 100.0},
        {"user_id": "c", "correct_picks": 3, "pick_percentage": 75.0},
        {"user_id": "d", "correct_picks": 1, "pick_percentage": 25.0},
    ]

    ranked = rank_standings(rows)

    assert [(r["user_id"], r["weekly_rank"]) for r in ranked] == [("b", 1), ("a", 2), ("c", 2), ("d", 4)]


# --- Calculator against real storage ---


@pytest.mark.asyncio
async def test_end_to_end_scoring(services, league):
    """KC beats DET 31-24; Bob picked KC, so his pick is correct."""
    nfl = services.get_nfl_data_service()
    picks = services.get_pick_service()
    calculator = services.get_pick_calculator()
    pick = await picks.create_or_update_pick(
        {
            "user_id": league["bob"]["id"],
            "game_id": league["game"]["id"],
            "football_game_id": league["matchup"]["id"],
            "pick_team_id": league["kc"]["id"],
        }
    )
    await nfl.update_game_score(league["matchup"]["id"], 24, 31, status="STATUS_FINAL")

    result = await calculator.calculate_picks(league["season"]["id"], week=1)

    assert result == {"updated_picks": 1, "completed_games": 1, "week": 1}
    assert (await picks.get_pick_by_id(pick["id"]))["is_correct"] is True

    stats = await calculator.get_picks_stats(league["season"]["id"])
    assert stats["correct_picks"] == 1
    assert stats["accuracy_percentage"] == 100.0
    assert stats["completed_games"] == 1
    assert stats["total_games"] == 1


@pytest.mark.asyncio
async def test_unfinished_games_are_not_scored(services, league):
    picks = services.get_pick_service()
    pick = await picks.create_or_update_pick(
        {
            "user_id": league["bob"]["id"],
            "game_id": league["game"]["id"],
            "football_game_id": league["matchup"]["id"],
            "pick_team_id": league["kc"]["id"],
        }
    )
    await services.get_nfl_data_service().update_game_score(league["matchup"]["id"], 7, 0, status="STATUS_IN_PROGRESS")

    result = await services.get_pick_calculator().calculate_picks(league["season"]["id"])

    assert result == {"updated_picks": 0, "completed_games": 0, "week": "all weeks"}
    assert (await picks.get_pick_by_id(pick["id"])).get("is_correct") is None


@pytest.mark.asyncio
async def test_recalculation_is_idempotent(services, league):
    picks = services.get_pick_service()
    calculator = services.get_pick_calculator()
    pick = await picks.create_or_update_pick(
        {
            "user_id": league["alice"]["id"],
            "game_id": league["game"]["id"],
            "football_game_id": league["matchup"]["id"],
            "pick_team_id": league["kc"]["id"],
        }
    )
    await services.get_nfl_data_service().update_game_score(league["matchup"]["id"], 17, 17, status="Final")

    first = await calculator.calculate_picks(league["season"]["id"])
    second = await calculator.calculate_picks(league["season"]["id"])

    assert first == second
    assert (await picks.get_pick_by_id(pick["id"]))["is_correct"] is False


@pytest.mark.asyncio
async def test_calculate_picks_requires_season(services):
    with pytest.raises(ValueError):
        await services.get_pick_calculator().calculate_picks("")


# --- Calculator with mocked services ---


@pytest.mark.asyncio
async def test_failed_week_does_not_stop_the_rest():
    nfl = MagicMock()
    nfl.get_games_by_season_and_week = AsyncMock(
        side_effect=[
            [{"id": "g1", "status": "STATUS_FINAL", "home_team_id": "h", "away_team_id": "a", "home_score": 3, "away_score": 0}],
            BackendUnavailableError("DynamoDB unavailable"),
            [],
        ]
    )
    pick_service = MagicMock()
    pick_service.update_picks_for_game = AsyncMock(return_value={"updated_count": 4})
    calculator = PickCalculatorService(nfl, pick_service)

    result = await calculator.calculate_picks_for_weeks("s1", [1, 2, 3])

    assert result["total_updated_picks"] == 4
    assert [r["week"] for r in result["week_results"]] == [1, 2, 3]
    assert result["week_results"][1]["error"] == "DynamoDB unavailable"
    assert result["week_results"][1]["updated_picks"] == 0
    pick_service.update_picks_for_game.assert_awaited_once_with("g1", "h")
