"""
Pick calculator.

Settles picks for completed scheduled games. Running it again on games that
are already settled recomputes the same values, so it is safe to call on
every polling cycle.
"""

import logging
from typing import Any, Dict, List, Optional

from pickem.errors import StorageError
from pickem.services.interfaces import (
    NFLDataService,
    PickService,
    is_game_completed,
    winning_team_id,
)

logger = logging.getLogger(__name__)

ALL_WEEKS = "all weeks"


class PickCalculatorService:
    """Resolves completed games into pick correctness."""

    def __init__(self, nfl_data_service: NFLDataService, pick_service: PickService):
        self.nfl_data_service = nfl_data_service
        self.pick_service = pick_service

    async def calculate_picks(self, season_id: str, week: Optional[int] = None) -> Dict[str, Any]:
        """
        Settle picks for every completed game of a season, or of one week.

        A tie has no winner, so every pick on it is marked incorrect.

        Args:
            season_id: Season to process
            week: Only this week when given

        Returns:
            dict with updated_picks, completed_games and week ("all weeks" when not given)

        Raises:
            ValueError: If season_id is empty
        """
        if not season_id:
            raise ValueError("Season ID is required")

        if week is not None:
            games = await self.nfl_data_service.get_games_by_season_and_week(season_id, week)
        else:
            games = await self.nfl_data_service.get_games_by_season(season_id)
        completed = [game for game in games if is_game_completed(game)]

        updated_picks = 0
        for game in completed:
            result = await self.pick_service.update_picks_for_game(game["id"], winning_team_id(game))
            updated_picks += result.get("updated_count", 0)

        result = {
            "updated_picks": updated_picks,
            "completed_games": len(completed),
            "week": week if week is not None else ALL_WEEKS,
        }
        logger.info(
            f"Updated {updated_picks} picks for {len(completed)} completed games ({result['week']})"
        )
        return result

    async def calculate_picks_for_weeks(self, season_id: str, weeks: List[int]) -> Dict[str, Any]:
        """
        Run calculate_picks for each week in turn.

        A week that fails is reported with an error entry and zero counts; the
        remaining weeks still run.
        """
        week_results = []
        total_updated = 0
        for week in weeks:
            try:
                week_result = await self.calculate_picks(season_id, week)
            except (StorageError, ValueError) as e:
                logger.error(f"Failed to calculate picks for week {week}: {e}")
                week_results.append({"week": week, "error": str(e), "updated_picks": 0, "completed_games": 0})
                continue
            week_results.append(week_result)
            total_updated += week_result["updated_picks"]

        return {"total_updated_picks": total_updated, "week_results": week_results}

    async def get_picks_stats(self, season_id: str, week: Optional[int] = None) -> Dict[str, Any]:
        """Pick totals and accuracy for a season, plus completed and total game counts."""
        stats = await self.pick_service.get_picks_stats_by_season(season_id, week)
        if week is not None:
            games = await self.nfl_data_service.get_games_by_season_and_week(season_id, week)
        else:
            games = await self.nfl_data_service.get_games_by_season(season_id)
        return {
            **stats,
            "completed_games": sum(1 for game in games if is_game_completed(game)),
            "total_games": len(games),
        }
