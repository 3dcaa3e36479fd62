"""
Seed the 32 NFL teams from CSV.

Idempotent: teams are upserted by code through the NFL data service, which
only fills empty fields, so re-running never overwrites edited team data.
"""

import csv
import logging
from pathlib import Path

from pickem.services.interfaces import NFLDataService

logger = logging.getLogger(__name__)

SEED_DIR = Path(__file__).resolve().parent.parent / "seed"
TEAMS_CSV = SEED_DIR / "nfl_teams.csv"


def load_team_rows(csv_path: Path = TEAMS_CSV):
    """Team dicts from the seed CSV, empty cells dropped."""
    with open(csv_path, "r", encoding="utf-8") as f:
        return [{k: v for k, v in row.items() if v} for row in csv.DictReader(f)]


async def seed_teams(nfl_data_service: NFLDataService, csv_path: Path = TEAMS_CSV) -> int:
    """
    Upsert every team in the seed CSV.

    Returns:
        Number of teams that did not exist before
    """
    if not csv_path.exists():
        logger.warning(f"Teams CSV not found: {csv_path}")
        return 0

    created = 0
    for row in load_team_rows(csv_path):
        existed = await nfl_data_service.get_team_by_code(row["team_code"])
        await nfl_data_service.create_or_update_team(row)
        if not existed:
            created += 1

    logger.info(f"Seeded NFL teams: {created} created")
    return created
