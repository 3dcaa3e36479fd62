"""
Backend-agnostic service interfaces.

Every aggregate has one abstract base class here and two implementations,
one under services/sqlite and one under services/dynamodb. The service
factory picks the set once at startup; callers only ever see these types.

Shared rules that do not depend on the backend (accuracy math, winner
resolution, participant ordering, input coercion) live here as plain
functions so both implementations apply them identically.
"""

import secrets
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel

from pickem.errors import ConflictError, NotFoundError
from pickem.models.schemas import FootballGameUpdate
from pickem.utils.constants import COMPLETED_STATUSES, ROLE_OWNER

ModelT = TypeVar("ModelT", bound=BaseModel)

FOOTBALL_GAME_KEY = ("season_id", "week", "home_team_id", "away_team_id")

SENSITIVE_USER_FIELDS = (
    "password",
    "email_verification_token",
    "password_reset_token",
    "password_reset_expires",
)


# --- Shared helpers ---


def to_model(model_cls: Type[ModelT], data: Union[ModelT, Dict[str, Any]]) -> ModelT:
    """Accept a pydantic model or a plain dict and return a validated model."""
    if isinstance(data, model_cls):
        return data
    return model_cls.model_validate(data)


def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """User record without credentials and tokens."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k not in SENSITIVE_USER_FIELDS}


def display_name(user: Dict[str, Any]) -> str:
    return f"{user.get('first_name') or ''} {user.get('last_name') or ''}".strip()


def sort_participants(participants: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Owners first, then by display name."""
    return sorted(
        participants,
        key=lambda p: (p.get("role") != ROLE_OWNER, (p.get("display_name") or "").lower()),
    )


def is_game_completed(game: Dict[str, Any]) -> bool:
    return game.get("status") in COMPLETED_STATUSES


def winning_team_id(game: Dict[str, Any]) -> Optional[str]:
    """
    Winner of a completed scheduled game.

    Returns:
        The team id with the higher score, or None on a tie
    """
    home_score = game.get("home_score") or 0
    away_score = game.get("away_score") or 0
    if home_score > away_score:
        return game["home_team_id"]
    if away_score > home_score:
        return game["away_team_id"]
    return None


def accuracy_percentage(correct: int, incorrect: int) -> float:
    """correct / settled * 100 rounded to two decimals; 0 when nothing is settled."""
    settled = correct + incorrect
    if settled == 0:
        return 0.0
    return round(correct * 100.0 / settled, 2)


def pick_stats(picks: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Aggregate total/correct/incorrect/pending counts and accuracy for picks."""
    correct = incorrect = pending = 0
    for pick in picks:
        if pick.get("is_correct") is True:
            correct += 1
        elif pick.get("is_correct") is False:
            incorrect += 1
        else:
            pending += 1
    return {
        "total_picks": correct + incorrect + pending,
        "correct_picks": correct,
        "incorrect_picks": incorrect,
        "pending_picks": pending,
        "accuracy_percentage": accuracy_percentage(correct, incorrect),
    }


def pick_percentage(correct: int, total: int) -> float:
    """Share of all picks (settled or not) that are correct, as used by standings."""
    if not total:
        return 0.0
    return round(correct * 100.0 / total, 2)


def sort_summary(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(rows, key=lambda r: (-r["pick_percentage"], -r["correct_picks"]))


def new_token() -> str:
    """URL-safe random token for invitations and password resets."""
    return secrets.token_urlsafe(32)


def setting_id(category: str, key: str) -> str:
    return f"{category}_{key}"


def season_sort_key(season: Dict[str, Any]):
    """Numeric year when possible so '2025' sorts after '2024' and '999'."""
    label = str(season.get("season", ""))
    return (int(label), label) if label.isdigit() else (-1, label)


# --- Interfaces ---


class UserService(ABC):
    """Users: registration, profile, admin flags, password reset, deletion."""

    @abstractmethod
    async def get_all_users(self) -> List[Dict[str, Any]]:
        """All users without credentials, with favorite_team_name/favorite_team_city, newest first."""

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive lookup; includes the password hash for login checks."""

    @abstractmethod
    async def user_exists(self, email: str) -> bool:
        ...

    @abstractmethod
    async def create_user(self, user_data) -> Dict[str, Any]:
        """
        Create a user.

        Args:
            user_data: UserCreate or equivalent dict

        Returns:
            The created user record

        Raises:
            ConflictError: If the email is already registered
        """

    @abstractmethod
    async def update_user(self, user_id: str, updates) -> Dict[str, Any]:
        """
        Update profile fields (first_name, last_name, email, favorite_team_id).

        Raises:
            NotFoundError: If the user does not exist
            ConflictError: If the new email belongs to another user
        """

    @abstractmethod
    async def update_admin_status(self, user_id: str, is_admin: bool) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update_email_verified(self, user_id: str, verified: bool) -> Dict[str, Any]:
        """Set the verified flag; clears the verification token once verified."""

    @abstractmethod
    async def update_last_login(self, user_id: str) -> None:
        ...

    @abstractmethod
    async def get_user_games(self, user_id: str) -> List[Dict[str, Any]]:
        """Pick'em games the user participates in, with the user's role."""

    @abstractmethod
    async def set_password_reset_token(self, user_id: str, token: str, expires_at: str) -> None:
        ...

    @abstractmethod
    async def get_user_by_reset_token(self, token: str) -> Optional[Dict[str, Any]]:
        """User holding token, only while the token has not expired."""

    @abstractmethod
    async def reset_password(self, user_id: str, password_hash: str) -> None:
        """Set a new password hash and clear the reset token in the same write."""

    @abstractmethod
    async def get_first_admin_user(self) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_any_user(self) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_user_count(self) -> int:
        ...

    @abstractmethod
    async def get_user_basic_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        """id, email, first_name, last_name only."""

    @abstractmethod
    async def delete_user(self, user_id: str, reassign_to: Optional[str] = None) -> Dict[str, Any]:
        """
        Delete a user and everything that hangs off them.

        Children go first: picks, weekly standings, invitations sent by or
        addressed to the user, participations. Games the user commissions are
        handed to reassign_to (or left without a commissioner). Rerunning after
        a partial failure finishes the job.

        Returns:
            Snapshot of the deleted user (without credentials)

        Raises:
            NotFoundError: If the user does not exist
        """


class SeasonService(ABC):
    """Seasons and the single-current-season invariant."""

    @abstractmethod
    async def get_all_seasons(self) -> List[Dict[str, Any]]:
        """All seasons, most recent year first."""

    @abstractmethod
    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        """
        The season flagged current.

        If more than one season is flagged (an interrupted swap), keeps the
        most recent year current, unsets the rest and logs the correction.
        """

    @abstractmethod
    async def get_season_by_id(self, season_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_season_by_year(self, year: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_season(self, year: str, is_current: bool = False) -> Dict[str, Any]:
        """
        Raises:
            ConflictError: If a season with this year exists
        """

    @abstractmethod
    async def update_season(self, season_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Change the year label and/or current flag (setting current unsets the others)."""

    @abstractmethod
    async def set_current_season(self, season_id: str) -> Dict[str, Any]:
        """Flag season_id current and unset every other season."""

    @abstractmethod
    async def delete_season(self, season_id: str) -> None:
        """
        Raises:
            NotFoundError: If the season does not exist
            ConflictError: If any scheduled game references it
        """

    @abstractmethod
    async def get_season_games(self, season_id: str, week: Optional[int] = None) -> List[Dict[str, Any]]:
        """Non-preseason scheduled games with team code/name/city, by week then start time."""

    @abstractmethod
    async def get_season_game_count(self, season_id: str) -> int:
        ...

    @abstractmethod
    async def get_all_seasons_with_counts(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_season_count(self) -> int:
        ...

    @abstractmethod
    async def fix_multiple_current_seasons(self) -> Optional[Dict[str, Any]]:
        """Keep the most recent current season and unset the rest. Returns the kept season."""


class NFLDataService(ABC):
    """Teams and scheduled NFL games."""

    @abstractmethod
    async def get_all_teams(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_team_by_id(self, team_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_team_by_code(self, team_code: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_or_update_team(self, team_data) -> Dict[str, Any]:
        """
        Upsert a team by code.

        Descriptive fields are only filled when they are currently empty, so
        the first sync to supply a value wins.
        """

    @abstractmethod
    async def get_team_count(self) -> int:
        ...

    @abstractmethod
    async def find_football_game(
        self, season_id: str, week: int, home_team_id: str, away_team_id: str
    ) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_football_game(self, game_data) -> Dict[str, Any]:
        """
        Raises:
            ConflictError: If (season, week, home, away) already exists
        """

    @abstractmethod
    async def update_football_game(self, game_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a partial update. Values are coerced to their column types and
        unknown keys are dropped.

        Raises:
            NotFoundError: If the game does not exist
            ConflictError: If the change collides with another game's (season, week, home, away)
        """

    async def _checked_football_game_update(self, game_id: str, updates) -> Dict[str, Any]:
        """Validated update fields for game_id, with the natural key checked against other games."""
        existing = await self.get_football_game_by_id(game_id)
        if existing is None:
            raise NotFoundError("Football game not found")
        fields = to_model(FootballGameUpdate, updates).model_dump(exclude_unset=True)
        if not any(k in fields and fields[k] != existing.get(k) for k in FOOTBALL_GAME_KEY):
            return fields

        merged = {**existing, **fields}
        if any(merged.get(k) is None for k in FOOTBALL_GAME_KEY):
            raise ValueError("season_id, week, home_team_id and away_team_id are required")
        if merged["home_team_id"] == merged["away_team_id"]:
            raise ValueError("Home and away teams must differ")
        clash = await self.find_football_game(*(merged[k] for k in FOOTBALL_GAME_KEY))
        if clash and clash["id"] != game_id:
            raise ConflictError("Football game already exists")
        return fields

    @abstractmethod
    async def update_game_score(
        self, game_id: str, home_score: int, away_score: int, status: Optional[str] = None
    ) -> Dict[str, Any]:
        """Record scores (and status) and stamp scores_updated_at."""

    @abstractmethod
    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_games_by_season_and_week(self, season_id: str, week: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_games_by_season(self, season_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_football_game_by_id(self, game_id: str) -> Optional[Dict[str, Any]]:
        ...


class GameService(ABC):
    """Pick'em games and their participants."""

    @abstractmethod
    async def get_user_games(self, user_id: str) -> List[Dict[str, Any]]:
        """Games the user belongs to with user_role, player_count and owner_count."""

    @abstractmethod
    async def get_game_by_id(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Game with participants, visible to participants only.

        Raises:
            AccessDeniedError: If user_id is not a participant
        """

    @abstractmethod
    async def get_game_by_slug(self, slug: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Game whose slugified name equals slug; participants and the commissioner may view.

        Raises:
            AccessDeniedError: If user_id may not view the game
        """

    @abstractmethod
    async def get_game_by_id_for_admin(self, game_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_game(self, game_data) -> Dict[str, Any]:
        """Create a game and add the commissioner as its owner."""

    @abstractmethod
    async def update_game(self, game_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_game(self, game_id: str) -> Dict[str, int]:
        """
        Delete a game: picks, standings, invitations, participants, then the game.

        Returns:
            Count of deleted records per step
        """

    @abstractmethod
    async def add_participant(self, game_id: str, user_id: str, role: str = "player") -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: If the game does not exist
            ConflictError: If the user is already in the game
        """

    @abstractmethod
    async def remove_participant(self, game_id: str, user_id: str) -> None:
        """
        Remove a player and their picks for the game.

        Raises:
            NotFoundError: If the user is not in the game
            AccessDeniedError: If the participant is an owner
        """

    @abstractmethod
    async def get_participant(self, game_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_game_participants(self, game_id: str) -> List[Dict[str, Any]]:
        """Participants with user names, owners first then by display name."""

    @abstractmethod
    async def get_game_count(self) -> int:
        ...

    @abstractmethod
    async def get_all_games(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_all_games_with_details(self) -> List[Dict[str, Any]]:
        """Every game with commissioner name, season label and participant count."""

    @abstractmethod
    async def update_game_season(self, game_id: str, season_id: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update_game_status(self, game_id: str, is_active: bool) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def assign_commissioner_to_orphaned_games(self, user_id: str) -> int:
        """Make user_id commissioner of every game without one. Returns the count."""

    @abstractmethod
    async def get_game_count_by_season(self, season_id: str) -> int:
        ...


class PickService(ABC):
    """Picks and their correctness."""

    @abstractmethod
    async def get_user_picks(
        self,
        user_id: str,
        game_id: Optional[str] = None,
        season_id: Optional[str] = None,
        week: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """A user's picks with team codes and kickoff, by week then start time."""

    @abstractmethod
    async def get_pick_by_id(self, pick_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_existing_pick(
        self, user_id: str, game_id: str, football_game_id: str
    ) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_or_update_pick(self, pick_data) -> Dict[str, Any]:
        """
        Upsert the pick for (user, game, scheduled game).

        Season and week are copied from the scheduled game. A changed pick
        resets correctness to unknown.

        Raises:
            NotFoundError: If the scheduled game does not exist
        """

    @abstractmethod
    async def delete_pick(self, pick_id: str, user_id: str) -> None:
        """
        Raises:
            NotFoundError: If the pick does not exist
            AccessDeniedError: If user_id does not own the pick
        """

    @abstractmethod
    async def has_picked_team_in_survivor(
        self, user_id: str, game_id: str, team_id: str, season_id: str
    ) -> bool:
        ...

    @abstractmethod
    async def update_pick_correctness(self, pick_id: str, is_correct: Optional[bool]) -> None:
        ...

    @abstractmethod
    async def bulk_update_pick_correctness(self, updates: List[Dict[str, Any]]) -> int:
        """Apply [{"pick_id": ..., "is_correct": ...}, ...]. Returns how many were applied."""

    @abstractmethod
    async def update_picks_for_game(
        self, football_game_id: str, winning_team_id: Optional[str]
    ) -> Dict[str, int]:
        """
        Settle every pick on a scheduled game.

        A pick is correct iff it chose winning_team_id; None (a tie) makes
        every pick incorrect.

        Returns:
            {"updated_count": n}
        """

    @abstractmethod
    async def get_picks_stats_by_season(self, season_id: str, week: Optional[int] = None) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def get_game_picks_summary(
        self, game_id: str, season_id: Optional[str] = None, week: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Per-participant totals, highest percentage first."""

    @abstractmethod
    async def delete_picks_for_game(self, game_id: str) -> int:
        ...

    @abstractmethod
    async def delete_picks_for_user_in_game(self, user_id: str, game_id: str) -> int:
        ...

    @abstractmethod
    async def delete_picks_for_user(self, user_id: str) -> int:
        ...


class InvitationService(ABC):
    """Game and admin invitations."""

    @abstractmethod
    async def create_invitation(self, invitation_data) -> Dict[str, Any]:
        """
        Raises:
            ConflictError: If a pending invitation exists for (game, email)
        """

    @abstractmethod
    async def create_admin_invitation(self, invitation_data) -> Dict[str, Any]:
        """
        Raises:
            ConflictError: If a pending admin invitation exists for the email
        """

    @abstractmethod
    async def get_invitation_by_id(self, invitation_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_invitation_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Invitation for token; None for malformed or unknown tokens."""

    @abstractmethod
    async def check_existing_invitation(self, game_id: str, email: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def check_existing_admin_invitation(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_pending_invitations(self, email: str) -> List[Dict[str, Any]]:
        """Unexpired pending invitations for email with game_name and invited_by_name."""

    @abstractmethod
    async def get_game_invitations(self, game_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def update_invitation_status(self, invitation_id: str, status: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def cancel_invitation(self, invitation_id: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_invitations_by_game(self, game_id: str) -> int:
        ...

    @abstractmethod
    async def delete_invitations_by_user(self, user_id: str, email: Optional[str] = None) -> int:
        """Delete invitations sent by user_id or addressed to email."""


class SystemSettingsService(ABC):
    """Runtime configuration keyed by (category, key)."""

    @abstractmethod
    async def get_settings_by_category(self, category: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_settings_for_categories(self, categories: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        ...

    @abstractmethod
    async def get_setting(self, category: str, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def update_setting(
        self,
        category: str,
        key: str,
        value: Optional[str],
        encrypted: bool = False,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_setting(self, category: str, key: str) -> None:
        """
        Raises:
            NotFoundError: If the setting does not exist
        """


class StandingsService(ABC):
    """Weekly standings derived from settled picks."""

    @abstractmethod
    async def recalculate_week(self, game_id: str, season_id: str, week: int) -> List[Dict[str, Any]]:
        """Recompute and store one row per participant; ties share a rank."""

    @abstractmethod
    async def get_weekly_standings(self, game_id: str, season_id: str, week: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def delete_standings_for_game(self, game_id: str) -> int:
        ...

    @abstractmethod
    async def delete_standings_for_user(self, user_id: str) -> int:
        ...


def rank_standings(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Order by correct picks desc and assign competition ranks (1, 1, 3, ...)."""
    ordered = sorted(rows, key=lambda r: (-r["correct_picks"], -r["pick_percentage"]))
    rank = 0
    previous = None
    for position, row in enumerate(ordered, start=1):
        marker = (row["correct_picks"], row["pick_percentage"])
        if marker != previous:
            rank = position
            previous = marker
        row["weekly_rank"] = rank
    return ordered


TEAM_DEFAULTS = {"conference": "Unknown", "division": "Unknown"}


def team_fills(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Incoming descriptive team fields whose stored value is empty or a placeholder default."""
    return {
        k: v for k, v in incoming.items()
        if k != "team_code" and v
        and (not existing.get(k) or existing.get(k) == TEAM_DEFAULTS.get(k))
    }


def new_team_record(incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Record for a first-seen team with defaults for missing fields."""
    record = {k: v for k, v in incoming.items() if v is not None}
    for field, default in TEAM_DEFAULTS.items():
        record.setdefault(field, default)
    record.setdefault("team_name", incoming["team_code"])
    record.setdefault("team_city", "")
    return record
