"""
Pydantic models for service input validation.

Services accept either these models or plain dicts with the same fields;
records come back as plain dicts.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from pickem.utils.constants import GAME_TYPES, ROLE_OWNER, ROLE_PLAYER


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_game_type(value: str) -> str:
    """Canonical game type; "week" is accepted as an alias of "weekly"."""
    value = (value or "").strip().lower()
    if value == "week":
        value = "weekly"
    if value not in GAME_TYPES:
        raise ValueError(f"game_type must be one of: {', '.join(GAME_TYPES)}")
    return value


class UserCreate(BaseModel):
    """Request to register a user. password is an already-hashed value."""

    email: str
    password: str
    first_name: str
    last_name: str
    favorite_team_id: Optional[str] = None
    is_admin: bool = False
    email_verified: bool = False
    email_verification_token: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = _normalize_email(v)
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class UserUpdate(BaseModel):
    """Profile fields a user can change."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    favorite_team_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_email(v) if v is not None else v


class TeamUpsert(BaseModel):
    """Team data from a schedule sync, keyed by team_code."""

    team_code: str
    team_name: Optional[str] = None
    team_city: Optional[str] = None
    conference: Optional[str] = None
    division: Optional[str] = None
    team_primary_color: Optional[str] = None
    team_secondary_color: Optional[str] = None
    team_logo: Optional[str] = None

    @field_validator("team_code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class FootballGameCreate(BaseModel):
    """A scheduled NFL game."""

    season_id: str
    week: int = Field(ge=0)
    home_team_id: str
    away_team_id: str
    home_score: Optional[int] = 0
    away_score: Optional[int] = 0
    start_time: Optional[str] = None
    status: str = "STATUS_SCHEDULED"
    season_type: int = 2
    espn_game_id: Optional[str] = None

    @model_validator(mode="after")
    def teams_differ(self):
        if self.home_team_id == self.away_team_id:
            raise ValueError("Home and away teams must differ")
        return self


class FootballGameUpdate(BaseModel):
    """Partial update of a scheduled game. Unknown keys are ignored."""

    season_id: Optional[str] = None
    week: Optional[int] = Field(default=None, ge=0)
    home_team_id: Optional[str] = None
    away_team_id: Optional[str] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    start_time: Optional[str] = None
    status: Optional[str] = None
    season_type: Optional[int] = None
    espn_game_id: Optional[str] = None
    scores_updated_at: Optional[str] = None


class PickemGameCreate(BaseModel):
    """Request to create a pick'em game."""

    game_name: str = Field(min_length=1)
    game_type: str = "weekly"
    commissioner_id: str
    season_id: Optional[str] = None

    @field_validator("game_type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return normalize_game_type(v)


class ParticipantCreate(BaseModel):
    """Request to add a user to a game."""

    user_id: str
    role: str = ROLE_PLAYER

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        if v not in (ROLE_OWNER, ROLE_PLAYER):
            raise ValueError("role must be 'owner' or 'player'")
        return v


class PickCreate(BaseModel):
    """Request to create or change a pick."""

    user_id: str
    game_id: str
    football_game_id: str
    pick_team_id: str
    tiebreaker: Optional[int] = None


class InvitationCreate(BaseModel):
    """Request to invite an email address to a game (or as admin when game_id is empty)."""

    email: str
    invited_by_user_id: str
    game_id: Optional[str] = None
    expires_in_days: int = Field(default=7, ge=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)
