"""
SQLAlchemy ORM models for the pick'em data layer.

Ids are opaque strings and timestamps ISO-8601 UTC strings so records read
back identically from the SQLite and DynamoDB providers.
"""

from typing import Any, Dict
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from pickem.database.db import Base


class User(Base):
    """Registered user."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    favorite_team_id = Column(
        String(36), ForeignKey("football_teams.id", ondelete="SET NULL"), nullable=True
    )
    is_admin = Column(Boolean, nullable=False, default=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_token = Column(String(255), nullable=True)
    password_reset_token = Column(String(255), nullable=True)
    password_reset_expires = Column(String(40), nullable=True)
    last_login = Column(String(40), nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    favorite_team = relationship("Team", foreign_keys=[favorite_team_id])

    __table_args__ = (
        Index("idx_users_is_admin", "is_admin"),
        Index("idx_users_reset_token", "password_reset_token"),
    )


class Team(Base):
    """NFL team reference data."""

    __tablename__ = "football_teams"

    id = Column(String(36), primary_key=True)
    team_code = Column(String(10), nullable=False, unique=True)
    team_name = Column(String(100), nullable=False)
    team_city = Column(String(100), nullable=False)
    conference = Column(String(20), nullable=False, default="Unknown")
    division = Column(String(20), nullable=False, default="Unknown")
    team_primary_color = Column(String(20), nullable=True)
    team_secondary_color = Column(String(20), nullable=True)
    team_logo = Column(Text, nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)


class Season(Base):
    """NFL season. At most one row has is_current set."""

    __tablename__ = "seasons"

    id = Column(String(36), primary_key=True)
    season = Column(String(10), nullable=False, unique=True)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    __table_args__ = (Index("idx_seasons_is_current", "is_current"),)


class FootballGame(Base):
    """Real-world scheduled NFL game."""

    __tablename__ = "football_games"

    id = Column(String(36), primary_key=True)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week = Column(Integer, nullable=False)
    home_team_id = Column(String(36), ForeignKey("football_teams.id"), nullable=False)
    away_team_id = Column(String(36), ForeignKey("football_teams.id"), nullable=False)
    home_score = Column(Integer, nullable=True, default=0)
    away_score = Column(Integer, nullable=True, default=0)
    start_time = Column(String(40), nullable=True)
    status = Column(String(40), nullable=False, default="STATUS_SCHEDULED")
    season_type = Column(Integer, nullable=False, default=2)
    espn_game_id = Column(String(40), nullable=True)
    scores_updated_at = Column(String(40), nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    home_team = relationship("Team", foreign_keys=[home_team_id])
    away_team = relationship("Team", foreign_keys=[away_team_id])

    __table_args__ = (
        UniqueConstraint("season_id", "week", "home_team_id", "away_team_id"),
        Index("idx_football_games_season_week", "season_id", "week"),
    )


class PickemGame(Base):
    """A pick'em league."""

    __tablename__ = "pickem_games"

    id = Column(String(36), primary_key=True)
    game_name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False, default="weekly")
    commissioner_id = Column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    season_id = Column(String(36), ForeignKey("seasons.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    __table_args__ = (
        Index("idx_pickem_games_commissioner", "commissioner_id"),
        Index("idx_pickem_games_season", "season_id"),
    )


class GameParticipant(Base):
    """Membership of a user in a pick'em game."""

    __tablename__ = "game_participants"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(36), ForeignKey("pickem_games.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False, default="player")
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("game_id", "user_id"),
        Index("idx_participants_user", "user_id"),
    )


class Pick(Base):
    """A user's chosen team for one scheduled game inside one pick'em game."""

    __tablename__ = "picks"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(String(36), ForeignKey("pickem_games.id", ondelete="CASCADE"), nullable=False)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week = Column(Integer, nullable=False)
    football_game_id = Column(String(36), ForeignKey("football_games.id"), nullable=False)
    pick_team_id = Column(String(36), ForeignKey("football_teams.id"), nullable=False)
    is_correct = Column(Boolean, nullable=True)
    tiebreaker = Column(Integer, nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", "football_game_id"),
        Index("idx_picks_football_game", "football_game_id"),
        Index("idx_picks_game", "game_id"),
        Index("idx_picks_season_week", "season_id", "week"),
    )


class WeeklyStanding(Base):
    """Per-week pick totals and rank of a participant."""

    __tablename__ = "weekly_standings"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(String(36), ForeignKey("pickem_games.id", ondelete="CASCADE"), nullable=False)
    season_id = Column(String(36), ForeignKey("seasons.id"), nullable=False)
    week = Column(Integer, nullable=False)
    correct_picks = Column(Integer, nullable=False, default=0)
    total_picks = Column(Integer, nullable=False, default=0)
    pick_percentage = Column(Float, nullable=False, default=0.0)
    weekly_rank = Column(Integer, nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", "season_id", "week"),
        Index("idx_standings_game_season_week", "game_id", "season_id", "week"),
    )


class GameInvitation(Base):
    """Invitation to a pick'em game, or an admin invitation when game_id is empty."""

    __tablename__ = "game_invitations"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(36), ForeignKey("pickem_games.id", ondelete="CASCADE"), nullable=True)
    email = Column(String(255), nullable=False)
    invited_by_user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    invite_token = Column(String(255), nullable=False, unique=True)
    is_admin_invitation = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="pending")
    expires_at = Column(String(40), nullable=False)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    __table_args__ = (
        Index("idx_invitations_game_email", "game_id", "email"),
        Index("idx_invitations_email", "email"),
    )


class SystemSetting(Base):
    """Runtime configuration value keyed by (category, key)."""

    __tablename__ = "system_settings"

    id = Column(String(255), primary_key=True)
    category = Column(String(100), nullable=False)
    key = Column(String(100), nullable=False)
    value = Column(Text, nullable=True)
    encrypted = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    __table_args__ = (UniqueConstraint("category", "key"),)


def model_to_dict(obj) -> Dict[str, Any]:
    """Column values of an ORM instance as a plain dict."""
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}
