"""
Constants shared by the storage providers and domain services.
"""

# Logical table names; DynamoDB prepends the configured prefix
USERS = "users"
TEAMS = "football_teams"
SEASONS = "seasons"
FOOTBALL_GAMES = "football_games"
PICKEM_GAMES = "pickem_games"
PARTICIPANTS = "game_participants"
PICKS = "picks"
WEEKLY_STANDINGS = "weekly_standings"
INVITATIONS = "game_invitations"
SYSTEM_SETTINGS = "system_settings"

ALL_TABLES = (
    USERS,
    TEAMS,
    SEASONS,
    FOOTBALL_GAMES,
    PICKEM_GAMES,
    PARTICIPANTS,
    PICKS,
    WEEKLY_STANDINGS,
    INVITATIONS,
    SYSTEM_SETTINGS,
)

# ESPN and manual entry use different spellings for a finished game
COMPLETED_STATUSES = ("STATUS_FINAL", "STATUS_CLOSED", "Final")
SCHEDULED_STATUS = "STATUS_SCHEDULED"

SEASON_TYPE_PRESEASON = 1
SEASON_TYPE_REGULAR = 2
SEASON_TYPE_POSTSEASON = 3

GAME_TYPES = ("weekly", "survivor")

ROLE_OWNER = "owner"
ROLE_PLAYER = "player"

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_CANCELLED = "cancelled"
INVITATION_STATUSES = (INVITATION_PENDING, INVITATION_ACCEPTED, INVITATION_CANCELLED)
INVITATION_EXPIRY_DAYS = 7

PASSWORD_RESET_EXPIRY_HOURS = 1

# Items per DynamoDB TransactWriteItems call
MAX_TRANSACTION_ITEMS = 25
