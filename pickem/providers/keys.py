"""
Composite-key and secondary-index registry for the key-value backend.

DynamoDB can only look records up by primary key or by a declared index's
attributes. Multi-attribute lookups ("the pick for this user, game and
matchup") are served by a synthetic attribute that joins the natural keys
with DELIMITER and carries its own index. Composites are derived on every
write and are never settable by callers.
"""

from typing import Any, Dict, Iterable, Optional, Tuple

from pickem.utils import constants as c

DELIMITER = ":"

# table -> {composite attribute: natural key parts}
COMPOSITES = {
    c.PARTICIPANTS: {
        "game_id_user_id": ("game_id", "user_id"),
    },
    c.PICKS: {
        "user_game_football": ("user_id", "game_id", "football_game_id"),
        "user_id_game_id": ("user_id", "game_id"),
        "user_id_season_id": ("user_id", "season_id"),
        "season_id_week": ("season_id", "week"),
    },
    c.FOOTBALL_GAMES: {
        "season_id_week": ("season_id", "week"),
    },
    c.INVITATIONS: {
        "game_email": ("game_id", "email"),
    },
    c.SYSTEM_SETTINGS: {
        "category_key": ("category", "key"),
    },
    c.WEEKLY_STANDINGS: {
        "game_season_week": ("game_id", "season_id", "week"),
    },
}

# table -> {index name: partition attribute}
INDEXES = {
    c.USERS: {
        "email-index": "email",
        "is_admin-index": "is_admin",
    },
    c.TEAMS: {
        "team_code-index": "team_code",
    },
    c.SEASONS: {
        "season-index": "season",
        "is_current-index": "is_current",
    },
    c.FOOTBALL_GAMES: {
        "season_id-index": "season_id",
        "season_id_week-index": "season_id_week",
        "home_team_id-index": "home_team_id",
        "away_team_id-index": "away_team_id",
    },
    c.PICKEM_GAMES: {
        "commissioner_id-index": "commissioner_id",
        "season_id-index": "season_id",
    },
    c.PARTICIPANTS: {
        "game_id-index": "game_id",
        "user_id-index": "user_id",
        "game_id-user_id-index": "game_id_user_id",
    },
    c.PICKS: {
        "user_id-index": "user_id",
        "game_id-index": "game_id",
        "season_id-index": "season_id",
        "football_game_id-index": "football_game_id",
        "user_game_football-index": "user_game_football",
        "user_id_game_id-index": "user_id_game_id",
        "user_id_season_id-index": "user_id_season_id",
        "season_id_week-index": "season_id_week",
    },
    c.WEEKLY_STANDINGS: {
        "user_id-index": "user_id",
        "game_id-index": "game_id",
        "game_season_week-index": "game_season_week",
    },
    c.INVITATIONS: {
        "game_id-index": "game_id",
        "invite_token-index": "invite_token",
        "email-index": "email",
        "game_email-index": "game_email",
        "invited_by_user_id-index": "invited_by_user_id",
    },
    c.SYSTEM_SETTINGS: {
        "category-index": "category",
        "category_key-index": "category_key",
    },
}

# Boolean attributes used as index partition keys are stored as "true"/"false"
BOOLEAN_KEY_ATTRIBUTES = {
    c.USERS: ("is_admin",),
    c.SEASONS: ("is_current",),
}


def composite_key(*parts: Any) -> Optional[str]:
    """
    Join natural key parts into a composite attribute value.

    Returns None when any part is missing so the attribute is left off the
    record instead of indexing a partial key.
    """
    if any(part is None or part == "" for part in parts):
        return None
    return DELIMITER.join(str(part) for part in parts)


def composite_attributes(table: str) -> Dict[str, tuple]:
    return COMPOSITES.get(table, {})


def apply_composites(table: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of record with every composite for table recomputed."""
    result = dict(record)
    for attribute, parts in composite_attributes(table).items():
        result[attribute] = composite_key(*(record.get(part) for part in parts))
    return result


def strip_composites(table: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """Drop derived attributes so both backends return the same record shape."""
    derived = composite_attributes(table)
    return {k: v for k, v in record.items() if k not in derived}


def touches_composite(table: str, fields: Iterable[str]) -> bool:
    """True if any of fields is a natural part of one of the table's composites."""
    fields = set(fields)
    return any(fields & set(parts) for parts in composite_attributes(table).values())


def index_attribute(table: str, index_name: str) -> str:
    """Partition attribute for a declared index (KeyError if not declared)."""
    return INDEXES[table][index_name]


def index_parts(table: str, index_name: str) -> Tuple[str, ...]:
    """Natural attributes a query on index_name needs."""
    attribute = index_attribute(table, index_name)
    return tuple(composite_attributes(table).get(attribute) or (attribute,))


def can_use_index(table: str, index_name: str, criteria: Dict[str, Any]) -> bool:
    """True if criteria supply a value for every part of index_name."""
    return all(criteria.get(part) is not None for part in index_parts(table, index_name))


def index_condition(table: str, index_name: str, criteria: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the key condition for querying index_name from natural criteria.

    For a composite index the composite value is assembled from the criteria's
    natural parts.

    Raises:
        KeyError: If the index is unknown or criteria lack a required part
    """
    attribute = index_attribute(table, index_name)
    parts = composite_attributes(table).get(attribute)
    if parts:
        return {attribute: composite_key(*(criteria[part] for part in parts))}
    return {attribute: criteria[attribute]}


def matches(record: Dict[str, Any], criteria: Dict[str, Any]) -> bool:
    """Client-side equality filter; a None criterion matches a missing attribute."""
    return all(record.get(k) == v for k, v in criteria.items())
