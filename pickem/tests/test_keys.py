"""
Unit tests for the composite-key and index registry.
"""

import pytest

from pickem.providers import keys
from pickem.utils import constants as c


def test_composite_key_joins_parts_with_delimiter():
    assert keys.composite_key("u1", "g1", "f1") == "u1:g1:f1"
    assert keys.composite_key("s1", 3) == "s1:3"


@pytest.mark.parametrize("parts", [("u1", None), ("", "g1"), (None,)])
def test_composite_key_is_none_when_a_part_is_missing(parts):
    assert keys.composite_key(*parts) is None


def test_apply_composites_derives_every_pick_composite():
    record = {"id": "p1", "user_id": "u1", "game_id": "g1", "football_game_id": "f1", "season_id": "s1", "week": 2}
    result = keys.apply_composites(c.PICKS, record)
    assert result["user_game_football"] == "u1:g1:f1"
    assert result["user_id_game_id"] == "u1:g1"
    assert result["user_id_season_id"] == "u1:s1"
    assert result["season_id_week"] == "s1:2"
    # original untouched
    assert "user_game_football" not in record


def test_apply_composites_overrides_caller_supplied_values():
    record = {"category": "smtp", "key": "host", "category_key": "bogus"}
    assert keys.apply_composites(c.SYSTEM_SETTINGS, record)["category_key"] == "smtp:host"


def test_admin_invitation_has_no_game_email_composite():
    record = {"game_id": None, "email": "a@example.com"}
    assert keys.apply_composites(c.INVITATIONS, record)["game_email"] is None


def test_strip_composites_round_trip():
    record = {"id": "x", "game_id": "g", "user_id": "u", "role": "player"}
    stored = keys.apply_composites(c.PARTICIPANTS, record)
    assert keys.strip_composites(c.PARTICIPANTS, stored) == record


def test_tables_without_composites_pass_through():
    record = {"id": "u1", "email": "a@example.com"}
    assert keys.apply_composites(c.USERS, record) == record
    assert keys.composite_attributes(c.USERS) == {}


def test_touches_composite():
    assert keys.touches_composite(c.PICKS, ["week"])
    assert keys.touches_composite(c.PICKS, {"football_game_id": "f2"})
    assert not keys.touches_composite(c.PICKS, ["is_correct", "tiebreaker"])
    assert not keys.touches_composite(c.USERS, ["email"])


def test_index_condition_for_plain_index():
    assert keys.index_condition(c.USERS, "email-index", {"email": "a@example.com"}) == {"email": "a@example.com"}


def test_index_condition_builds_composite_value():
    criteria = {"user_id": "u1", "game_id": "g1", "football_game_id": "f1"}
    assert keys.index_condition(c.PICKS, "user_game_football-index", criteria) == {
        "user_game_football": "u1:g1:f1"
    }


def test_index_condition_unknown_index_raises_key_error():
    with pytest.raises(KeyError):
        keys.index_condition(c.USERS, "nope-index", {"email": "x"})


def test_can_use_index_needs_every_part():
    criteria = {"user_id": "u1", "game_id": "g1"}

    assert keys.index_parts(c.PICKS, "user_id_game_id-index") == ("user_id", "game_id")
    assert keys.can_use_index(c.PICKS, "user_id-index", criteria)
    assert keys.can_use_index(c.PICKS, "user_id_game_id-index", criteria)
    assert not keys.can_use_index(c.PICKS, "user_game_football-index", criteria)
    assert not keys.can_use_index(c.PICKS, "game_id-index", {"game_id": None})


def test_every_composite_has_an_index():
    for table, composites in keys.COMPOSITES.items():
        indexed = set(keys.INDEXES[table].values())
        for attribute in composites:
            assert attribute in indexed, (table, attribute)


def test_matches_treats_none_as_missing():
    assert keys.matches({"a": 1}, {"a": 1, "b": None})
    assert not keys.matches({"a": 1, "b": 2}, {"b": None})
    assert not keys.matches({"a": 1}, {"a": 2})
