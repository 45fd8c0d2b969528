"""Predicate building: WHERE text and positional parameters per filter set."""

import pytest

from gameadmin.filters import (
    AccountFilters,
    CharacterFilters,
    PredicateSet,
    build_account_predicates,
    build_character_predicates,
)

NOW = 1_750_000_000


def test_empty_account_filters_render_empty_where():
    p = build_account_predicates(AccountFilters(), now=NOW)
    assert len(p) == 0
    assert p.render() == ("", [])


def test_string_filters_are_substring_like():
    where, params = build_account_predicates(AccountFilters(login="adm"), now=NOW).render()
    assert where == "WHERE accounts.login LIKE ? ESCAPE '/'"
    assert params == ["%adm%"]


def test_parameters_follow_condition_order():
    p = build_account_predicates(
        AccountFilters(
            login="p",
            last_ip="192.168",
            access_level=0,
            last_active_from=100,
            last_active_to=200,
        ),
        now=NOW,
    )
    where, params = p.render()
    assert where.startswith("WHERE ")
    assert where.count(" AND ") == 4
    assert params == ["%p%", "%192.168%", 0, 100, 200]


def test_is_banned_true_and_false_compare_against_now():
    where, params = build_account_predicates(AccountFilters(is_banned=True), now=NOW).render()
    assert "ban_expire > ?" in where
    assert params == [NOW]

    where, params = build_account_predicates(AccountFilters(is_banned=False), now=NOW).render()
    assert "ban_expire <= ?" in where
    assert params == [NOW]


def test_character_filters_always_hide_deleted_by_default():
    where, params = build_character_predicates(CharacterFilters()).render()
    assert where == "WHERE characters.deletetime = ?"
    assert params == [0]


def test_character_deleted_only_replaces_soft_delete_predicate():
    where, params = build_character_predicates(CharacterFilters(deleted_only=True)).render()
    assert where == "WHERE characters.deletetime > ?"
    assert "deletetime = ?" not in where
    assert params == [0]


def test_character_online_flag_maps_to_int_and_soft_delete_is_last():
    p = build_character_predicates(
        CharacterFilters(char_name="Ara", online=False, min_level=10, max_level=20)
    )
    where, params = p.render()
    assert "characters.online = ?" in where
    assert where.endswith("characters.deletetime = ?")
    assert params == ["%Ara%", 0, 10, 20, 0]


def test_predicate_set_apply_is_noop_when_empty():
    from sqlalchemy import select

    from gameadmin.models import Account

    stmt = select(Account.login)
    assert PredicateSet().apply(stmt) is stmt


@pytest.mark.parametrize(
    "value,pattern",
    [
        ("%", "%/%%"),
        ("layer_1", "%layer/_1%"),
        ("a/b", "%a//b%"),
        ("100%_x", "%100/%/_x%"),
    ],
)
def test_like_wildcards_in_values_are_escaped(value, pattern):
    _, params = build_character_predicates(CharacterFilters(char_name=value)).render()
    assert params[0] == pattern
