"""Tests for plotline.conditions — grammar and threshold evaluation."""

import pytest

from plotline.conditions import Clause, check_condition, parse_condition
from plotline.variables import VariableStore


# ── parse_condition ──────────────────────────────────────────


def test_bare_name_means_at_least_one():
    assert parse_condition("gold") == (Clause("gold", ">=", 1),)


def test_negation_means_zero():
    assert parse_condition("!key") == (Clause("key", "<", 1),)


def test_compound_clauses():
    assert parse_condition("gold >= 5 & gold < 10") == (
        Clause("gold", ">=", 5),
        Clause("gold", "<", 10),
    )


def test_legacy_brackets():
    assert parse_condition("[key]") == (Clause("key", ">=", 1),)
    assert parse_condition("[!key]") == (Clause("key", "<", 1),)


@pytest.mark.parametrize("expr", ["", "gold >>= 5", "!gold >= 3", "gold >= five", "1gold"])
def test_malformed_expressions(expr):
    assert parse_condition(expr) is None


# ── check_condition ──────────────────────────────────────────


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("gold >= 5", True),
        ("gold > 5", False),
        ("gold <= 5", True),
        ("gold < 5", False),
        ("gold == 5", True),
        ("gold != 5", False),
        ("gold >= 6", False),
        ("gold > 4", True),
        ("gold >= 5 & gold < 10", True),
        ("gold >= 5 & sword", False),
    ],
)
def test_thresholds(expr, expected):
    store = VariableStore({"gold": 5})
    assert check_condition(expr, store.has) is expected


def test_unknown_variable_is_zero():
    store = VariableStore()
    assert check_condition("!key", store.has) is True
    assert check_condition("key", store.has) is False
    assert check_condition("key == 0", store.has) is True
    assert check_condition("key <= 0", store.has) is True


def test_malformed_never_holds():
    store = VariableStore({"gold": 5})
    assert check_condition("gold >>= 1", store.has) is False


def test_single_argument_callback_is_enough_for_flags():
    def has(name):
        return name == "key"

    assert check_condition("key", has) is True
    assert check_condition("!key", has) is False
    assert check_condition("!door", has) is True
