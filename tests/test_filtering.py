from __future__ import annotations

import pytest

from dynaview.filtering import fuzzy_filter, fuzzy_match


@pytest.mark.parametrize(
    "candidate, text, expected",
    [
        ("Orders", "ord", True),
        ("Orders", "ORD", True),
        ("prod-orders-v2", "pov2", True),
        ("Orders", "sr", False),
        ("Users", "", True),
        ("", "a", False),
        ("aab", "ab", True),
    ],
)
def test_fuzzy_match(candidate, text, expected):
    assert fuzzy_match(candidate, text) is expected


def test_fuzzy_filter_keeps_order():
    names = ["prod-users", "dev-orders", "prod-orders", "audit"]
    assert fuzzy_filter(names, "pord") == ["prod-orders"]
    assert fuzzy_filter(names, "ord") == ["dev-orders", "prod-orders"]


def test_fuzzy_filter_empty_text_returns_everything():
    names = ["b", "a"]
    assert fuzzy_filter(names, None) == ["b", "a"]
    assert fuzzy_filter(names, "") == ["b", "a"]
