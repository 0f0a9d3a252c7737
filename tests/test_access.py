"""
Tests for the access spec grammar and its evaluation.
"""

import pytest

from serverbook.core.access import (
    AccessChecker,
    Alternation,
    AlwaysAllow,
    AlwaysDeny,
    BYPASS_ROLE,
    PremiumRoles,
    RoleId,
    TierSet,
    parse_access,
)
from serverbook.schemas.message import Member

PREMIUM = PremiumRoles({1: "role-t1", 2: "role-t2", 3: "role-t3"})


@pytest.mark.parametrize(
    "spec, expected",
    [
        (True, AlwaysAllow()),
        (False, AlwaysDeny()),
        (None, AlwaysDeny()),
        ("", AlwaysDeny()),
        ("F", AlwaysAllow()),
        ("T23", TierSet(frozenset({2, 3}))),
        ("12345", RoleId("12345")),
    ],
)
def test_parse_simple_specs(spec, expected):
    assert parse_access(spec) == expected


def test_parse_alternation():
    rule = parse_access("T3|999")
    assert rule == Alternation((TierSet(frozenset({3})), RoleId("999")))


def test_tier_holder_allowed():
    checker = AccessChecker(PREMIUM)
    assert checker.has_access(Member(id="1", roles=["role-t2"]), "T23")
    assert not checker.has_access(Member(id="1", roles=["role-t1"]), "T23")


def test_alternation_matches_any_branch():
    checker = AccessChecker(PREMIUM)
    member = Member(id="1", roles=["999"])
    assert checker.has_access(member, "T3|999")
    assert not checker.has_access(Member(id="2"), "T3|999")


def test_unconditional_and_boolean_specs():
    checker = AccessChecker(PREMIUM)
    nobody = Member(id="1")
    assert checker.has_access(nobody, "F")
    assert checker.has_access(nobody, True)
    assert not checker.has_access(nobody, False)


def test_missing_member_is_denied():
    assert not AccessChecker(PREMIUM).has_access(None, "F")


def test_bypass_tier_grants_everyone():
    premium = PremiumRoles({1: "role-t1", 2: BYPASS_ROLE, 3: "role-t3"})
    checker = AccessChecker(premium)
    assert checker.has_access(Member(id="1"), "T2")
    assert not checker.has_access(Member(id="1"), "T3")


def test_parsed_rules_are_reused():
    checker = AccessChecker(PREMIUM)
    assert checker.rule("T23") is checker.rule("T23")
