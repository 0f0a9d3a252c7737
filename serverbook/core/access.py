"""
Access spec grammar.

An access spec is either a boolean or a compact string:

    F          anybody
    T23        holders of premium tier 2 or tier 3
    <role id>  holders of that role
    A|B        any of the alternatives (each may use the forms above)

Specs are parsed once into rule objects and evaluated against a member's
role list. Premium tier role ids come from settings; a tier configured as
"<bypass>" is granted to every member.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Union

from serverbook.schemas.message import Member

BYPASS_ROLE = "<bypass>"

AccessSpec = Union[bool, str, None]


class PremiumRoles:
    """Maps premium tier numbers to role ids."""

    def __init__(self, roles: Mapping[int, str]):
        self._roles = dict(roles)

    @classmethod
    def from_settings(cls, settings) -> "PremiumRoles":
        return cls({
            1: settings.PREMIUM_TIER_1_ROLE,
            2: settings.PREMIUM_TIER_2_ROLE,
            3: settings.PREMIUM_TIER_3_ROLE,
        })

    def has_tier(self, member: Member, tier: int) -> bool:
        role = self._roles.get(tier)
        if not role:
            return False
        if role == BYPASS_ROLE:
            return True
        return role in member.roles


class AccessRule:
    def allows(self, member: Member, premium: PremiumRoles) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class AlwaysAllow(AccessRule):
    def allows(self, member: Member, premium: PremiumRoles) -> bool:
        return True


@dataclass(frozen=True)
class AlwaysDeny(AccessRule):
    def allows(self, member: Member, premium: PremiumRoles) -> bool:
        return False


@dataclass(frozen=True)
class RoleId(AccessRule):
    role_id: str

    def allows(self, member: Member, premium: PremiumRoles) -> bool:
        return self.role_id in member.roles


@dataclass(frozen=True)
class TierSet(AccessRule):
    tiers: frozenset

    def allows(self, member: Member, premium: PremiumRoles) -> bool:
        return any(premium.has_tier(member, tier) for tier in sorted(self.tiers))


@dataclass(frozen=True)
class Alternation(AccessRule):
    rules: tuple

    def allows(self, member: Member, premium: PremiumRoles) -> bool:
        return any(rule.allows(member, premium) for rule in self.rules)


def parse_access(spec: AccessSpec) -> AccessRule:
    """Parse an access spec; ``None`` and empty strings deny."""
    if spec is None:
        return AlwaysDeny()
    if isinstance(spec, bool):
        return AlwaysAllow() if spec else AlwaysDeny()

    spec = spec.strip()
    if not spec:
        return AlwaysDeny()

    if "|" in spec:
        parts = [part for part in spec.split("|") if part.strip()]
        return Alternation(tuple(parse_access(part) for part in parts))

    if spec.startswith("F"):
        return AlwaysAllow()

    if spec.startswith("T"):
        # Unknown digits are ignored, only tiers 1-3 exist
        tiers = frozenset(int(c) for c in spec[1:] if c in "123")
        return TierSet(tiers)

    return RoleId(spec)


class AccessChecker:
    """Evaluates access specs for members, caching parsed rules per spec string."""

    def __init__(self, premium: PremiumRoles):
        self.premium = premium
        self._parsed: dict = {}

    def rule(self, spec: Union[AccessSpec, AccessRule]) -> AccessRule:
        if isinstance(spec, AccessRule):
            return spec
        key = (type(spec), spec)
        if key not in self._parsed:
            self._parsed[key] = parse_access(spec)
        return self._parsed[key]

    def has_access(self, member: Optional[Member], spec: Union[AccessSpec, AccessRule]) -> bool:
        if member is None:
            return False
        return self.rule(spec).allows(member, self.premium)

    def has_tier(self, member: Member, tier: int) -> bool:
        return self.premium.has_tier(member, tier)
