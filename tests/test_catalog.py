"""
Tests for catalog loading, alias resolution and provider normalization.
"""

import pytest
from pydantic import ValidationError

from serverbook.core.access import AccessChecker, PremiumRoles
from serverbook.schemas.message import Member
from serverbook.services.catalog import Catalog
from conftest import CATALOG


def test_alias_resolution(catalog):
    assert catalog.get_region_slug("sydney") == "sydney"
    assert catalog.get_region_slug("syd") == "sydney"
    assert catalog.get_region_slug("au") == "sydney"
    assert catalog.get_region_slug("nowhere") is None


def test_parse_region_is_case_insensitive(catalog):
    assert catalog.parse_region("  SYD ") == "sydney"
    assert catalog.parse_region("Bangalore") == "bangalore"


def test_defaults(catalog):
    assert catalog.default_region == "sydney"
    assert catalog.default_variant == "tf2-comp"


def test_provider_candidates_shapes(catalog):
    # list
    assert catalog.provider_candidates("sydney", "free", "tf2-comp") == ["vultr-syd", "aws-syd"]
    # single string
    assert catalog.provider_candidates("bangalore", "free", None) == ["aws-blr"]
    # size-keyed, default bucket is medium
    assert catalog.provider_candidates("sydney", "premium", "tf2-comp") == ["aws-syd"]
    assert catalog.provider_candidates("sydney", "premium", "tf2-mge") == ["vultr-syd"]
    assert catalog.provider_candidates("sydney", "nope", None) == []


def test_region_restriction(catalog):
    access = AccessChecker(PremiumRoles({1: "role-t1", 2: "role-t2", 3: "role-t3"}))
    assert not catalog.can_access_region("bangalore", Member(id="1"), access)
    assert catalog.can_access_region("bangalore", Member(id="1", roles=["role-t2"]), access)
    assert catalog.can_access_region("sydney", Member(id="1"), access)


def test_tags_exclude_hidden_regions(catalog):
    tags = catalog.get_all_region_tags()
    assert "oceania" in tags
    assert "internal" not in tags


def test_search_regions_by_tag(catalog):
    names = {item["value"] for item in catalog.search_regions("asia")}
    assert names == {"bangalore", "singapore"}


def test_filter_regions(catalog):
    assert catalog.filter_regions(continent="asia") == ["bangalore", "singapore"]
    assert catalog.filter_regions(tag="India") == ["bangalore"]


def test_variant_list(catalog):
    assert catalog.get_variant_list() == {"TF2 Competitive": "tf2-comp", "TF2 MGE": "tf2-mge"}


def test_disabled_tier(catalog):
    assert not catalog.get_tier_config("singapore", "staff").enabled


def test_two_default_regions_rejected():
    data = {
        "regions": {
            "a": {"name": "A", "default": True},
            "b": {"name": "B", "default": True},
        }
    }
    with pytest.raises(ValidationError):
        Catalog.from_dict(data)


def test_alias_collision_rejected():
    data = {
        "regions": {
            "a": {"name": "A", "alias": ["x"]},
            "b": {"name": "B", "alias": ["X"]},
        }
    }
    with pytest.raises(ValidationError):
        Catalog.from_dict(data)


def test_catalog_from_file(tmp_path):
    import json

    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG))
    catalog = Catalog.from_file(str(path))
    assert set(catalog.regions) == set(CATALOG["regions"])


def test_bare_restricted_flag_denies_everyone():
    data = {
        "regions": {
            "vip": {"name": "VIP", "restricted": True, "tiers": {"free": {"limit": 1, "provider": "x"}}},
            "open": {"name": "Open", "restricted": False},
        }
    }
    catalog = Catalog.from_dict(data)
    access = AccessChecker(PremiumRoles({1: "role-t1", 2: "role-t2", 3: "role-t3"}))
    everything = Member(id="1", roles=["role-t1", "role-t2", "role-t3"])

    assert not catalog.can_access_region("vip", Member(id="1"), access)
    assert not catalog.can_access_region("vip", everything, access)
    assert catalog.can_access_region("open", Member(id="1"), access)


def test_role_id_restriction():
    data = {"regions": {"club": {"name": "Club", "restricted": "777"}}}
    catalog = Catalog.from_dict(data)
    access = AccessChecker(PremiumRoles({}))

    assert catalog.can_access_region("club", Member(id="1", roles=["777"]), access)
    assert not catalog.can_access_region("club", Member(id="1", roles=["778"]), access)
