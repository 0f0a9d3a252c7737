"""
Region / tier / variant catalog.

Built once from the catalog file and read-only afterwards. Holds the alias
table (every alias and canonical key -> canonical key) and the default region
and variant pointers. All lookups are pure.
"""

import json
from pathlib import Path
from typing import Optional

from serverbook.core.access import AccessChecker
from serverbook.core.config import get_settings
from serverbook.core.logging import get_logger
from serverbook.schemas.catalog import CatalogConfig, RegionConfig, TierConfig, VariantConfig
from serverbook.schemas.message import Member

logger = get_logger(__name__)


class Catalog:
    def __init__(self, config: CatalogConfig):
        self.config = config
        self.regions = config.regions
        self.variants = config.variants
        self.default_region: Optional[str] = None
        self.default_variant: Optional[str] = None
        self._aliases: dict[str, str] = {}

        for key, region in self.regions.items():
            if region.default:
                self.default_region = key

            self._aliases[key] = key
            self._aliases[key.lower()] = key
            for alias in region.alias:
                self._aliases[alias] = key

        for key, variant in self.variants.items():
            if variant.default:
                self.default_variant = key

    @classmethod
    def from_dict(cls, data: dict) -> "Catalog":
        return cls(CatalogConfig.model_validate(data))

    @classmethod
    def from_file(cls, path: str) -> "Catalog":
        with Path(path).open(encoding="utf-8") as f:
            catalog = cls.from_dict(json.load(f))
        logger.info(
            "catalog_loaded",
            path=path,
            regions=len(catalog.regions),
            variants=len(catalog.variants),
            default_region=catalog.default_region,
        )
        return catalog

    # Regions

    def get_region_slug(self, region: Optional[str]) -> Optional[str]:
        if not region:
            return None
        return self._aliases.get(region)

    def parse_region(self, arg: str) -> Optional[str]:
        """Case-insensitive alias resolution for user input."""
        return self.get_region_slug(arg.strip().lower())

    def get_region_config(self, region: Optional[str]) -> Optional[RegionConfig]:
        slug = self.get_region_slug(region)
        return self.regions.get(slug) if slug else None

    def get_region_name(self, region: str) -> Optional[str]:
        config = self.get_region_config(region)
        return config.name if config else None

    def is_region_valid(self, region: str) -> bool:
        return self.get_region_slug(region) is not None

    def can_access_region(self, region: str, member: Member, access: AccessChecker) -> bool:
        config = self.get_region_config(region)
        if config is None or config.restriction is None:
            return True
        return access.has_access(member, config.restriction)

    # Tiers

    def get_tier_configs(self, region: str) -> dict[str, TierConfig]:
        config = self.get_region_config(region)
        return config.tiers if config else {}

    def get_tier_config(self, region: str, tier: str) -> Optional[TierConfig]:
        return self.get_tier_configs(region).get(tier)

    def is_tier_valid(self, region: str, tier: str) -> bool:
        return self.get_tier_config(region, tier) is not None

    # Variants

    def get_variant_config(self, variant: Optional[str]) -> Optional[VariantConfig]:
        if not variant:
            return None
        return self.variants.get(variant)

    def get_variant_list(self) -> dict[str, str]:
        """Display name -> variant key."""
        return {variant.name: key for key, variant in self.variants.items()}

    def provider_candidates(self, region: str, tier: str, variant: Optional[str]) -> list[str]:
        tier_config = self.get_tier_config(region, tier)
        if tier_config is None:
            return []
        variant_config = self.get_variant_config(variant)
        size = variant_config.providerSize if variant_config else None
        return tier_config.candidates(size)

    # Discovery

    def get_all_region_tags(self) -> list[str]:
        tags: list[str] = []
        for region in self.regions.values():
            if region.hidden:
                continue
            for tag in region.tags:
                if tag not in tags:
                    tags.append(tag)
        return tags

    def search_regions(self, text: str) -> list[dict]:
        text = text.lower()
        return [
            {"name": region.name, "value": key}
            for key, region in self.regions.items()
            if any(text in tag for tag in region.tags)
        ]

    def search_tiers(self, region: str, text: str) -> list[dict]:
        return [
            {"name": key, "value": key}
            for key in self.get_tier_configs(region)
            if text in key
        ]

    def filter_regions(self, continent: Optional[str] = None, tag: Optional[str] = None) -> list[str]:
        keys = []
        for key, region in self.regions.items():
            if continent and region.continent != continent:
                continue
            if tag and tag.lower() not in region.tags:
                continue
            keys.append(key)
        return sorted(keys)


_catalog: Optional[Catalog] = None


def get_catalog() -> Catalog:
    """Process-wide catalog, loaded lazily from CATALOG_PATH."""
    global _catalog
    if _catalog is None:
        _catalog = Catalog.from_file(get_settings().CATALOG_PATH)
    return _catalog


def reload_catalog() -> Catalog:
    global _catalog
    _catalog = None
    return get_catalog()
