"""
Pydantic models for the static region / tier / variant catalog file.

Union-shaped values are normalized while the file is parsed: tier providers
become ordered candidate lists per size bucket, region restrictions become
access rules.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from serverbook.core.access import AccessRule, AlwaysDeny, parse_access

DEFAULT_PROVIDER_SIZE = "medium"

ProviderShape = Union[str, list[str], dict[str, Union[str, list[str]]]]


class TierConfig(BaseModel):
    limit: int = Field(ge=0)
    provider: ProviderShape
    minPlayers: Optional[int] = None
    idleTime: Optional[int] = None
    waitTime: Optional[int] = None
    allowReservation: bool = False
    earlyStart: int = Field(default=0, ge=0)

    _fixed: Optional[tuple] = PrivateAttr(default=None)
    _by_size: dict = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        if isinstance(self.provider, str):
            self._fixed = (self.provider,)
        elif isinstance(self.provider, list):
            self._fixed = tuple(self.provider)
        else:
            self._by_size = {
                size: (value,) if isinstance(value, str) else tuple(value)
                for size, value in self.provider.items()
            }

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def candidates(self, size: Optional[str] = None) -> list[str]:
        """Providers to try, in order, for a variant of the given size."""
        if self._fixed is not None:
            return list(self._fixed)
        return list(self._by_size.get(size or DEFAULT_PROVIDER_SIZE, ()))


class RegionConfig(BaseModel):
    name: str
    alias: list[str] = Field(default_factory=list)
    continent: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    restricted: Optional[Union[bool, str]] = None
    hidden: bool = False
    default: bool = False
    tiers: dict[str, TierConfig] = Field(default_factory=dict)

    _restriction: Optional[AccessRule] = PrivateAttr(default=None)

    def model_post_init(self, __context: Any) -> None:
        if self.restricted is True:
            # A bare flag names no role, so nobody can satisfy it
            self._restriction = AlwaysDeny()
        elif self.restricted not in (None, "", False):
            self._restriction = parse_access(self.restricted)

    @field_validator("alias", "tags")
    @classmethod
    def _lowercase(cls, values: list[str]) -> list[str]:
        return [value.lower() for value in values]

    @property
    def restriction(self) -> Optional[AccessRule]:
        return self._restriction


class VariantConfig(BaseModel):
    name: str
    default: bool = False
    map: Optional[str] = None
    gitRepo: Optional[str] = None
    gitKey: Optional[str] = None
    providerSize: Optional[str] = None
    minPlayers: Optional[int] = None
    idleTime: Optional[int] = None
    waitTime: Optional[int] = None


class CatalogConfig(BaseModel):
    regions: dict[str, RegionConfig]
    variants: dict[str, VariantConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_defaults_and_aliases(self) -> "CatalogConfig":
        default_regions = [key for key, region in self.regions.items() if region.default]
        if len(default_regions) > 1:
            raise ValueError(f"More than one default region: {default_regions}")

        default_variants = [key for key, variant in self.variants.items() if variant.default]
        if len(default_variants) > 1:
            raise ValueError(f"More than one default variant: {default_variants}")

        seen: dict[str, str] = {}
        for key, region in self.regions.items():
            for name in [key.lower(), *region.alias]:
                owner = seen.setdefault(name, key)
                if owner != key:
                    raise ValueError(f"Region alias '{name}' is used by '{owner}' and '{key}'")

        return self
