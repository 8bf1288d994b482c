from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _default_provider_views() -> list[ProviderView]:
    return []


class ProviderView(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    key: str
    name: str
    logo_url: str | None = None
    link: str | None = None


class PaidProviders(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    rent: list[ProviderView] = Field(default_factory=_default_provider_views)
    buy: list[ProviderView] = Field(default_factory=_default_provider_views)


class RegionProviders(BaseModel):
    """
    Normalized availability for one region.

    `show_paid` tells clients to fall back to the rent/buy lists; it is only
    true when the region exists and has no subscription or free providers.
    """

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    country: str
    exists: bool
    message: str | None = None
    primary_providers: list[ProviderView] = Field(default_factory=_default_provider_views)
    paid_providers: PaidProviders = Field(default_factory=PaidProviders)
    show_paid: bool = False


class RegionLookup(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    kr: RegionProviders
    fallback: RegionProviders | None = None
