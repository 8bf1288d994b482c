from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from watchfinder.models.provider_contracts import (
    PaidProviders,
    ProviderView,
    RegionLookup,
    RegionProviders,
)
from watchfinder.models.tmdb_contracts import TmdbCountryProviders, TmdbProvider
from watchfinder.services.provider_catalog import (
    PROVIDER_CATALOG,
    ProviderConfig,
    match_provider,
    sort_providers,
)
from watchfinder.services.tmdb_client import DEFAULT_IMAGE_BASE_URL, logo_url

DEFAULT_PRIMARY_REGION = "KR"
DEFAULT_FALLBACK_REGION = "US"
PRIMARY_REGION_MISSING_MESSAGE = "한국(KR) 제공처 데이터가 없습니다."


def to_provider_views(
    records: Iterable[TmdbProvider] | None,
    region_link: str | None,
    *,
    image_base_url: str = DEFAULT_IMAGE_BASE_URL,
    catalog: Sequence[ProviderConfig] = PROVIDER_CATALOG,
) -> list[ProviderView]:
    views: dict[str, ProviderView] = {}
    for record in records or ():
        config = match_provider(
            record.provider_name,
            record.provider_id,
            catalog=catalog,
        )
        if config is None:
            continue
        key = str(config.key)
        if key in views:
            continue
        views[key] = ProviderView(
            key=key,
            name=config.display_name,
            logo_url=logo_url(record.logo_path, base_url=image_base_url),
            link=region_link or None,
        )
    return sort_providers(views.values())


def dedup_by_key(views: Iterable[ProviderView]) -> list[ProviderView]:
    deduped: dict[str, ProviderView] = {}
    for view in views:
        deduped.setdefault(view.key, view)
    return list(deduped.values())


def build_region_providers(
    country: str,
    entry: TmdbCountryProviders | None,
    *,
    primary_region: str = DEFAULT_PRIMARY_REGION,
    image_base_url: str = DEFAULT_IMAGE_BASE_URL,
) -> RegionProviders:
    if entry is None:
        return RegionProviders(
            country=country,
            exists=False,
            message=PRIMARY_REGION_MISSING_MESSAGE if country == primary_region else None,
            primary_providers=[],
            paid_providers=PaidProviders(rent=[], buy=[]),
            show_paid=False,
        )

    link = entry.link
    flatrate = to_provider_views(entry.flatrate, link, image_base_url=image_base_url)
    free = to_provider_views(entry.free, link, image_base_url=image_base_url)
    rent = to_provider_views(entry.rent, link, image_base_url=image_base_url)
    buy = to_provider_views(entry.buy, link, image_base_url=image_base_url)

    # Flatrate is concatenated first so it wins over free on duplicate keys.
    primary_providers = sort_providers(dedup_by_key([*flatrate, *free]))
    return RegionProviders(
        country=country,
        exists=True,
        primary_providers=primary_providers,
        paid_providers=PaidProviders(rent=rent, buy=buy),
        show_paid=len(primary_providers) == 0,
    )


def resolve_regions(
    results: Mapping[str, TmdbCountryProviders],
    *,
    primary_region: str = DEFAULT_PRIMARY_REGION,
    fallback_region: str = DEFAULT_FALLBACK_REGION,
    image_base_url: str = DEFAULT_IMAGE_BASE_URL,
) -> RegionLookup:
    primary_entry = results.get(primary_region)
    fallback_entry = results.get(fallback_region)

    primary = build_region_providers(
        primary_region,
        primary_entry,
        primary_region=primary_region,
        image_base_url=image_base_url,
    )
    fallback: RegionProviders | None = None
    if primary_entry is None and fallback_entry is not None:
        fallback = build_region_providers(
            fallback_region,
            fallback_entry,
            primary_region=primary_region,
            image_base_url=image_base_url,
        )
    return RegionLookup(kr=primary, fallback=fallback)


def has_any_providers(entry: TmdbCountryProviders | None) -> bool:
    if entry is None:
        return False
    tiers = (entry.flatrate, entry.free, entry.rent, entry.buy)
    return any(len(tier or ()) > 0 for tier in tiers)
