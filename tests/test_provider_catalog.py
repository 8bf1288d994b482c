from __future__ import annotations

import math
from dataclasses import dataclass

from watchfinder.services.provider_catalog import (
    PROVIDER_CATALOG,
    ProviderConfig,
    ProviderKey,
    catalog_order,
    match_provider,
    normalize_provider_name,
    sort_providers,
)


@dataclass(frozen=True)
class _Entry:
    key: str
    label: str = ""


def test_normalize_provider_name_folds_plus_and_punctuation() -> None:
    assert normalize_provider_name("  Disney+ ") == "disneyplus"
    assert normalize_provider_name("Apple TV Plus") == "appletvplus"
    assert normalize_provider_name("Coupang-Play") == "coupangplay"
    assert normalize_provider_name("") == ""


def test_match_provider_by_name_aliases() -> None:
    assert _matched_key("Netflix") == ProviderKey.NETFLIX
    assert _matched_key("Disney Plus") == ProviderKey.DISNEY
    assert _matched_key("Apple TV+") == ProviderKey.APPLE_TV_PLUS
    assert _matched_key("Watcha Play") == ProviderKey.WATCHA
    assert _matched_key("Amazon Prime Video") is None
    assert _matched_key("") is None


def test_match_provider_prefers_ids_over_names() -> None:
    catalog = (
        ProviderConfig(
            key=ProviderKey.NETFLIX,
            display_name="Netflix",
            order=0,
            match_names=("netflix",),
        ),
        ProviderConfig(
            key=ProviderKey.TVING,
            display_name="TVING",
            order=1,
            match_names=("tving",),
            match_ids=frozenset({8}),
        ),
    )

    matched = match_provider("Netflix", 8, catalog=catalog)

    assert matched is not None
    assert matched.key == ProviderKey.TVING

    by_name = match_provider("Netflix", 999, catalog=catalog)
    assert by_name is not None
    assert by_name.key == ProviderKey.NETFLIX


def test_catalog_order_is_unique_and_unknown_keys_sort_last() -> None:
    orders = [config.order for config in PROVIDER_CATALOG]
    assert len(set(orders)) == len(orders)
    assert catalog_order("netflix") == 0
    assert catalog_order("appletvplus") == 6
    assert catalog_order("mystery") == math.inf


def test_sort_providers_is_stable_for_unknown_and_equal_keys() -> None:
    entries = [
        _Entry("unknown", "first"),
        _Entry("wavve"),
        _Entry("other", "second"),
        _Entry("netflix"),
        _Entry("wavve", "duplicate"),
    ]

    ordered = sort_providers(entries)

    assert [(entry.key, entry.label) for entry in ordered] == [
        ("netflix", ""),
        ("wavve", ""),
        ("wavve", "duplicate"),
        ("unknown", "first"),
        ("other", "second"),
    ]


def _matched_key(name: str) -> ProviderKey | None:
    config = match_provider(name)
    if config is None:
        return None
    return config.key
