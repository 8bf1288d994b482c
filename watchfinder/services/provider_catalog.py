from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol, TypeVar

_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]+")


class ProviderKey(StrEnum):
    NETFLIX = "netflix"
    DISNEY = "disney"
    TVING = "tving"
    COUPANG_PLAY = "coupangplay"
    WAVVE = "wavve"
    WATCHA = "watcha"
    APPLE_TV_PLUS = "appletvplus"


@dataclass(frozen=True)
class ProviderConfig:
    key: ProviderKey
    display_name: str
    order: int
    match_names: tuple[str, ...]
    match_ids: frozenset[int] = field(default_factory=frozenset)


# Declared order is the matching order; `order` is the display order.
PROVIDER_CATALOG: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        key=ProviderKey.NETFLIX,
        display_name="Netflix",
        order=0,
        match_names=("netflix",),
    ),
    ProviderConfig(
        key=ProviderKey.DISNEY,
        display_name="Disney+",
        order=1,
        match_names=("disneyplus", "disney plus", "disney+"),
    ),
    ProviderConfig(
        key=ProviderKey.TVING,
        display_name="TVING",
        order=2,
        match_names=("tving",),
    ),
    ProviderConfig(
        key=ProviderKey.COUPANG_PLAY,
        display_name="Coupang Play",
        order=3,
        match_names=("coupangplay", "coupang play"),
    ),
    ProviderConfig(
        key=ProviderKey.WAVVE,
        display_name="Wavve",
        order=4,
        match_names=("wavve",),
    ),
    ProviderConfig(
        key=ProviderKey.WATCHA,
        display_name="Watcha",
        order=5,
        match_names=("watcha", "watcha play"),
    ),
    ProviderConfig(
        key=ProviderKey.APPLE_TV_PLUS,
        display_name="Apple TV+",
        order=6,
        match_names=("appletvplus", "apple tv plus", "apple tv+", "apple tv"),
    ),
)

_CATALOG_BY_KEY: dict[str, ProviderConfig] = {
    str(config.key): config for config in PROVIDER_CATALOG
}


class _Keyed(Protocol):
    @property
    def key(self) -> str: ...


KeyedT = TypeVar("KeyedT", bound=_Keyed)


def normalize_provider_name(value: str) -> str:
    normalized = value.lower().strip().replace("+", "plus")
    return _NON_ALNUM_PATTERN.sub("", normalized)


def match_provider(
    external_name: str,
    external_id: int | None = None,
    *,
    catalog: Sequence[ProviderConfig] = PROVIDER_CATALOG,
) -> ProviderConfig | None:
    """Resolve an upstream provider record to its catalog entry.

    Ids are tried first across the whole catalog, then names. Catalog aliases
    are normalized at match time so they can stay human-readable.
    """
    if external_id is not None:
        for config in catalog:
            if external_id in config.match_ids:
                return config

    normalized_name = normalize_provider_name(external_name)
    for config in catalog:
        for alias in config.match_names:
            if normalized_name == normalize_provider_name(alias):
                return config
    return None


def catalog_order(key: str) -> float:
    config = _CATALOG_BY_KEY.get(str(key))
    if config is None:
        return math.inf
    return float(config.order)


def sort_providers(providers: Iterable[KeyedT]) -> list[KeyedT]:
    # sorted() is stable, so equal orders keep their input order.
    return sorted(providers, key=lambda provider: catalog_order(provider.key))
