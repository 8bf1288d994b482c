from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from watchfinder.config import AppSettings, load_settings
from watchfinder.services.lookup_service import LookupCaches, LookupService
from watchfinder.services.rate_limiter import FixedWindowRateLimiter
from watchfinder.services.tmdb_client import TmdbClient
from watchfinder.telemetry import TelemetryClient, build_telemetry_client


@dataclass(frozen=True)
class EndpointRateLimiters:
    movie: FixedWindowRateLimiter
    suggest: FixedWindowRateLimiter
    search: FixedWindowRateLimiter
    detail: FixedWindowRateLimiter
    trending: FixedWindowRateLimiter
    home: FixedWindowRateLimiter

    def for_endpoint(self, endpoint: str) -> FixedWindowRateLimiter:
        limiter = getattr(self, endpoint, None)
        if not isinstance(limiter, FixedWindowRateLimiter):
            raise KeyError(f"no rate limiter configured for endpoint={endpoint}")
        return limiter


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_tmdb_client() -> TmdbClient:
    settings = get_settings()
    return TmdbClient(
        api_key=settings.tmdb_api_key,
        base_url=settings.tmdb_base_url,
        timeout_seconds=settings.tmdb_http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_lookup_service() -> LookupService:
    settings = get_settings()
    return LookupService(
        tmdb_client=get_tmdb_client(),
        caches=LookupCaches.build(ttl_seconds=settings.response_cache_ttl_seconds),
        use_mock=settings.use_mock,
        primary_region=settings.primary_region,
        fallback_region=settings.fallback_region,
        primary_language=settings.primary_language,
        fallback_language=settings.fallback_language,
        image_base_url=settings.tmdb_image_base_url,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_rate_limiters() -> EndpointRateLimiters:
    settings = get_settings()
    window_seconds = settings.rate_limit_window_seconds
    limiters = {
        endpoint: FixedWindowRateLimiter(max_requests=max_requests, window_seconds=window_seconds)
        for endpoint, max_requests in settings.rate_limits.items()
    }
    return EndpointRateLimiters(**limiters)


def reset_cached_dependencies() -> None:
    get_rate_limiters.cache_clear()
    get_lookup_service.cache_clear()
    get_tmdb_client.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
