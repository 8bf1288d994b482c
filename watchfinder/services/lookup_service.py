from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from time import time
from typing import Literal, Protocol, TypeVar

from watchfinder.models.content_contracts import (
    Content,
    DetailResponse,
    HomeResponse,
    MediaType,
    MovieProvidersResponse,
    MovieSummary,
    SearchResponse,
    TrendingResponse,
)
from watchfinder.models.tmdb_contracts import TmdbMovie, TmdbWatchProviders
from watchfinder.services.mock_data import mock_movie_providers, mock_suggestions
from watchfinder.services.provider_normalizer import (
    DEFAULT_FALLBACK_REGION,
    DEFAULT_PRIMARY_REGION,
    has_any_providers,
    resolve_regions,
)
from watchfinder.services.tmdb_client import (
    DEFAULT_IMAGE_BASE_URL,
    poster_url,
    release_year,
)
from watchfinder.services.ttl_cache import TtlCache
from watchfinder.telemetry import TelemetryClient

LOGGER = logging.getLogger("watchfinder.lookup")

DEFAULT_CACHE_TTL_SECONDS = 10 * 60
SUGGEST_LIMIT = 5
HOME_TRENDING_POOL_SIZE = 30
HOME_PROVIDER_CHECK_CONCURRENCY = 5
_DOMESTIC_LANGUAGE = "ko"

CachedT = TypeVar("CachedT")


class ContentNotFoundError(Exception):
    pass


class UpstreamUnavailableError(Exception):
    pass


class TmdbDataSource(Protocol):
    @property
    def has_api_key(self) -> bool: ...

    def search_movies(
        self,
        *,
        query: str,
        language: str,
        region: str | None = None,
        page: int = 1,
    ) -> list[TmdbMovie]: ...

    def get_movie(self, movie_id: int, *, language: str) -> TmdbMovie: ...

    def get_watch_providers(
        self, *, media_type: MediaType, content_id: int
    ) -> TmdbWatchProviders: ...

    def search_multi(self, *, query: str, language: str, page: int = 1) -> list[Content]: ...

    def get_trending(
        self,
        *,
        media_type: MediaType,
        language: str,
        time_window: Literal["day", "week"] = "day",
        limit: int = 10,
    ) -> list[Content]: ...

    def get_content_detail(
        self, *, media_type: MediaType, content_id: int, language: str
    ) -> Content: ...


@dataclass(frozen=True)
class LookupCaches:
    movie: TtlCache[MovieProvidersResponse]
    suggest: TtlCache[list[MovieSummary]]
    search: TtlCache[SearchResponse]
    detail: TtlCache[DetailResponse]
    trending: TtlCache[TrendingResponse]
    home: TtlCache[HomeResponse]

    @classmethod
    def build(
        cls,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time,
    ) -> LookupCaches:
        return cls(
            movie=TtlCache(ttl_seconds=ttl_seconds, clock=clock),
            suggest=TtlCache(ttl_seconds=ttl_seconds, clock=clock),
            search=TtlCache(ttl_seconds=ttl_seconds, clock=clock),
            detail=TtlCache(ttl_seconds=ttl_seconds, clock=clock),
            trending=TtlCache(ttl_seconds=ttl_seconds, clock=clock),
            home=TtlCache(ttl_seconds=ttl_seconds, clock=clock),
        )


class LookupService:
    def __init__(
        self,
        *,
        tmdb_client: TmdbDataSource | None,
        caches: LookupCaches,
        use_mock: bool = False,
        primary_region: str = DEFAULT_PRIMARY_REGION,
        fallback_region: str = DEFAULT_FALLBACK_REGION,
        primary_language: str = "ko-KR",
        fallback_language: str = "en-US",
        image_base_url: str = DEFAULT_IMAGE_BASE_URL,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._tmdb_client = tmdb_client
        self._caches = caches
        self._use_mock = use_mock
        self._primary_region = primary_region
        self._fallback_region = fallback_region
        self._primary_language = primary_language
        self._fallback_language = fallback_language
        self._image_base_url = image_base_url
        self._telemetry = telemetry or TelemetryClient.disabled()

    @property
    def use_mock(self) -> bool:
        if self._use_mock:
            return True
        return self._tmdb_client is None or not self._tmdb_client.has_api_key

    def lookup_movie(
        self,
        *,
        query: str | None = None,
        movie_id: int | None = None,
    ) -> MovieProvidersResponse:
        if movie_id is not None:
            cache_key = f"movie:id:{movie_id}"
        else:
            cache_key = f"movie:query:{(query or '').lower()}"

        cached = self._cache_get(self._caches.movie, cache_key, endpoint="movie")
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})

        if self.use_mock:
            mock = mock_movie_providers(query or str(movie_id or ""))
            self._caches.movie.set(cache_key, mock)
            return mock

        client = self._require_client()
        resolved_id = movie_id
        if resolved_id is None:
            resolved_id = self._resolve_movie_id(client, (query or "").strip())

        movie = client.get_movie(resolved_id, language=self._primary_language)
        providers = client.get_watch_providers(media_type="movie", content_id=resolved_id)
        regions = resolve_regions(
            providers.results,
            primary_region=self._primary_region,
            fallback_region=self._fallback_region,
            image_base_url=self._image_base_url,
        )
        response = MovieProvidersResponse(
            query=query.strip() if query else None,
            movie=MovieSummary(
                id=movie.id,
                title=movie.title,
                year=release_year(movie.release_date),
                poster_url=poster_url(movie.poster_path, base_url=self._image_base_url),
            ),
            kr=regions.kr,
            fallback=regions.fallback,
            used_mock=False,
        )
        self._caches.movie.set(cache_key, response)
        return response

    def suggest(self, query: str) -> list[MovieSummary]:
        cache_key = f"suggest:{query.lower()}"
        cached = self._cache_get(self._caches.suggest, cache_key, endpoint="suggest")
        if cached is not None:
            return list(cached)

        if self.use_mock:
            suggestions = mock_suggestions(query, limit=SUGGEST_LIMIT)
            self._caches.suggest.set(cache_key, suggestions)
            return list(suggestions)

        movies = self._search_movies_with_fallback(self._require_client(), query)
        suggestions = [
            MovieSummary(
                id=movie.id,
                title=movie.title,
                year=release_year(movie.release_date),
                poster_url=poster_url(movie.poster_path, "w185", base_url=self._image_base_url),
            )
            for movie in movies[:SUGGEST_LIMIT]
        ]
        self._caches.suggest.set(cache_key, suggestions)
        return list(suggestions)

    def search(self, query: str) -> SearchResponse:
        cache_key = f"search:v1:{query.lower()}"
        cached = self._cache_get(self._caches.search, cache_key, endpoint="search")
        if cached is not None:
            return cached

        if self.use_mock:
            response = SearchResponse(query=query, results=[])
            self._caches.search.set(cache_key, response)
            return response

        client = self._require_client()
        results = client.search_multi(query=query, language=self._primary_language)
        if not results:
            results = client.search_multi(query=query, language=self._fallback_language)
        response = SearchResponse(query=query, results=results)
        self._caches.search.set(cache_key, response)
        return response

    def detail(self, *, media_type: MediaType, content_id: int) -> DetailResponse:
        cache_key = f"detail:v1:{media_type}:{content_id}:{self._primary_language}"
        cached = self._cache_get(self._caches.detail, cache_key, endpoint="detail")
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})

        if self.use_mock:
            raise UpstreamUnavailableError("TMDB API Key is missing.")

        client = self._require_client()
        content = client.get_content_detail(
            media_type=media_type,
            content_id=content_id,
            language=self._primary_language,
        )
        providers = client.get_watch_providers(media_type=media_type, content_id=content_id)
        date = content.release_date if media_type == "movie" else content.first_air_date
        response = DetailResponse(
            content=content,
            year=release_year(date),
            poster_url=poster_url(content.poster_path, base_url=self._image_base_url),
            providers=resolve_regions(
                providers.results,
                primary_region=self._primary_region,
                fallback_region=self._fallback_region,
                image_base_url=self._image_base_url,
            ),
        )
        self._caches.detail.set(cache_key, response)
        return response

    def trending(self, media_type: MediaType) -> TrendingResponse:
        cache_key = f"trending:day:{media_type}:{self._primary_language}"
        cached = self._cache_get(self._caches.trending, cache_key, endpoint="trending")
        if cached is not None:
            return cached

        if self.use_mock:
            response = TrendingResponse(media_type=media_type, results=[])
            self._caches.trending.set(cache_key, response)
            return response

        results = self._require_client().get_trending(
            media_type=media_type,
            language=self._primary_language,
        )
        response = TrendingResponse(media_type=media_type, results=results)
        self._caches.trending.set(cache_key, response)
        return response

    def home(self, *, limit: int = 10) -> HomeResponse:
        cache_key = f"home:v1:{self._primary_language}:limit={limit}"
        cached = self._cache_get(self._caches.home, cache_key, endpoint="home")
        if cached is not None:
            return cached.model_copy(update={"from_cache": True})

        if self.use_mock:
            response = HomeResponse()
            self._caches.home.set(cache_key, response)
            return response

        client = self._require_client()
        movies = client.get_trending(
            media_type="movie",
            language=self._primary_language,
            limit=HOME_TRENDING_POOL_SIZE,
        )
        shows = client.get_trending(
            media_type="tv",
            language=self._primary_language,
            limit=HOME_TRENDING_POOL_SIZE,
        )

        domestic_tv: list[Content] = []
        global_tv: list[Content] = []
        for show in shows:
            if self._is_domestic(show):
                domestic_tv.append(show)
            else:
                global_tv.append(show)

        def _streams_in_primary_region(movie: Content) -> bool:
            providers = client.get_watch_providers(media_type="movie", content_id=movie.id)
            return has_any_providers(providers.results.get(self._primary_region))

        with ThreadPoolExecutor(max_workers=HOME_PROVIDER_CHECK_CONCURRENCY) as executor:
            streamable = list(executor.map(_streams_in_primary_region, movies))

        ott_movies = [movie for movie, flag in zip(movies, streamable, strict=True) if flag]
        theater_movies = [
            movie for movie, flag in zip(movies, streamable, strict=True) if not flag
        ]
        LOGGER.info(
            "home sections built ott=%s theater=%s domestic_tv=%s global_tv=%s",
            len(ott_movies),
            len(theater_movies),
            len(domestic_tv),
            len(global_tv),
        )

        response = HomeResponse(
            ott_movies=ott_movies[:limit],
            theater_movies=theater_movies[:limit],
            kr_tv=domestic_tv[:limit],
            global_tv=global_tv[:limit],
        )
        self._caches.home.set(cache_key, response)
        return response

    def _resolve_movie_id(self, client: TmdbDataSource, query: str) -> int:
        if not query:
            raise ContentNotFoundError("query is required when id is not provided")
        movies = self._search_movies_with_fallback(client, query)
        if not movies:
            raise ContentNotFoundError("No results found for that title.")
        return movies[0].id

    def _search_movies_with_fallback(self, client: TmdbDataSource, query: str) -> list[TmdbMovie]:
        movies = client.search_movies(
            query=query,
            language=self._primary_language,
            region=self._primary_region,
        )
        if movies:
            return movies
        return client.search_movies(
            query=query,
            language=self._fallback_language,
            region=self._fallback_region,
        )

    def _is_domestic(self, show: Content) -> bool:
        if self._primary_region in (show.origin_country or []):
            return True
        return show.original_language == _DOMESTIC_LANGUAGE

    def _require_client(self) -> TmdbDataSource:
        if self._tmdb_client is None:
            raise UpstreamUnavailableError("TMDB API Key is missing.")
        return self._tmdb_client

    def _cache_get(self, cache: TtlCache[CachedT], key: str, *, endpoint: str) -> CachedT | None:
        cached = cache.get(key)
        if cached is None:
            self._telemetry.emit("lookup.cache.miss", endpoint=endpoint)
            return None
        self._telemetry.emit("lookup.cache.hit", endpoint=endpoint)
        return cached
