from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Literal, TypeVar
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pydantic import BaseModel

from watchfinder.models.content_contracts import Content, MediaType
from watchfinder.models.tmdb_contracts import (
    SchemaViolation,
    TmdbListPage,
    TmdbListRow,
    TmdbMovie,
    TmdbMovieDetail,
    TmdbMovieSearch,
    TmdbTvDetail,
    TmdbWatchProviders,
    validate_upstream,
)

LOGGER = logging.getLogger("watchfinder.tmdb")

DEFAULT_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
UNTITLED_PLACEHOLDER = "(제목 없음)"
_BODY_SNIPPET_LIMIT = 300

ModelT = TypeVar("ModelT", bound=BaseModel)


class UpstreamError(Exception):
    pass


class TmdbClientError(UpstreamError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body_snippet: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


class UpstreamSchemaError(UpstreamError):
    def __init__(self, message: str, *, violations: tuple[SchemaViolation, ...]) -> None:
        super().__init__(message)
        self.violations = violations


def poster_url(
    path: str | None,
    size: Literal["w185", "w342"] = "w342",
    *,
    base_url: str = DEFAULT_IMAGE_BASE_URL,
) -> str | None:
    if not path or not path.strip():
        return None
    return f"{base_url}/{size}{path}"


def logo_url(
    path: str | None,
    size: Literal["w45", "w92"] = "w45",
    *,
    base_url: str = DEFAULT_IMAGE_BASE_URL,
) -> str | None:
    if not path:
        return None
    return f"{base_url}/{size}{path}"


def release_year(date: str | None) -> int | None:
    if not date:
        return None
    prefix = date[:4]
    if not prefix.isdigit():
        return None
    return int(prefix)


class TmdbClient:
    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._api_key = _normalize_optional_text(api_key)
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    @property
    def has_api_key(self) -> bool:
        return self._api_key is not None

    def search_movies(
        self,
        *,
        query: str,
        language: str,
        region: str | None = None,
        page: int = 1,
    ) -> list[TmdbMovie]:
        params: dict[str, str] = {
            "query": query,
            "language": language,
            "include_adult": "false",
            "page": str(page),
        }
        if region:
            params["region"] = region
        return self._get("/search/movie", params, TmdbMovieSearch).results

    def get_movie(self, movie_id: int, *, language: str) -> TmdbMovie:
        return self._get(f"/movie/{movie_id}", {"language": language}, TmdbMovie)

    def get_watch_providers(self, *, media_type: MediaType, content_id: int) -> TmdbWatchProviders:
        return self._get(f"/{media_type}/{content_id}/watch/providers", {}, TmdbWatchProviders)

    def search_multi(self, *, query: str, language: str, page: int = 1) -> list[Content]:
        params = {
            "query": query,
            "language": language,
            "include_adult": "false",
            "page": str(page),
        }
        rows = self._get("/search/multi", params, TmdbListPage).results
        contents: list[Content] = []
        for row in _by_popularity(rows):
            content = _content_from_search_row(row)
            if content is not None:
                contents.append(content)
        return contents

    def get_trending(
        self,
        *,
        media_type: MediaType,
        language: str,
        time_window: Literal["day", "week"] = "day",
        limit: int = 10,
    ) -> list[Content]:
        rows = self._get(
            f"/trending/{media_type}/{time_window}",
            {"language": language},
            TmdbListPage,
        ).results
        contents = [_content_from_trending_row(row, media_type) for row in _by_popularity(rows)]
        return contents[: max(1, limit)]

    def get_content_detail(self, *, media_type: MediaType, content_id: int, language: str) -> Content:
        path = f"/{media_type}/{content_id}"
        if media_type == "movie":
            movie = self._get(path, {"language": language}, TmdbMovieDetail)
            return Content(
                id=movie.id,
                title=movie.title,
                media_type="movie",
                poster_path=movie.poster_path or "",
                overview=movie.overview or "",
                release_date=movie.release_date or None,
            )

        show = self._get(path, {"language": language}, TmdbTvDetail)
        return Content(
            id=show.id,
            title=show.name,
            media_type="tv",
            poster_path=show.poster_path or "",
            overview=show.overview or "",
            first_air_date=show.first_air_date or None,
        )

    def _get(self, path: str, params: Mapping[str, str], model: type[ModelT]) -> ModelT:
        if self._api_key is None:
            raise TmdbClientError("TMDB_API_KEY is missing")
        query = urlencode({**params, "api_key": self._api_key})
        url = f"{self._base_url}{path}?{query}"
        payload = _fetch_json(url, timeout_seconds=self._timeout_seconds, path=path)

        validation = validate_upstream(model, payload)
        if validation.value is None:
            LOGGER.warning(
                "tmdb response failed validation path=%s violations=%s",
                path,
                len(validation.violations),
            )
            first = validation.violations[0] if validation.violations else None
            detail = f": {first.location} {first.message}" if first is not None else ""
            raise UpstreamSchemaError(
                f"TMDB response schema mismatch for {path}{detail}",
                violations=validation.violations,
            )
        return validation.value


def _fetch_json(url: str, *, timeout_seconds: float, path: str) -> object:
    request = Request(url, headers={"accept": "application/json"})
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            raw = response.read().decode("utf-8")
    except HTTPError as exc:
        body = _read_error_body(exc)
        LOGGER.warning("tmdb request failed path=%s status=%s", path, exc.code)
        message = f"TMDB error: {exc.code} {exc.reason}"
        if body:
            message = f"{message}: {body}"
        raise TmdbClientError(message, status_code=exc.code, body_snippet=body or None) from exc
    except (URLError, TimeoutError, OSError) as exc:
        LOGGER.warning("tmdb transport error path=%s error=%s", path, type(exc).__name__)
        raise TmdbClientError(f"TMDB request failed: {exc}") from exc

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UpstreamSchemaError(
            f"TMDB returned invalid JSON for {path}",
            violations=(SchemaViolation(location="$", message=str(exc)),),
        ) from exc


def _read_error_body(exc: HTTPError) -> str:
    try:
        raw: Any = exc.read()
    except OSError:
        return ""
    if not isinstance(raw, bytes):
        return ""
    return raw.decode("utf-8", errors="replace").strip()[:_BODY_SNIPPET_LIMIT]


def _by_popularity(rows: list[TmdbListRow]) -> list[TmdbListRow]:
    return sorted(rows, key=lambda row: row.popularity or 0.0, reverse=True)


def _content_from_search_row(row: TmdbListRow) -> Content | None:
    if row.media_type not in {"movie", "tv"}:
        return None
    title = row.title if row.media_type == "movie" else row.name
    if not title or not title.strip():
        return None
    return Content(
        id=row.id,
        title=title,
        media_type="movie" if row.media_type == "movie" else "tv",
        poster_path=row.poster_path or "",
        overview=row.overview or "",
        release_date=row.release_date or None,
        first_air_date=row.first_air_date or None,
    )


def _content_from_trending_row(row: TmdbListRow, media_type: MediaType) -> Content:
    title = row.title if media_type == "movie" else row.name
    if not title or not title.strip():
        title = UNTITLED_PLACEHOLDER
    is_tv = media_type == "tv"
    return Content(
        id=row.id,
        title=title,
        media_type=media_type,
        poster_path=row.poster_path or "",
        overview=row.overview or "",
        release_date=None if is_tv else (row.release_date or None),
        first_air_date=(row.first_air_date or None) if is_tv else None,
        origin_country=row.origin_country if is_tv else None,
        original_language=row.original_language if is_tv else None,
    )


def _normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None
