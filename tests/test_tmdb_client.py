from __future__ import annotations

import io
import json
from email.message import Message
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlsplit
from urllib.request import Request

import pytest

from watchfinder.services import tmdb_client
from watchfinder.services.tmdb_client import (
    UNTITLED_PLACEHOLDER,
    TmdbClient,
    TmdbClientError,
    UpstreamSchemaError,
    poster_url,
    release_year,
)


class _FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *_: object) -> None:
        return None


class _RecordingUrlopen:
    def __init__(self, payloads: list[object]) -> None:
        self._payloads = list(payloads)
        self.urls: list[str] = []

    def __call__(self, request: Request, timeout: float) -> _FakeResponse:
        _ = timeout
        self.urls.append(request.full_url)
        payload = self._payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, bytes):
            return _FakeResponse(payload)
        return _FakeResponse(json.dumps(payload).encode("utf-8"))


def _install(monkeypatch: pytest.MonkeyPatch, payloads: list[object]) -> _RecordingUrlopen:
    recorder = _RecordingUrlopen(payloads)
    monkeypatch.setattr(tmdb_client, "urlopen", recorder)
    return recorder


def _client() -> TmdbClient:
    return TmdbClient(api_key="test-key", base_url="https://tmdb.example/3/", timeout_seconds=2)


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


def test_search_movies_sends_key_language_and_region(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = _install(
        monkeypatch,
        [{"results": [{"id": 496243, "title": "기생충", "release_date": "2019-05-30"}]}],
    )

    movies = _client().search_movies(query="기생충", language="ko-KR", region="KR")

    assert [movie.id for movie in movies] == [496243]
    url = recorder.urls[0]
    assert url.startswith("https://tmdb.example/3/search/movie?")
    params = _query(url)
    assert params["api_key"] == ["test-key"]
    assert params["query"] == ["기생충"]
    assert params["language"] == ["ko-KR"]
    assert params["region"] == ["KR"]
    assert params["include_adult"] == ["false"]


def test_missing_api_key_fails_before_any_request(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = _install(monkeypatch, [])
    client = TmdbClient(api_key="   ")

    assert client.has_api_key is False
    with pytest.raises(TmdbClientError, match="TMDB_API_KEY is missing"):
        client.get_movie(1, language="ko-KR")
    assert recorder.urls == []


def test_http_error_carries_status_and_body(monkeypatch: pytest.MonkeyPatch) -> None:
    error = HTTPError(
        "https://tmdb.example/3/movie/1",
        401,
        "Unauthorized",
        Message(),
        io.BytesIO(b'{"status_message":"Invalid API key"}'),
    )
    _install(monkeypatch, [error])

    with pytest.raises(TmdbClientError) as exc_info:
        _client().get_movie(1, language="ko-KR")

    assert exc_info.value.status_code == 401
    assert str(exc_info.value).startswith("TMDB error: 401 Unauthorized")
    assert exc_info.value.body_snippet is not None
    assert "Invalid API key" in exc_info.value.body_snippet


def test_transport_error_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, [URLError("connection refused")])

    with pytest.raises(TmdbClientError) as exc_info:
        _client().get_watch_providers(media_type="movie", content_id=1)

    assert exc_info.value.status_code is None


def test_schema_mismatch_reports_violation_location(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, [{"results": [{"title": "no id"}]}])

    with pytest.raises(UpstreamSchemaError) as exc_info:
        _client().search_movies(query="x", language="ko-KR")

    locations = [violation.location for violation in exc_info.value.violations]
    assert "results.0.id" in locations


def test_invalid_json_is_a_schema_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, [b"<html>gateway</html>"])

    with pytest.raises(UpstreamSchemaError, match="invalid JSON"):
        _client().get_movie(1, language="ko-KR")


def test_watch_providers_parse_regions(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = _install(
        monkeypatch,
        [
            {
                "id": 1,
                "results": {
                    "KR": {
                        "link": "https://tmdb.example/watch",
                        "flatrate": [{"provider_id": 8, "provider_name": "Netflix"}],
                    }
                },
            }
        ],
    )

    providers = _client().get_watch_providers(media_type="tv", content_id=42)

    assert "/tv/42/watch/providers?" in recorder.urls[0]
    kr = providers.results["KR"]
    assert kr.link == "https://tmdb.example/watch"
    assert kr.flatrate is not None
    assert kr.flatrate[0].provider_name == "Netflix"
    assert kr.rent is None


def test_search_multi_orders_by_popularity_and_filters_rows(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    rows: list[dict[str, Any]] = [
        {"id": 1, "media_type": "movie", "title": "Low", "popularity": 1.0},
        {"id": 2, "media_type": "person", "name": "Someone", "popularity": 99.0},
        {"id": 3, "media_type": "tv", "name": "High", "popularity": 50.0, "first_air_date": ""},
        {"id": 4, "media_type": "movie", "title": "  ", "popularity": 80.0},
        {"id": 5, "media_type": "movie", "title": "Mid", "popularity": 10.0, "poster_path": "/m.jpg"},
    ]
    _install(monkeypatch, [{"page": 1, "results": rows}])

    results = _client().search_multi(query="q", language="ko-KR")

    assert [(content.id, content.media_type) for content in results] == [
        (3, "tv"),
        (5, "movie"),
        (1, "movie"),
    ]
    assert results[0].title == "High"
    assert results[0].first_air_date is None
    assert results[1].poster_path == "/m.jpg"
    assert results[2].poster_path == ""


def test_trending_uses_placeholder_title_and_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    rows: list[dict[str, Any]] = [
        {"id": 10, "name": "", "popularity": 30.0, "origin_country": ["KR"]},
        {"id": 11, "name": "Drama", "popularity": 20.0, "original_language": "ko"},
        {"id": 12, "name": "Show", "popularity": 10.0},
    ]
    recorder = _install(monkeypatch, [{"results": rows}])

    results = _client().get_trending(media_type="tv", language="ko-KR", limit=2)

    assert "/trending/tv/day?" in recorder.urls[0]
    assert [content.id for content in results] == [10, 11]
    assert results[0].title == UNTITLED_PLACEHOLDER
    assert results[0].origin_country == ["KR"]
    assert results[1].original_language == "ko"


def test_content_detail_maps_tv_name_to_title(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        [{"id": 7, "name": "Series", "first_air_date": "2021-09-17", "overview": None}],
    )

    content = _client().get_content_detail(media_type="tv", content_id=7, language="ko-KR")

    assert content.title == "Series"
    assert content.media_type == "tv"
    assert content.first_air_date == "2021-09-17"
    assert content.overview == ""


def test_image_and_year_helpers() -> None:
    assert poster_url("/p.jpg", base_url="https://img") == "https://img/w342/p.jpg"
    assert poster_url("/p.jpg", "w185", base_url="https://img") == "https://img/w185/p.jpg"
    assert poster_url("") is None
    assert poster_url(None) is None
    assert release_year("2019-05-30") == 2019
    assert release_year("") is None
    assert release_year("unknown") is None
