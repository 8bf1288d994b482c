from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from watchfinder.models.provider_contracts import RegionLookup, RegionProviders

MediaType = Literal["movie", "tv"]

QUERY_MAX_LENGTH = 200
HOME_MAX_LIMIT = 20


def _default_contents() -> list[Content]:
    return []


def _normalize_optional_text(value: object) -> object:
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    normalized = value.strip()
    if not normalized:
        return None
    return normalized


class MovieSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    id: int
    title: str
    year: int | None = None
    poster_url: str | None = None


class Content(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    title: str
    media_type: MediaType
    poster_path: str = ""
    overview: str = ""
    release_date: str | None = None
    first_air_date: str | None = None
    origin_country: list[str] | None = None
    original_language: str | None = None


class MovieProvidersResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    query: str | None = None
    movie: MovieSummary
    kr: RegionProviders
    fallback: RegionProviders | None = None
    used_mock: bool = False
    from_cache: bool = False


class DetailResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    content: Content
    year: int | None = None
    poster_url: str | None = None
    providers: RegionLookup
    from_cache: bool = False


class SearchResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str
    results: list[Content] = Field(default_factory=_default_contents)


class TrendingResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    media_type: MediaType = Field(alias="type")
    results: list[Content] = Field(default_factory=_default_contents)


class HomeResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    ott_movies: list[Content] = Field(default_factory=_default_contents)
    theater_movies: list[Content] = Field(default_factory=_default_contents)
    kr_tv: list[Content] = Field(default_factory=_default_contents)
    global_tv: list[Content] = Field(default_factory=_default_contents)
    from_cache: bool = False


class ApiErrorBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    message: str


class TitleQuery(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1, max_length=QUERY_MAX_LENGTH)

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class MovieLookupQuery(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str | None = Field(default=None, min_length=1, max_length=QUERY_MAX_LENGTH)
    id: int | None = Field(default=None, gt=0)

    @field_validator("query", "id", mode="before")
    @classmethod
    def _normalize_optional_fields(cls, value: object) -> object:
        return _normalize_optional_text(value)

    @model_validator(mode="after")
    def _require_query_or_id(self) -> MovieLookupQuery:
        if self.query is None and self.id is None:
            raise ValueError("query or id is required")
        return self


class DetailQuery(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    media_type: MediaType = Field(alias="type")
    id: int = Field(gt=0)


class TrendingQuery(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    media_type: MediaType = Field(alias="type")


class HomeQuery(BaseModel):
    model_config = ConfigDict(extra="forbid")

    limit: int = Field(default=10, ge=1, le=HOME_MAX_LIMIT)

    @field_validator("limit", mode="before")
    @classmethod
    def _default_blank_limit(cls, value: object) -> object:
        normalized = _normalize_optional_text(value)
        if normalized is None:
            return 10
        return normalized
