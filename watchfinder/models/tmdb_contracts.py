from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class TmdbProvider(BaseModel):
    model_config = ConfigDict(extra="ignore")

    provider_id: int
    provider_name: str
    logo_path: str | None = None
    display_priority: int | None = None


class TmdbCountryProviders(BaseModel):
    model_config = ConfigDict(extra="ignore")

    link: str | None = None
    flatrate: list[TmdbProvider] | None = None
    free: list[TmdbProvider] | None = None
    rent: list[TmdbProvider] | None = None
    buy: list[TmdbProvider] | None = None


class TmdbWatchProviders(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: dict[str, TmdbCountryProviders]


class TmdbMovie(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    release_date: str | None = None
    poster_path: str | None = None


class TmdbMovieSearch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[TmdbMovie]


class TmdbMovieDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    poster_path: str | None = None
    overview: str | None = None
    release_date: str | None = None


class TmdbTvDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    poster_path: str | None = None
    overview: str | None = None
    first_air_date: str | None = None


class TmdbListRow(BaseModel):
    """Row shared by multi-search and trending listings (movie or tv fields)."""

    model_config = ConfigDict(extra="allow")

    id: int
    media_type: str | None = None
    popularity: float | None = None
    poster_path: str | None = None
    overview: str | None = None
    title: str | None = None
    release_date: str | None = None
    name: str | None = None
    first_air_date: str | None = None
    origin_country: list[str] | None = None
    original_language: str | None = None


class TmdbListPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: list[TmdbListRow]


@dataclass(frozen=True)
class SchemaViolation:
    location: str
    message: str


@dataclass(frozen=True)
class UpstreamValidation(Generic[ModelT]):
    value: ModelT | None
    violations: tuple[SchemaViolation, ...] = ()

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.violations


def validate_upstream(model: type[ModelT], payload: object) -> UpstreamValidation[ModelT]:
    try:
        value = model.model_validate(payload)
    except ValidationError as exc:
        violations = tuple(
            SchemaViolation(
                location=".".join(str(part) for part in error["loc"]) or "$",
                message=error["msg"],
            )
            for error in exc.errors()
        )
        return UpstreamValidation(value=None, violations=violations)
    return UpstreamValidation(value=value)
