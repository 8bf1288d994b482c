from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".watchfinder"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (("log_dir", Path("logs")),)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "use_mock",
    "telemetry_enabled",
)
_RATE_LIMIT_FIELDS: tuple[str, ...] = (
    "movie_rate_limit_max_requests",
    "suggest_rate_limit_max_requests",
    "search_rate_limit_max_requests",
    "detail_rate_limit_max_requests",
    "trending_rate_limit_max_requests",
    "home_rate_limit_max_requests",
)
_REGION_CODE_PATTERN = re.compile(r"[A-Z]{2}")


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Runtime configuration for the lookup service.

    Every option is read from a `WATCHFINDER_*` environment variable (or `.env`).
    Without a TMDB key the service answers from offline fixtures.
    """

    model_config = SettingsConfigDict(
        env_prefix="WATCHFINDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for logs and local state.",
    )

    # Upstream data source.
    tmdb_api_key: str | None = Field(
        default=None,
        description="TMDB v3 API key. When unset the service runs in mock mode.",
    )
    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="TMDB API base URL.",
    )
    tmdb_image_base_url: str = Field(
        default="https://image.tmdb.org/t/p",
        description="Base URL for poster and provider logo images.",
    )
    tmdb_http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to each TMDB HTTP request.",
    )
    use_mock: bool = Field(
        default=False,
        description="Force offline fixtures even when a TMDB key is configured.",
    )

    # Region and language policy.
    primary_region: str = Field(
        default="KR",
        description="Region whose availability is always reported.",
    )
    fallback_region: str = Field(
        default="US",
        description="Region reported only when the primary region has no upstream entry.",
    )
    primary_language: str = Field(
        default="ko-KR",
        description="Language used for titles, details and the first search attempt.",
    )
    fallback_language: str = Field(
        default="en-US",
        description="Language used when the primary-language search returns nothing.",
    )

    # Response cache and rate limits.
    response_cache_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="TTL for memoized endpoint responses.",
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Fixed rate-limit window size in seconds, shared by all endpoints.",
    )
    movie_rate_limit_max_requests: int = Field(
        default=30,
        ge=1,
        description="Requests per client per window for `/api/movie`.",
    )
    suggest_rate_limit_max_requests: int = Field(
        default=30,
        ge=1,
        description="Requests per client per window for `/api/suggest`.",
    )
    search_rate_limit_max_requests: int = Field(
        default=60,
        ge=1,
        description="Requests per client per window for `/api/search`.",
    )
    detail_rate_limit_max_requests: int = Field(
        default=60,
        ge=1,
        description="Requests per client per window for `/api/detail`.",
    )
    trending_rate_limit_max_requests: int = Field(
        default=120,
        ge=1,
        description="Requests per client per window for `/api/trending`.",
    )
    home_rate_limit_max_requests: int = Field(
        default=60,
        ge=1,
        description="Requests per client per window for `/api/home`.",
    )
    default_client_ip: str = Field(
        default="127.0.0.1",
        description="Rate-limit key used when no forwarding header identifies the client.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description="Directory for log files. Defaults to `${WATCHFINDER_DATA_DIR}/logs`.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @property
    def rate_limits(self) -> dict[str, int]:
        return {
            field_name.removesuffix("_rate_limit_max_requests"): getattr(self, field_name)
            for field_name in _RATE_LIMIT_FIELDS
        }

    @field_validator("primary_region", "fallback_region", mode="before")
    @classmethod
    def _normalize_region(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"WATCHFINDER_{str(info.field_name).upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip().upper()
        if not _REGION_CODE_PATTERN.fullmatch(normalized):
            raise ValueError(f"{env_name} must be a two-letter region code.")
        return normalized

    @field_validator("tmdb_base_url", "tmdb_image_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"WATCHFINDER_{str(info.field_name).upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError(f"{env_name} must not be empty.")
        return normalized

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("WATCHFINDER_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("WATCHFINDER_TELEMETRY_SINK must be set to: none, log.")

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
