from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from structlog.contextvars import bind_contextvars, reset_contextvars

from watchfinder.config import AppSettings
from watchfinder.dependencies import (
    EndpointRateLimiters,
    get_lookup_service,
    get_rate_limiters,
    get_settings,
    get_telemetry,
)
from watchfinder.models.content_contracts import (
    ApiErrorBody,
    DetailQuery,
    DetailResponse,
    HomeQuery,
    HomeResponse,
    MovieLookupQuery,
    MovieProvidersResponse,
    MovieSummary,
    SearchResponse,
    TitleQuery,
    TrendingQuery,
    TrendingResponse,
)
from watchfinder.services.lookup_service import (
    ContentNotFoundError,
    LookupService,
    UpstreamUnavailableError,
)
from watchfinder.services.tmdb_client import UpstreamError
from watchfinder.telemetry import TelemetryClient

LOGGER = logging.getLogger("watchfinder.api")

QueryModelT = TypeVar("QueryModelT", bound=BaseModel)
ResultT = TypeVar("ResultT")

router = APIRouter(prefix="/api")

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ApiErrorBody},
    429: {"model": ApiErrorBody},
    502: {"model": ApiErrorBody},
}


class ApiError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error: str,
        message: str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.headers = dict(headers or {})


def api_error_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ApiError)
    body = ApiErrorBody(error=exc.error, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(),
        headers=exc.headers or None,
    )


def client_identity(request: Request, *, default_ip: str) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return default_ip


def enforce_rate_limit(endpoint: str) -> Callable[..., None]:
    def _dependency(
        request: Request,
        response: Response,
        limiters: Annotated[EndpointRateLimiters, Depends(get_rate_limiters)],
        settings: Annotated[AppSettings, Depends(get_settings)],
        telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    ) -> None:
        client_ip = client_identity(request, default_ip=settings.default_client_ip)
        decision = limiters.for_endpoint(endpoint).check(client_ip)
        if not decision.allowed:
            telemetry.emit(
                "rate_limit.rejected",
                endpoint=endpoint,
                client_ip=client_ip,
                retry_after_seconds=decision.retry_after_seconds,
            )
            raise ApiError(
                status_code=429,
                error="RATE_LIMITED",
                message=f"Too many requests. Try again in ~{decision.retry_after_seconds}s.",
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

    return _dependency


def _parse_query(model: type[QueryModelT], raw: Mapping[str, str | None]) -> QueryModelT:
    try:
        return model.model_validate({key: value for key, value in raw.items() if value is not None})
    except ValidationError as exc:
        errors = exc.errors()
        message = str(errors[0]["msg"]) if errors else "Invalid input."
        raise ApiError(status_code=400, error="BAD_REQUEST", message=message) from exc


def _run_lookup(
    endpoint: str,
    telemetry: TelemetryClient,
    lookup: Callable[[], ResultT],
) -> ResultT:
    context_tokens = bind_contextvars(lookup_endpoint=endpoint)
    try:
        return lookup()
    except ContentNotFoundError as exc:
        raise ApiError(status_code=404, error="NOT_FOUND", message=str(exc)) from exc
    except UpstreamUnavailableError as exc:
        raise ApiError(status_code=503, error="NO_TMDB_KEY", message=str(exc)) from exc
    except UpstreamError as exc:
        LOGGER.warning("upstream lookup failed endpoint=%s error=%s", endpoint, exc)
        telemetry.emit("upstream.error", endpoint=endpoint, error_type=type(exc).__name__)
        raise ApiError(status_code=502, error="API_ERROR", message=str(exc)) from exc
    finally:
        reset_contextvars(**context_tokens)


@router.get(
    "/movie",
    response_model=MovieProvidersResponse,
    response_model_exclude_none=True,
    responses={**_ERROR_RESPONSES, 404: {"model": ApiErrorBody}},
    dependencies=[Depends(enforce_rate_limit("movie"))],
    tags=["lookup"],
    operation_id="lookup_movie",
)
def lookup_movie(
    service: Annotated[LookupService, Depends(get_lookup_service)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    query: Annotated[str | None, Query()] = None,
    content_id: Annotated[str | None, Query(alias="id")] = None,
) -> MovieProvidersResponse:
    params = _parse_query(MovieLookupQuery, {"query": query, "id": content_id})
    return _run_lookup(
        "movie",
        telemetry,
        lambda: service.lookup_movie(query=params.query, movie_id=params.id),
    )


@router.get(
    "/suggest",
    response_model=list[MovieSummary],
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_rate_limit("suggest"))],
    tags=["lookup"],
    operation_id="suggest_titles",
)
def suggest_titles(
    service: Annotated[LookupService, Depends(get_lookup_service)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    query: Annotated[str | None, Query()] = None,
) -> list[MovieSummary]:
    params = _parse_query(TitleQuery, {"query": query or ""})
    return _run_lookup("suggest", telemetry, lambda: service.suggest(params.query))


@router.get(
    "/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_rate_limit("search"))],
    tags=["lookup"],
    operation_id="search_content",
)
def search_content(
    service: Annotated[LookupService, Depends(get_lookup_service)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    query: Annotated[str | None, Query()] = None,
) -> SearchResponse:
    params = _parse_query(TitleQuery, {"query": query or ""})
    return _run_lookup("search", telemetry, lambda: service.search(params.query))


@router.get(
    "/detail",
    response_model=DetailResponse,
    response_model_exclude_none=True,
    responses={**_ERROR_RESPONSES, 503: {"model": ApiErrorBody}},
    dependencies=[Depends(enforce_rate_limit("detail"))],
    tags=["lookup"],
    operation_id="content_detail",
)
def content_detail(
    service: Annotated[LookupService, Depends(get_lookup_service)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    media_type: Annotated[str | None, Query(alias="type")] = None,
    content_id: Annotated[str | None, Query(alias="id")] = None,
) -> DetailResponse:
    params = _parse_query(DetailQuery, {"type": media_type or "", "id": content_id or ""})
    return _run_lookup(
        "detail",
        telemetry,
        lambda: service.detail(media_type=params.media_type, content_id=params.id),
    )


@router.get(
    "/trending",
    response_model=TrendingResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_rate_limit("trending"))],
    tags=["lookup"],
    operation_id="trending_content",
)
def trending_content(
    service: Annotated[LookupService, Depends(get_lookup_service)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    media_type: Annotated[str | None, Query(alias="type")] = None,
) -> TrendingResponse:
    params = _parse_query(TrendingQuery, {"type": media_type or ""})
    return _run_lookup("trending", telemetry, lambda: service.trending(params.media_type))


@router.get(
    "/home",
    response_model=HomeResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(enforce_rate_limit("home"))],
    tags=["lookup"],
    operation_id="home_sections",
)
def home_sections(
    service: Annotated[LookupService, Depends(get_lookup_service)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
    limit: Annotated[str | None, Query()] = None,
) -> HomeResponse:
    params = _parse_query(HomeQuery, {"limit": limit})
    return _run_lookup("home", telemetry, lambda: service.home(limit=params.limit))
