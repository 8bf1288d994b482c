from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from watchfinder.api.routes import ApiError, api_error_handler, client_identity, router
from watchfinder.dependencies import get_lookup_service, get_settings, get_telemetry
from watchfinder.logging_config import configure_application_logging

REQUEST_ID_HEADER = "X-Request-ID"


def health_check() -> dict[str, object]:
    return {
        "status": "ok",
        "mock_mode": get_lookup_service().use_mock,
        "telemetry": get_telemetry().counts(),
    }


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    yield


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    telemetry = get_telemetry()
    request_id = _request_id(request)
    path = request.url.path
    context_tokens = bind_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=path,
    )
    started_at = perf_counter()

    def _elapsed_ms() -> int:
        return int((perf_counter() - started_at) * 1000)

    telemetry.emit(
        "http.request.start",
        request_id=request_id,
        path=path,
        client_ip=client_identity(request, default_ip=get_settings().default_client_ip),
    )
    try:
        response = await call_next(request)
    except Exception as exc:
        telemetry.emit(
            "http.request.error",
            request_id=request_id,
            path=path,
            duration_ms=_elapsed_ms(),
            error_type=type(exc).__name__,
        )
        raise
    finally:
        reset_contextvars(**context_tokens)

    response.headers[REQUEST_ID_HEADER] = request_id
    telemetry.emit(
        "http.request.finish",
        request_id=request_id,
        path=path,
        duration_ms=_elapsed_ms(),
        status_code=response.status_code,
    )
    return response


def create_app() -> FastAPI:
    app = FastAPI(title="Watchfinder API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(ApiError, api_error_handler)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


def _request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER)
    if incoming and incoming.strip():
        return incoming.strip()
    return str(uuid4())


app = create_app()
