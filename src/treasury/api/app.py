"""FastAPI application factory with error mapping and service wiring hooks."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from treasury.api import routes
from treasury.constants import TOKENS
from treasury.exceptions import (
    ConfigurationError,
    InvalidArgument,
    NotFoundError,
    TreasuryError,
    UpstreamError,
)
from treasury.logging import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[TreasuryError], int], ...] = (
    (NotFoundError, 404),
    (InvalidArgument, 400),
    (UpstreamError, 502),
    (ConfigurationError, 500),
)


def status_for(exc: TreasuryError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def _treasury_error_handler(request: Request, exc: TreasuryError) -> JSONResponse:
    status = status_for(exc)
    log = logger.warning if status < 500 else logger.error
    log("request_failed", path=request.url.path, status=status, error=str(exc))
    return JSONResponse(status_code=status, content={"error": str(exc)})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_crashed", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to build services and attach them to app.state.

    Returns:
        Configured FastAPI application with CORS, error handlers and routes.
    """
    app = FastAPI(title="Ref SDK API", lifespan=lifespan)

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    app.add_exception_handler(TreasuryError, _treasury_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    @app.middleware("http")
    async def request_context(request: Request, call_next: Any) -> Any:
        clear_request_context()
        bind_request_context(method=request.method, path=request.url.path)
        return await call_next(request)

    app.state.tokens = TOKENS

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    app.include_router(routes.router, prefix="/api")

    return app
