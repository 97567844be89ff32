"""Application entry point."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from viewcounter.api.routes import router
from viewcounter.config import Settings, get_settings
from viewcounter.core.cache import CacheManager
from viewcounter.database import SessionLocal
from viewcounter.exceptions import CacheNotReadyError, InvalidViewRequestError
from viewcounter.observability.logging import get_logger, setup_structured_logging
from viewcounter.security.audit import configure_audit_logger
from viewcounter.security.middleware import AuditMiddleware, RateLimitMiddleware
from viewcounter.security.rate_limit import RateLimiter
from viewcounter.store.base import ViewStore
from viewcounter.store.sql import SqlAlchemyViewStore

setup_structured_logging()
settings = get_settings()
logger = get_logger("main")


def build_cache_manager(store: ViewStore, config: Settings) -> CacheManager:
    return CacheManager(
        store,
        max_write_attempts=config.durable_write_max_attempts,
        backoff_seconds=config.durable_write_backoff_seconds,
        max_backoff_seconds=config.durable_write_max_backoff_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the view cache before the first request and tear it down on shutdown.

    A store placed on ``app.state.view_store`` beforehand is used instead of
    the configured database.
    """

    store: ViewStore | None = getattr(app.state, "view_store", None)
    if store is None:
        store = SqlAlchemyViewStore(SessionLocal)
        app.state.view_store = store

    manager = build_cache_manager(store, settings)
    # A failed load propagates and aborts startup.
    report = await run_in_threadpool(manager.load)
    app.state.cache_manager = manager
    logger.info(
        "view cache ready",
        extra={"items": report.items, "receipts": report.receipts},
    )
    try:
        yield
    finally:
        app.state.cache_manager = None
        manager.close()


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    docs_url="/docs",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

audit_logger = configure_audit_logger(settings.audit_log_path)
rate_limiter = RateLimiter(
    max_requests=settings.rate_limit_max_requests,
    window_seconds=settings.rate_limit_window_seconds,
)

app.add_middleware(AuditMiddleware, audit_logger=audit_logger)
app.add_middleware(RateLimitMiddleware, rate_limiter=rate_limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.state.audit_logger = audit_logger
app.state.rate_limiter = rate_limiter

app.include_router(router, prefix="/api")


@app.exception_handler(CacheNotReadyError)
async def cache_not_ready_handler(request: Request, exc: CacheNotReadyError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "View cache is not ready"},
    )


@app.exception_handler(InvalidViewRequestError)
async def invalid_view_handler(request: Request, exc: InvalidViewRequestError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


@app.get("/", tags=["meta"])
def read_root() -> dict[str, str]:
    """Return basic service metadata."""

    return {"service": settings.app_name, "environment": settings.app_env}
