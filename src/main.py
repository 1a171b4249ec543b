"""FastAPI application entry point.

Run with: uvicorn src.main:app --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import Settings
from src.bootstrap import Services, build_services, get_services
from src.dx_account.api.router import router as dex_account_router
from src.dx_common.database import build_engine, build_session_factory
from src.dx_common.errors import AppError
from src.dx_common.redis_client import close_redis, create_redis
from src.dx_common.response import error_response
from src.dx_gateway.middleware.request_log import RequestLogMiddleware
from src.dx_ledger.api.router import router as transaction_router
from src.dx_order.api.router import fills_router
from src.dx_order.api.router import router as order_router
from src.dx_position.api.router import router as position_router
from src.dx_venue.client import VenueClient

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, start the scheduler. Shutdown: stop it, dispose pools."""
    settings: Settings = app.state.settings
    services: Services = app.state.services

    async with app.state.engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    if settings.RECONCILE_ENABLED:
        await services.scheduler.start()
    yield
    await services.scheduler.stop()
    await app.state.engine.dispose()
    if app.state.redis is not None:
        await close_redis(app.state.redis)


def create_app(
    settings: Settings | None = None,
    venue_clients: Mapping[str, VenueClient] | None = None,
) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, version=VERSION, lifespan=lifespan)

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    redis_client = create_redis(settings) if settings.RECONCILE_LEASE_BACKEND == "redis" else None
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.redis = redis_client
    app.state.services = build_services(settings, session_factory, venue_clients, redis_client)

    app.add_middleware(RequestLogMiddleware)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        resp = error_response(exc.code, exc.message)
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
        return JSONResponse(status_code=exc.http_status, content=resp.model_dump())

    app.include_router(dex_account_router, prefix="/api/v1")
    app.include_router(order_router, prefix="/api/v1")
    app.include_router(fills_router, prefix="/api/v1")
    app.include_router(position_router, prefix="/api/v1")
    app.include_router(transaction_router, prefix="/api/v1")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": VERSION}

    @app.get("/health/reconciliation")
    async def reconciliation_health(request: Request) -> dict[str, Any]:
        services = get_services(request)
        return {"running": services.scheduler.running, **services.scheduler.health.summary()}

    return app


app = create_app()
