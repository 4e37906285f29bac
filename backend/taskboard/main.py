"""FastAPI application factory and ASGI entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from taskboard.api import router as api_router
from taskboard.api.errors import register_exception_handlers
from taskboard.api.v1.health import liveness
from taskboard.config import Settings, get_settings
from taskboard.db.session import close_db, init_db
from taskboard.middleware import LoggingMiddleware, RequestIDMiddleware
from taskboard.services.realtime import ConnectionManager

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info("app_starting", version=settings.app_version, environment=settings.environment)
    await init_db()

    yield

    closed = await app.state.connection_manager.close_all()
    await close_db()
    logger.info("app_stopped", websockets_closed=closed)


def _add_middleware(app: FastAPI, settings: Settings) -> None:
    # Starlette runs these in reverse order of registration: proxy headers are
    # resolved first, then the request id is assigned, then the request is logged.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application: middleware, error handlers, routes and realtime registry."""
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Projects, work items and their audit trail, with real-time notifications",
        debug=settings.debug,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.connection_manager = ConnectionManager()

    _add_middleware(app, settings)
    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.api_prefix)
    # Load balancers probe the bare path
    app.add_api_route("/health", liveness, methods=["GET"], include_in_schema=False)
    return app


app = create_app()
