"""Liveness and readiness probes."""

from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from taskboard.config import get_settings
from taskboard.db.session import DBSession

router = APIRouter()


def _status(healthy: bool) -> str:
    return "healthy" if healthy else "unhealthy"


@router.get("/health")
async def liveness() -> dict[str, str]:
    """The process is up; says nothing about its dependencies."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness(request: Request, db: DBSession) -> dict[str, Any]:
    """Ready to serve: the database answers and the realtime registry is up."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as exc:
        checks["database"] = f"unhealthy: {exc}"

    manager = getattr(request.app.state, "connection_manager", None)
    checks["realtime"] = _status(manager is not None)

    return {
        "status": _status(all(value == "healthy" for value in checks.values())),
        "version": get_settings().app_version,
        "checks": checks,
        "websocket_connections": manager.connection_count if manager else 0,
    }
