"""API router package."""

from fastapi import APIRouter

from taskboard.api.v1 import auth, health, notifications, projects, websocket, work_items

router = APIRouter()

router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(work_items.router, prefix="/work-items", tags=["Work Items"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(websocket.router, tags=["WebSocket"])
