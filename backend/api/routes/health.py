"""
Health check endpoints.

Provides endpoints for monitoring application health and readiness.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shared.config import get_settings
from modules.session.service import SessionManager
from modules.notifications.service import NotificationQueueManager

from ..dependencies import get_notification_manager, get_session_manager

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    session: str
    notification_sync: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the API is running.
    """
    return HealthResponse(status="healthy", version=get_settings().app_version)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    session: SessionManager = Depends(get_session_manager),
    notifications: NotificationQueueManager = Depends(get_notification_manager),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Reports whether a session is established and whether sync is running.
    """
    if notifications.is_syncing:
        sync_state = "syncing"
    elif notifications.is_online:
        sync_state = "idle"
    else:
        sync_state = "offline"
    return ReadinessResponse(
        status="ready",
        session="authenticated" if session.is_authenticated else "anonymous",
        notification_sync=sync_state,
    )
