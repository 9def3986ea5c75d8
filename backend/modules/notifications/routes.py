"""
Notification queue API endpoints.

The /events endpoints are how the hosting UI reports platform events
(visibility, focus, connectivity) to the queue manager.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from api.dependencies import get_notification_manager

from .models import NotificationKind, QueueErrorKind, QueueFailure, QueueResult, QueueStatus
from .service import NotificationQueueManager

router = APIRouter()

FAILURE_STATUS = {
    QueueErrorKind.QUEUE_FULL: 507,
    QueueErrorKind.UNKNOWN_KIND: 422,
    QueueErrorKind.STORE_ERROR: 500,
    QueueErrorKind.NETWORK_ERROR: 503,
}


class EnqueueRequest(BaseModel):
    kind: NotificationKind
    payload: dict[str, Any] = Field(default_factory=dict)


def _respond(result: QueueResult, response: Response) -> QueueResult:
    if isinstance(result, QueueFailure):
        response.status_code = FAILURE_STATUS.get(result.error, 400)
    return result


@router.post("", response_model=QueueResult, status_code=201)
async def enqueue(
    request: EnqueueRequest,
    response: Response,
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> QueueResult:
    return _respond(await manager.enqueue(request.kind.value, request.payload), response)


@router.get("/status", response_model=QueueStatus)
async def get_status(
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> QueueStatus:
    return await manager.get_queue_status()


@router.post("/sync", response_model=QueueResult)
async def sync(
    response: Response,
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> QueueResult:
    """Run a sync pass now, or join the one in flight."""
    return _respond(await manager.sync_notification_responses(), response)


@router.post("/badge/clear", response_model=QueueStatus)
async def clear_badge(
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> QueueStatus:
    await manager.clear_notification_badge()
    return await manager.get_queue_status()


@router.post("/events/foreground", response_model=Optional[QueueResult])
async def foreground(
    response: Response,
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> Optional[QueueResult]:
    result = await manager.on_foreground()
    return _respond(result, response) if result is not None else None


@router.post("/events/background", status_code=204)
async def background(
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> None:
    await manager.on_background()


@router.post("/events/network-restored", response_model=QueueResult)
async def network_restored(
    response: Response,
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> QueueResult:
    return _respond(await manager.on_network_restored(), response)


@router.post("/events/network-lost", status_code=204)
async def network_lost(
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> None:
    await manager.on_network_lost()


@router.delete("", response_model=QueueResult)
async def clear_queue(
    response: Response,
    manager: NotificationQueueManager = Depends(get_notification_manager),
) -> QueueResult:
    return _respond(await manager.clear_queue(), response)
