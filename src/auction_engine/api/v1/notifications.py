"""Notification inbox API endpoints."""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Query, status

from auction_engine.api.deps import AdminUser, CurrentUser, NotificationServiceDep
from auction_engine.core.database import async_session_maker
from auction_engine.models.notification import NotificationType
from auction_engine.schemas.notification import (
    BroadcastAccepted,
    BroadcastCreate,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from auction_engine.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_user: CurrentUser,
    notifications: NotificationServiceDep,
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """The current user's notifications, newest first."""
    items, total = await notifications.list_for_user(
        current_user.user_id, unread_only=unread_only, skip=skip, limit=limit
    )
    unread = await notifications.unread_count(current_user.user_id)
    return NotificationListResponse(notifications=items, total=total, unread=unread)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: CurrentUser, notifications: NotificationServiceDep):
    return UnreadCountResponse(unread=await notifications.unread_count(current_user.user_id))


@router.post("/read-all")
async def mark_all_read(current_user: CurrentUser, notifications: NotificationServiceDep):
    updated = await notifications.mark_all_read(current_user.user_id)
    return {"updated": updated}


@router.post("/broadcast", response_model=BroadcastAccepted, status_code=status.HTTP_202_ACCEPTED)
async def broadcast(
    broadcast_data: BroadcastCreate,
    admin: AdminUser,
    background_tasks: BackgroundTasks,
):
    """Send a notification to every active user (admin only).

    Runs after the response on its own session; the outcome is logged.
    """
    background_tasks.add_task(
        _run_broadcast, broadcast_data.type, broadcast_data.title, broadcast_data.message
    )
    return BroadcastAccepted()


async def _run_broadcast(type: NotificationType, title: str, message: str) -> None:
    async with async_session_maker() as session:
        await NotificationService(session).broadcast(type, title, message)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID, current_user: CurrentUser, notifications: NotificationServiceDep
):
    """Raises 404 if the notification does not belong to the current user."""
    return await notifications.mark_read(current_user.user_id, notification_id)


@router.post("/{notification_id}/unread", response_model=NotificationResponse)
async def mark_unread(
    notification_id: UUID, current_user: CurrentUser, notifications: NotificationServiceDep
):
    return await notifications.mark_unread(current_user.user_id, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID, current_user: CurrentUser, notifications: NotificationServiceDep
):
    await notifications.delete(current_user.user_id, notification_id)


@router.delete("")
async def delete_all_notifications(current_user: CurrentUser, notifications: NotificationServiceDep):
    deleted = await notifications.delete_all(current_user.user_id)
    return {"deleted": deleted}
