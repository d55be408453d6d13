"""Notification schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from auction_engine.models.notification import NotificationType


class NotificationResponse(BaseModel):
    """Schema for notification response."""

    notification_id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    is_read: bool
    listing_id: UUID | None = None
    auction_id: UUID | None = None
    related_user_id: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Schema for notification list response."""

    notifications: list[NotificationResponse]
    total: int
    unread: int


class UnreadCountResponse(BaseModel):
    unread: int


class BroadcastCreate(BaseModel):
    """Schema for an admin broadcast to every active user."""

    type: NotificationType = NotificationType.SYSTEM
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)


class BroadcastAccepted(BaseModel):
    """Broadcasts run in the background; this only acknowledges the request."""

    status: str = "queued"
