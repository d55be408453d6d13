"""Notification service for the per-user inbox and admin broadcasts."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auction_engine.core.config import settings
from auction_engine.core.exceptions import NotificationNotFound, translate_transient_errors
from auction_engine.middleware.metrics import record_notification_failure
from auction_engine.models.notification import Notification, NotificationType
from auction_engine.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class NotificationDraft:
    """One notification to be written by ``create_bulk``."""

    user_id: UUID
    type: NotificationType
    title: str
    message: str
    listing_id: UUID | None = None
    auction_id: UUID | None = None
    related_user_id: UUID | None = None

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "type": NotificationType(self.type).value,
            "title": self.title,
            "message": self.message,
            "listing_id": self.listing_id,
            "auction_id": self.auction_id,
            "related_user_id": self.related_user_id,
            "is_read": False,
        }


@dataclass
class BroadcastResult:
    """Outcome of a broadcast. ``failed_batches`` lists the first user_id of each lost batch."""

    sent: int = 0
    failed_batches: list[UUID] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_batches


class NotificationService:
    """Service class for notification operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Creation ====================

    async def create_notification(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        listing_id: UUID | None = None,
        related_user_id: UUID | None = None,
        auction_id: UUID | None = None,
    ) -> Notification:
        """Store a notification for one user.

        Args:
            user_id: Recipient
            type: Notification type
            title: Short title
            message: Body text
            listing_id: Optional listing reference
            related_user_id: Optional user the notification is about
            auction_id: Optional auction reference

        Returns:
            Created notification

        Raises:
            TransientNetworkError: If the database is unreachable
        """
        notification = Notification(
            user_id=user_id,
            type=NotificationType(type).value,
            title=title,
            message=message,
            listing_id=listing_id,
            related_user_id=related_user_id,
            auction_id=auction_id,
            is_read=False,
        )
        with translate_transient_errors():
            self.db.add(notification)
            await self.db.commit()
            await self.db.refresh(notification)
        return notification

    async def notify_safely(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        **refs,
    ) -> Notification | None:
        """Best-effort create_notification.

        Failures are logged and counted, never raised, so a lost
        notification cannot undo the bid or transition that caused it.
        """
        try:
            return await self.create_notification(user_id, type, title, message, **refs)
        except Exception as e:
            await self._rollback_quietly()
            record_notification_failure(NotificationType(type).value)
            logger.warning(f"Failed to notify {user_id} ({NotificationType(type).value}): {e}")
            return None

    async def create_bulk(self, drafts: list[NotificationDraft]) -> int:
        """Insert many notifications in one statement and one commit.

        Returns:
            Number of notifications written
        """
        if not drafts:
            return 0
        with translate_transient_errors():
            await self.db.execute(insert(Notification), [d.to_row() for d in drafts])
            await self.db.commit()
        return len(drafts)

    async def broadcast(
        self,
        type: NotificationType,
        title: str,
        message: str,
        batch_size: int | None = None,
    ) -> BroadcastResult:
        """Send a notification to every active user.

        Users are paged by user_id and each page is written and committed
        on its own. A failed page is rolled back, recorded in the result and
        skipped; the remaining pages still go out.

        Args:
            type: Notification type
            title: Short title
            message: Body text
            batch_size: Users per page (defaults to NOTIFICATION_BATCH_SIZE)

        Returns:
            BroadcastResult with the sent count and the failed pages
        """
        batch_size = batch_size or settings.NOTIFICATION_BATCH_SIZE
        result = BroadcastResult()
        last_user_id: UUID | None = None

        while True:
            query = select(User.user_id).where(User.status == "active")
            if last_user_id is not None:
                query = query.where(User.user_id > last_user_id)
            with translate_transient_errors():
                rows = await self.db.execute(query.order_by(User.user_id).limit(batch_size))
            user_ids = list(rows.scalars().all())
            if not user_ids:
                break

            drafts = [
                NotificationDraft(user_id=uid, type=type, title=title, message=message)
                for uid in user_ids
            ]
            try:
                result.sent += await self.create_bulk(drafts)
            except Exception as e:
                await self._rollback_quietly()
                result.failed_batches.append(user_ids[0])
                record_notification_failure(NotificationType(type).value)
                logger.error(f"Broadcast batch starting at {user_ids[0]} failed: {e}")

            last_user_id = user_ids[-1]
            if len(user_ids) < batch_size:
                break

        logger.info(
            f"Broadcast '{title}' sent to {result.sent} users, "
            f"{len(result.failed_batches)} batches failed"
        )
        return result

    # ==================== Inbox ====================

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Notification], int]:
        """Newest first.

        Returns:
            Tuple of (notifications, total matching)
        """
        query = select(Notification).where(Notification.user_id == user_id)
        count_query = select(func.count(Notification.notification_id)).where(
            Notification.user_id == user_id
        )
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
            count_query = count_query.where(Notification.is_read.is_(False))

        with translate_transient_errors():
            result = await self.db.execute(
                query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
            )
            notifications = list(result.scalars().all())
            total = (await self.db.execute(count_query)).scalar_one()
        return notifications, total

    async def unread_count(self, user_id: UUID) -> int:
        with translate_transient_errors():
            result = await self.db.execute(
                select(func.count(Notification.notification_id)).where(
                    Notification.user_id == user_id,
                    Notification.is_read.is_(False),
                )
            )
            return result.scalar_one()

    async def _set_read(self, user_id: UUID, notification_id: UUID, is_read: bool) -> Notification:
        with translate_transient_errors():
            result = await self.db.execute(
                update(Notification)
                .where(
                    Notification.notification_id == notification_id,
                    Notification.user_id == user_id,
                )
                .values(is_read=is_read)
                .returning(Notification)
            )
            notification = result.scalar_one_or_none()
            if notification is None:
                await self.db.rollback()
                raise NotificationNotFound(notification_id)
            await self.db.commit()
        return notification

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        """Raises NotificationNotFound if the user owns no such notification."""
        return await self._set_read(user_id, notification_id, True)

    async def mark_unread(self, user_id: UUID, notification_id: UUID) -> Notification:
        return await self._set_read(user_id, notification_id, False)

    async def mark_all_read(self, user_id: UUID) -> int:
        """Returns the number of notifications that changed."""
        with translate_transient_errors():
            result = await self.db.execute(
                update(Notification)
                .where(
                    Notification.user_id == user_id,
                    Notification.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return result.rowcount

    async def delete(self, user_id: UUID, notification_id: UUID) -> None:
        with translate_transient_errors():
            result = await self.db.execute(
                delete(Notification)
                .where(
                    Notification.notification_id == notification_id,
                    Notification.user_id == user_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                raise NotificationNotFound(notification_id)
            await self.db.commit()

    async def delete_all(self, user_id: UUID) -> int:
        with translate_transient_errors():
            result = await self.db.execute(
                delete(Notification)
                .where(Notification.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return result.rowcount

    async def cleanup_read_older_than(
        self, days: int | None = None, user_id: UUID | None = None
    ) -> int:
        """Delete read notifications older than ``days``.

        Args:
            days: Retention in days (defaults to NOTIFICATION_RETENTION_DAYS)
            user_id: Limit the cleanup to one user; all users when None

        Returns:
            Number of notifications deleted
        """
        days = settings.NOTIFICATION_RETENTION_DAYS if days is None else days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        stmt = delete(Notification).where(
            Notification.is_read.is_(True),
            Notification.created_at < cutoff,
        )
        if user_id is not None:
            stmt = stmt.where(Notification.user_id == user_id)

        with translate_transient_errors():
            result = await self.db.execute(stmt.execution_options(synchronize_session=False))
            await self.db.commit()
        if result.rowcount:
            logger.info(f"Cleaned up {result.rowcount} read notifications older than {days} days")
        return result.rowcount

    async def _rollback_quietly(self) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.warning(f"Rollback after notification failure failed: {e}")
