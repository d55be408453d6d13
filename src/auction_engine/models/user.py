"""User model and account status."""

import enum
import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auction_engine.core.database import Base
from auction_engine.models.base import TimestampMixin

if TYPE_CHECKING:
    from auction_engine.models.bid import Bid


class UserStatus(str, enum.Enum):
    """Suspended users cannot sign in and their tokens stop resolving."""

    ACTIVE = "active"
    SUSPENDED = "suspended"


class User(Base, TimestampMixin):
    """User model representing a member (buyer, seller or admin)."""

    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserStatus.ACTIVE.value,
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Relationships
    bids: Mapped[List["Bid"]] = relationship("Bid", back_populates="bidder")

    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_status", "status"),
    )
