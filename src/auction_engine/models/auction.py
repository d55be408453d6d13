"""Auction model and lifecycle status."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auction_engine.core.database import Base
from auction_engine.models.base import TimestampMixin

if TYPE_CHECKING:
    from auction_engine.models.auto_bid import AutoBid
    from auction_engine.models.bid import Bid
    from auction_engine.models.user import User


class AuctionStatus(str, enum.Enum):
    """Auction lifecycle states. Transitions only move forward."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"


class EndReason(str, enum.Enum):
    EXPIRED = "expired"
    CLOSED = "closed"


class Auction(Base, TimestampMixin):
    """Auction model representing one item up for bidding."""

    __tablename__ = "auctions"

    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    seller_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=True,
    )
    listing_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    title: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    starting_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    bid_increment: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("1.00"),
    )
    current_bid: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    highest_bidder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=True,
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AuctionStatus.SCHEDULED.value,
    )
    ended_reason: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Relationships
    seller: Mapped[Optional["User"]] = relationship("User", foreign_keys=[seller_id])
    bids: Mapped[List["Bid"]] = relationship("Bid", back_populates="auction")
    auto_bids: Mapped[List["AutoBid"]] = relationship("AutoBid", back_populates="auction")

    __table_args__ = (
        CheckConstraint("starting_price > 0", name="chk_auction_starting_price_positive"),
        CheckConstraint("bid_increment > 0", name="chk_auction_bid_increment_positive"),
        CheckConstraint(
            "current_bid IS NULL OR current_bid >= starting_price",
            name="chk_auction_current_bid_floor",
        ),
        CheckConstraint("end_time > start_time", name="chk_auction_time"),
        CheckConstraint(
            "status IN ('scheduled', 'active', 'ended')", name="chk_auction_status"
        ),
        Index("idx_auctions_status_end", "status", "end_time"),
        Index("idx_auctions_status_start", "status", "start_time"),
    )
