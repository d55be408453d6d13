"""Proxy bid settings: bid on a user's behalf up to a maximum."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auction_engine.core.database import Base
from auction_engine.models.base import TimestampMixin

if TYPE_CHECKING:
    from auction_engine.models.auction import Auction


class AutoBid(Base, TimestampMixin):
    __tablename__ = "auto_bids"

    auto_bid_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.auction_id"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    max_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    auction: Mapped["Auction"] = relationship("Auction", back_populates="auto_bids")

    __table_args__ = (
        CheckConstraint("max_amount > 0", name="chk_auto_bid_max_positive"),
        UniqueConstraint("auction_id", "user_id", name="uq_auto_bid_auction_user"),
    )
