"""SQLAlchemy ORM models."""

from auction_engine.models.auction import Auction, AuctionStatus, EndReason
from auction_engine.models.auto_bid import AutoBid
from auction_engine.models.base import TimestampMixin
from auction_engine.models.bid import Bid
from auction_engine.models.notification import Notification, NotificationType
from auction_engine.models.user import User, UserStatus

__all__ = [
    "TimestampMixin",
    "User",
    "UserStatus",
    "Auction",
    "AuctionStatus",
    "EndReason",
    "Bid",
    "AutoBid",
    "Notification",
    "NotificationType",
]
