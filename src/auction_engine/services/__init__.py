"""Business logic services."""

from auction_engine.services.auction_clock import AuctionClock, ClockReading, read_clock
from auction_engine.services.auction_repository import (
    AuctionRepository,
    AuctionSnapshot,
    BidCommit,
    BidRecord,
)
from auction_engine.services.bid_validator import AuctionState, BidDecision, validate_bid
from auction_engine.services.lifecycle_service import (
    AuctionLifecycleManager,
    BidOutcome,
    SettlementResult,
)
from auction_engine.services.notification_service import (
    BroadcastResult,
    NotificationDraft,
    NotificationService,
)
from auction_engine.services.realtime import RealtimeBus, Subscription, get_realtime_bus
from auction_engine.services.redis_service import RedisService

__all__ = [
    "AuctionClock",
    "ClockReading",
    "read_clock",
    "AuctionState",
    "BidDecision",
    "validate_bid",
    "AuctionRepository",
    "AuctionSnapshot",
    "BidCommit",
    "BidRecord",
    "AuctionLifecycleManager",
    "BidOutcome",
    "SettlementResult",
    "NotificationService",
    "NotificationDraft",
    "BroadcastResult",
    "RealtimeBus",
    "Subscription",
    "get_realtime_bus",
    "RedisService",
]
