"""Pydantic schemas for request/response validation."""

from auction_engine.schemas.auction import (
    AuctionCreate,
    AuctionDetailResponse,
    AuctionListResponse,
    AuctionResponse,
    ClockResponse,
    ExpirySignalResponse,
    SettlementResponse,
)
from auction_engine.schemas.bid import (
    AutoBidResponse,
    AutoBidSet,
    BidCreate,
    BidListResponse,
    BidPlacedResponse,
    BidResponse,
)
from auction_engine.schemas.notification import (
    BroadcastAccepted,
    BroadcastCreate,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from auction_engine.schemas.user import TokenResponse, UserLogin, UserRegister, UserResponse

__all__ = [
    "UserRegister",
    "UserLogin",
    "UserResponse",
    "TokenResponse",
    "AuctionCreate",
    "AuctionResponse",
    "AuctionDetailResponse",
    "AuctionListResponse",
    "ClockResponse",
    "ExpirySignalResponse",
    "SettlementResponse",
    "BidCreate",
    "BidResponse",
    "BidPlacedResponse",
    "BidListResponse",
    "AutoBidSet",
    "AutoBidResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "UnreadCountResponse",
    "BroadcastCreate",
    "BroadcastAccepted",
]
