"""WebSocket event schemas for real-time communication."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ClockTickData(BaseModel):
    """Data payload for clock tick event."""

    auction_id: str
    remaining_seconds: int
    label: str
    expired: bool
    timestamp: datetime


class ClockTickEvent(BaseModel):
    """Countdown pushed to every user in an auction room once per tick."""

    event: Literal["clock_tick"] = "clock_tick"
    data: ClockTickData


class BidPlacedData(BaseModel):
    """Data payload for bid placed event."""

    bid_id: str
    auction_id: str
    bidder_id: str
    amount: str
    is_autobid: bool = False
    created_at: datetime | None = None


class BidPlacedEvent(BaseModel):
    """Bid placed event pushed to all users in an auction room."""

    event: Literal["bid_placed"] = "bid_placed"
    data: BidPlacedData


class AuctionStatusData(BaseModel):
    """Data payload for status events."""

    auction_id: str
    status: str
    ended_reason: str | None = None
    winner_id: str | None = None
    winning_bid: str | None = None


class AuctionStartedEvent(BaseModel):
    event: Literal["auction_started"] = "auction_started"
    data: AuctionStatusData


class AuctionEndedEvent(BaseModel):
    """Auction ended event pushed when an auction is settled."""

    event: Literal["auction_ended"] = "auction_ended"
    data: AuctionStatusData


# Type alias for all WebSocket events
WSEvent = ClockTickEvent | BidPlacedEvent | AuctionStartedEvent | AuctionEndedEvent
