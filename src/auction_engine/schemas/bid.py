"""Bid schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class BidCreate(BaseModel):
    """Schema for bid placement request.

    Amount validation beyond "is a number" happens in the bidding rules so
    that every rejection carries its typed error code.
    """

    auction_id: UUID
    amount: Decimal


class BidResponse(BaseModel):
    """Schema for bid response."""

    bid_id: UUID
    auction_id: UUID
    bidder_id: UUID
    amount: Decimal
    is_autobid: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BidPlacedResponse(BaseModel):
    """Schema for the result of placing a bid."""

    bid: BidResponse
    current_bid: Decimal
    highest_bidder_id: UUID
    outbid_user_id: UUID | None = None
    proxy_bids: list[BidResponse] = []


class BidListResponse(BaseModel):
    """Schema for an auction's bids, oldest first."""

    bids: list[BidResponse]
    total: int


class AutoBidSet(BaseModel):
    """Schema for setting a proxy bid maximum."""

    max_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class AutoBidResponse(BaseModel):
    """Schema for proxy bid settings."""

    auto_bid_id: UUID
    auction_id: UUID
    user_id: UUID
    max_amount: Decimal
    is_active: bool
    updated_at: datetime

    model_config = {"from_attributes": True}
