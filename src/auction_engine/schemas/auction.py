"""Auction schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class AuctionCreate(BaseModel):
    """Schema for auction creation request."""

    title: str | None = Field(default=None, max_length=255)
    listing_id: UUID | None = None
    starting_price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    bid_increment: Decimal = Field(default=Decimal("1.00"), gt=0, max_digits=12, decimal_places=2)
    start_time: datetime
    end_time: datetime

    @model_validator(mode="after")
    def check_times(self) -> "AuctionCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AuctionResponse(BaseModel):
    """Schema for auction response."""

    auction_id: UUID
    seller_id: UUID | None
    listing_id: UUID | None
    title: str | None
    starting_price: Decimal
    bid_increment: Decimal
    current_bid: Decimal | None
    highest_bidder_id: UUID | None
    start_time: datetime
    end_time: datetime
    status: str
    ended_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClockResponse(BaseModel):
    """Remaining time for an auction."""

    auction_id: UUID
    end_time: datetime
    remaining_seconds: int
    label: str
    expired: bool


class AuctionDetailResponse(AuctionResponse):
    """Auction with bid count, minimum next bid and clock."""

    bid_count: int
    minimum_next_bid: Decimal
    clock: ClockResponse


class AuctionListResponse(BaseModel):
    """Schema for auction list response."""

    auctions: list[AuctionResponse]
    total: int


class SettlementResponse(BaseModel):
    """Outcome of an active -> ended transition."""

    auction_id: UUID
    status: Literal["ended"] = "ended"
    ended_reason: str
    sold: bool
    winner_id: UUID | None = None
    winning_bid: Decimal | None = None


class ExpirySignalResponse(BaseModel):
    """Answer to a client's expiry signal."""

    auction_id: UUID
    status: str
    transitioned: bool
