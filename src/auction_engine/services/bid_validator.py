"""Pure bid acceptance rules.

``validate_bid`` decides whether a proposed amount is accepted against an
auction snapshot and returns the resulting state. It performs no I/O; the
repository re-runs it on the locked row right before committing a bid.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from auction_engine.core.exceptions import (
    AuctionClosed,
    AuctionNotActive,
    BidTooLow,
    InvalidAmount,
    SelfBidNotAllowed,
)
from auction_engine.models.auction import Auction, AuctionStatus
from auction_engine.services.auction_clock import as_utc, is_expired


@dataclass(frozen=True)
class AuctionState:
    """The slice of an auction the bidding rules look at."""

    status: str
    starting_price: Decimal
    end_time: datetime
    current_bid: Decimal | None = None
    highest_bidder_id: UUID | None = None
    seller_id: UUID | None = None
    bid_increment: Decimal = Decimal("1")

    @classmethod
    def from_model(cls, auction: Auction) -> "AuctionState":
        return cls(
            status=auction.status,
            starting_price=Decimal(auction.starting_price),
            end_time=as_utc(auction.end_time),
            current_bid=Decimal(auction.current_bid) if auction.current_bid is not None else None,
            highest_bidder_id=auction.highest_bidder_id,
            seller_id=auction.seller_id,
            bid_increment=Decimal(auction.bid_increment),
        )

    @property
    def threshold(self) -> Decimal:
        """A bid must be strictly greater than this."""
        return self.current_bid if self.current_bid is not None else self.starting_price


@dataclass(frozen=True)
class BidDecision:
    """Result of an accepted bid.

    ``previous_high_bidder_id`` is the outbid recipient. It is None on the
    first bid and when the high bidder raises their own bid.
    """

    amount: Decimal
    new_state: AuctionState
    previous_high_bidder_id: UUID | None
    previous_bid: Decimal | None


# Bid and price columns are Numeric(12, 2)
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(amount: object) -> Decimal:
    """Coerce ``amount`` to a storable money value or raise InvalidAmount.

    The value must be positive, have at most two decimal places and fit the
    amount columns; anything else would be rounded or overflow on write.
    """
    if isinstance(amount, bool) or amount is None:
        raise InvalidAmount(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(amount)
    if not value.is_finite() or value <= 0 or value > MAX_AMOUNT:
        raise InvalidAmount(amount)
    if value != value.quantize(CENT):
        raise InvalidAmount(amount)
    return value


def validate_bid(
    state: AuctionState,
    proposed_amount: object,
    now: datetime,
    bidder_id: UUID | None = None,
) -> BidDecision:
    """Accept or reject ``proposed_amount`` against ``state``.

    Raises:
        AuctionClosed: status is ended, or now >= end_time, whatever the amount
        AuctionNotActive: auction is still scheduled
        InvalidAmount: amount is not positive, has more than two decimal
            places or exceeds MAX_AMOUNT
        SelfBidNotAllowed: the seller is bidding on their own auction
        BidTooLow: amount <= current_bid, or <= starting_price for the first bid
    """
    if state.status == AuctionStatus.ENDED or is_expired(state.end_time, now):
        raise AuctionClosed()
    if state.status != AuctionStatus.ACTIVE:
        raise AuctionNotActive()

    amount = parse_amount(proposed_amount)
    if bidder_id is not None and state.seller_id is not None and bidder_id == state.seller_id:
        raise SelfBidNotAllowed()
    if amount <= state.threshold:
        raise BidTooLow(state.threshold)

    previous = state.highest_bidder_id
    if previous is not None and previous == bidder_id:
        previous = None

    return BidDecision(
        amount=amount,
        new_state=replace(state, current_bid=amount, highest_bidder_id=bidder_id),
        previous_high_bidder_id=previous,
        previous_bid=state.current_bid,
    )


def minimum_next_bid(state: AuctionState) -> Decimal:
    """Suggested next bid for display. Acceptance only needs > threshold."""
    return state.threshold + state.bid_increment
