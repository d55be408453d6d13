"""Tests for the bid acceptance rules."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from auction_engine.core.exceptions import (
    AuctionClosed,
    AuctionNotActive,
    BidTooLow,
    InvalidAmount,
    SelfBidNotAllowed,
)
from auction_engine.models.auction import AuctionStatus
from auction_engine.services.bid_validator import (
    MAX_AMOUNT,
    AuctionState,
    minimum_next_bid,
    parse_amount,
    validate_bid,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
SELLER = uuid4()
ALICE = uuid4()
BOB = uuid4()


def make_state(**overrides) -> AuctionState:
    values = {
        "status": AuctionStatus.ACTIVE.value,
        "starting_price": Decimal("1000"),
        "end_time": NOW + timedelta(hours=1),
        "seller_id": SELLER,
        "bid_increment": Decimal("50"),
    }
    values.update(overrides)
    return AuctionState(**values)


class TestFirstBid:
    """Test the threshold before any bid exists."""

    def test_bid_equal_to_starting_price_rejected(self):
        """The first bid must be strictly above the starting price."""
        with pytest.raises(BidTooLow) as exc_info:
            validate_bid(make_state(), Decimal("1000"), NOW, bidder_id=ALICE)
        assert exc_info.value.threshold == Decimal("1000")
        assert exc_info.value.code == "BID_TOO_LOW"

    def test_bid_just_above_starting_price_accepted(self):
        decision = validate_bid(make_state(), Decimal("1000.01"), NOW, bidder_id=ALICE)

        assert decision.amount == Decimal("1000.01")
        assert decision.new_state.current_bid == Decimal("1000.01")
        assert decision.new_state.highest_bidder_id == ALICE
        assert decision.previous_high_bidder_id is None
        assert decision.previous_bid is None


class TestSubsequentBid:
    """Test the threshold once a current bid exists."""

    def test_bid_equal_to_current_rejected(self):
        state = make_state(current_bid=Decimal("1500"), highest_bidder_id=ALICE)
        with pytest.raises(BidTooLow):
            validate_bid(state, Decimal("1500"), NOW, bidder_id=BOB)

    def test_bid_above_current_accepted(self):
        """Any amount above the current bid wins; the increment is only a hint."""
        state = make_state(current_bid=Decimal("1500"), highest_bidder_id=ALICE)

        decision = validate_bid(state, Decimal("1500.01"), NOW, bidder_id=BOB)

        assert decision.new_state.current_bid == Decimal("1500.01")
        assert decision.previous_bid == Decimal("1500")

    def test_outbid_recipient_is_previous_high_bidder(self):
        """The prior leader is notified, never the new bidder."""
        state = make_state(current_bid=Decimal("1200"), highest_bidder_id=ALICE)

        decision = validate_bid(state, Decimal("1500"), NOW, bidder_id=BOB)

        assert decision.previous_high_bidder_id == ALICE
        assert decision.previous_high_bidder_id != BOB

    def test_raising_own_bid_has_no_outbid_recipient(self):
        state = make_state(current_bid=Decimal("1200"), highest_bidder_id=ALICE)

        decision = validate_bid(state, Decimal("1300"), NOW, bidder_id=ALICE)

        assert decision.previous_high_bidder_id is None

    def test_string_amount_is_parsed(self):
        decision = validate_bid(make_state(), "1200.50", NOW, bidder_id=ALICE)
        assert decision.amount == Decimal("1200.50")


class TestClosedAuction:
    """Test that ended auctions reject every bid."""

    def test_ended_status_rejects_any_amount(self):
        """Status ended wins even when the wall clock says time is left."""
        state = make_state(status=AuctionStatus.ENDED.value)
        with pytest.raises(AuctionClosed):
            validate_bid(state, Decimal("999999"), NOW, bidder_id=ALICE)

    def test_ended_status_checked_before_amount(self):
        state = make_state(status=AuctionStatus.ENDED.value)
        with pytest.raises(AuctionClosed):
            validate_bid(state, "not a number", NOW, bidder_id=ALICE)

    def test_now_at_end_time_rejects(self):
        """The auction is closed at exactly end_time."""
        state = make_state(end_time=NOW)
        with pytest.raises(AuctionClosed):
            validate_bid(state, Decimal("5000"), NOW, bidder_id=ALICE)

    def test_now_after_end_time_rejects_while_still_active(self):
        state = make_state(end_time=NOW - timedelta(seconds=1))
        with pytest.raises(AuctionClosed):
            validate_bid(state, Decimal("5000"), NOW, bidder_id=ALICE)

    def test_scheduled_auction_not_active(self):
        state = make_state(status=AuctionStatus.SCHEDULED.value)
        with pytest.raises(AuctionNotActive):
            validate_bid(state, Decimal("5000"), NOW, bidder_id=ALICE)


class TestInvalidAmount:
    """Test amount parsing."""

    @pytest.mark.parametrize(
        "amount",
        [0, -5, Decimal("-0.01"), "abc", None, True, float("nan"), float("inf"), "Infinity"],
    )
    def test_rejects_non_positive_or_non_finite(self, amount):
        with pytest.raises(InvalidAmount):
            validate_bid(make_state(), amount, NOW, bidder_id=ALICE)

    def test_parse_amount_accepts_int_and_float(self):
        assert parse_amount(1200) == Decimal("1200")
        assert parse_amount(1200.5) == Decimal("1200.5")

    @pytest.mark.parametrize("amount", [Decimal("1000.001"), "1000.004", 1000.005, Decimal("0.001")])
    def test_rejects_sub_cent_amounts(self, amount):
        """Amounts the Numeric(12, 2) column would round are refused, not rounded."""
        with pytest.raises(InvalidAmount):
            validate_bid(make_state(), amount, NOW, bidder_id=ALICE)

    def test_sub_cent_bid_cannot_tie_starting_price(self):
        """1000.001 on a 1000 auction would be stored as 1000.00."""
        with pytest.raises(InvalidAmount):
            validate_bid(make_state(starting_price=Decimal("1000")), "1000.001", NOW, bidder_id=ALICE)

    def test_trailing_zero_places_accepted(self):
        assert parse_amount("1200.500") == Decimal("1200.5")
        assert parse_amount(Decimal("1200.10")) == Decimal("1200.10")

    def test_amount_bounds(self):
        assert parse_amount(MAX_AMOUNT) == MAX_AMOUNT
        with pytest.raises(InvalidAmount):
            parse_amount(Decimal(10) ** 10)
        with pytest.raises(InvalidAmount):
            parse_amount(MAX_AMOUNT + Decimal("0.01"))


class TestSelfBid:
    def test_seller_cannot_bid(self):
        """Sellers may not bid on their own auction."""
        with pytest.raises(SelfBidNotAllowed):
            validate_bid(make_state(), Decimal("2000"), NOW, bidder_id=SELLER)


class TestMinimumNextBid:
    def test_before_first_bid(self):
        assert minimum_next_bid(make_state()) == Decimal("1050")

    def test_after_bid(self):
        assert minimum_next_bid(make_state(current_bid=Decimal("1500"))) == Decimal("1550")
