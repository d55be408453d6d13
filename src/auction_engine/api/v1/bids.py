"""Bidding API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from auction_engine.api.deps import AuctionRepositoryDep, CurrentUser, LifecycleDep
from auction_engine.core.exceptions import AuctionNotFound
from auction_engine.schemas.bid import BidCreate, BidListResponse, BidPlacedResponse, BidResponse

router = APIRouter()


@router.post("", response_model=BidPlacedResponse, status_code=status.HTTP_201_CREATED)
async def place_bid(
    bid_data: BidCreate,
    current_user: CurrentUser,
    lifecycle: LifecycleDep,
):
    """Place a bid on an active auction.

    The bid is re-validated against the locked auction row before it is
    stored. Rejections carry one of AUCTION_CLOSED, AUCTION_NOT_ACTIVE,
    BID_TOO_LOW, INVALID_AMOUNT or SELF_BID_NOT_ALLOWED as ``detail.code``.
    """
    outcome = await lifecycle.place_bid(
        bid_data.auction_id, current_user.user_id, bid_data.amount
    )
    return BidPlacedResponse(
        bid=BidResponse.model_validate(outcome.bid),
        current_bid=outcome.current_bid,
        highest_bidder_id=outcome.highest_bidder_id,
        outbid_user_id=outcome.outbid_user_id,
        proxy_bids=[BidResponse.model_validate(b) for b in outcome.proxy_bids],
    )


@router.get("/{auction_id}", response_model=BidListResponse)
async def list_bids(auction_id: UUID, repo: AuctionRepositoryDep):
    """All bids on an auction, oldest first.

    Raises:
        404: Auction not found
    """
    if await repo.get_auction(auction_id) is None:
        raise AuctionNotFound(auction_id)
    bids = await repo.list_bids(auction_id)
    return BidListResponse(bids=bids, total=len(bids))
