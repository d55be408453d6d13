"""Proxy bid API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from auction_engine.api.deps import AuctionRepositoryDep, CurrentUser, LifecycleDep
from auction_engine.core.exceptions import AuctionClosed, AuctionNotFound, SelfBidNotAllowed
from auction_engine.models.auction import AuctionStatus
from auction_engine.schemas.bid import AutoBidResponse, AutoBidSet

router = APIRouter()


@router.put("/{auction_id}", response_model=AutoBidResponse)
async def set_auto_bid(
    auction_id: UUID,
    auto_bid_data: AutoBidSet,
    current_user: CurrentUser,
    repo: AuctionRepositoryDep,
    lifecycle: LifecycleDep,
):
    """Bid automatically on the current user's behalf up to ``max_amount``.

    Proxy bids answer immediately if the user is not leading.

    Raises:
        403: Seller setting a proxy bid on their own auction
        404: Auction not found
        409: Auction has ended
    """
    auction = await repo.get_auction(auction_id)
    if auction is None:
        raise AuctionNotFound(auction_id)
    if auction.status == AuctionStatus.ENDED:
        raise AuctionClosed()
    if auction.seller_id == current_user.user_id:
        raise SelfBidNotAllowed()

    auto_bid = await repo.upsert_auto_bid(auction_id, current_user.user_id, auto_bid_data.max_amount)
    if auction.status == AuctionStatus.ACTIVE:
        await lifecycle.resolve_proxy_bids(auction_id)
        auto_bid = await repo.get_auto_bid(auction_id, current_user.user_id)
    return auto_bid


@router.get("/{auction_id}", response_model=AutoBidResponse)
async def get_auto_bid(auction_id: UUID, current_user: CurrentUser, repo: AuctionRepositoryDep):
    """The current user's proxy bid on an auction.

    Raises:
        404: No proxy bid set
    """
    auto_bid = await repo.get_auto_bid(auction_id, current_user.user_id)
    if auto_bid is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "AUTO_BID_NOT_FOUND", "message": "No proxy bid set for this auction"},
        )
    return auto_bid


@router.delete("/{auction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_auto_bid(auction_id: UUID, current_user: CurrentUser, repo: AuctionRepositoryDep):
    """Stop proxy bidding. Bids already placed stay."""
    if not await repo.deactivate_auto_bid(auction_id, current_user.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "AUTO_BID_NOT_FOUND", "message": "No active proxy bid for this auction"},
        )
