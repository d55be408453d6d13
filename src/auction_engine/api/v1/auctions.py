"""Auction API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from auction_engine.api.deps import (
    AuctionRepositoryDep,
    CurrentUser,
    LifecycleDep,
)
from auction_engine.core.config import settings
from auction_engine.core.exceptions import AuctionNotFound
from auction_engine.models.auction import AuctionStatus
from auction_engine.schemas.auction import (
    AuctionCreate,
    AuctionDetailResponse,
    AuctionListResponse,
    AuctionResponse,
    ClockResponse,
    ExpirySignalResponse,
    SettlementResponse,
)
from auction_engine.services.auction_clock import read_clock
from auction_engine.services.bid_validator import AuctionState, minimum_next_bid
from auction_engine.services.lifecycle_service import SettlementResult

router = APIRouter()


def _clock_response(auction_id: UUID, end_time, locale: str | None) -> ClockResponse:
    reading = read_clock(end_time, locale=locale or settings.CLOCK_LOCALE)
    return ClockResponse(
        auction_id=auction_id,
        end_time=reading.end_time,
        remaining_seconds=reading.remaining_seconds,
        label=reading.label,
        expired=reading.expired,
    )


def _settlement_response(result: SettlementResult) -> SettlementResponse:
    return SettlementResponse(
        auction_id=result.auction.auction_id,
        ended_reason=result.auction.ended_reason,
        sold=result.sold,
        winner_id=result.winner_id,
        winning_bid=result.winning_bid,
    )


@router.post("", response_model=AuctionResponse, status_code=status.HTTP_201_CREATED)
async def create_auction(
    auction_data: AuctionCreate,
    current_user: CurrentUser,
    repo: AuctionRepositoryDep,
):
    """Schedule a new auction owned by the current user.

    The activation loop opens it for bidding once start_time passes.
    """
    return await repo.create_auction(current_user.user_id, auction_data)


@router.get("", response_model=AuctionListResponse)
async def list_auctions(
    repo: AuctionRepositoryDep,
    status_filter: AuctionStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List auctions, soonest-ending first, optionally by status."""
    auctions, total = await repo.list_auctions(
        status=status_filter.value if status_filter else None, skip=skip, limit=limit
    )
    return AuctionListResponse(auctions=auctions, total=total)


@router.get("/{auction_id}", response_model=AuctionDetailResponse)
async def get_auction(
    auction_id: UUID,
    repo: AuctionRepositoryDep,
    locale: str | None = Query(None, max_length=10),
):
    """Get auction details with bid count, minimum next bid and clock.

    Raises:
        404: Auction not found
    """
    auction = await repo.get_auction(auction_id)
    if auction is None:
        raise AuctionNotFound(auction_id)

    bid_count = await repo.count_bids(auction_id)
    base = AuctionResponse.model_validate(auction)
    return AuctionDetailResponse(
        **base.model_dump(),
        bid_count=bid_count,
        minimum_next_bid=minimum_next_bid(AuctionState.from_model(auction)),
        clock=_clock_response(auction_id, auction.end_time, locale),
    )


@router.get("/{auction_id}/clock", response_model=ClockResponse)
async def get_clock(
    auction_id: UUID,
    repo: AuctionRepositoryDep,
    locale: str | None = Query(None, max_length=10),
):
    """Remaining time for an auction.

    Served from the end-time cache; polled by clients without a WebSocket.
    """
    end_time = await repo.get_end_time(auction_id)
    return _clock_response(auction_id, end_time, locale)


@router.post("/{auction_id}/expire", response_model=ExpirySignalResponse)
async def signal_expiry(
    auction_id: UUID,
    current_user: CurrentUser,
    lifecycle: LifecycleDep,
    repo: AuctionRepositoryDep,
):
    """A client's countdown reached zero.

    The auction ends only if the server clock agrees; repeated or early
    signals are harmless.
    """
    result = await lifecycle.handle_expiry_signal(auction_id)
    if result is not None:
        return ExpirySignalResponse(
            auction_id=auction_id, status=result.auction.status, transitioned=True
        )

    auction = await repo.get_auction(auction_id)
    if auction is None:
        raise AuctionNotFound(auction_id)
    return ExpirySignalResponse(auction_id=auction_id, status=auction.status, transitioned=False)


@router.post("/{auction_id}/close", response_model=SettlementResponse)
async def close_auction(
    auction_id: UUID,
    current_user: CurrentUser,
    lifecycle: LifecycleDep,
):
    """End an active auction now. Seller or admin only.

    Raises:
        403: Not the seller or an admin
        404: Auction not found
        409: Auction is not active
    """
    result = await lifecycle.close_auction(
        auction_id, current_user.user_id, is_admin=current_user.is_admin
    )
    return _settlement_response(result)
