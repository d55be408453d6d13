"""Data access for auctions, bids and proxy bid settings."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from cachetools import TTLCache
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from auction_engine.core.config import settings
from auction_engine.core.exceptions import AuctionError, AuctionNotFound, translate_transient_errors
from auction_engine.models.auction import Auction, AuctionStatus
from auction_engine.models.auto_bid import AutoBid
from auction_engine.models.bid import Bid
from auction_engine.schemas.auction import AuctionCreate
from auction_engine.services.auction_clock import as_utc
from auction_engine.services.bid_validator import AuctionState, BidDecision, validate_bid
from auction_engine.services.redis_service import RedisService

logger = logging.getLogger(__name__)

# end_time never changes after creation, so it is safe to keep locally
_end_time_local_cache: TTLCache = TTLCache(maxsize=1000, ttl=settings.AUCTION_CACHE_TTL_SECONDS)


@dataclass(frozen=True)
class AuctionSnapshot:
    """Column values of an auction row, detached from the session.

    Side effects that run after a commit read from this rather than from
    the ORM object, which a later rollback on the shared session expires.
    """

    auction_id: UUID
    seller_id: UUID | None
    listing_id: UUID | None
    title: str | None
    status: str
    ended_reason: str | None
    current_bid: Decimal | None
    highest_bidder_id: UUID | None
    end_time: datetime

    @classmethod
    def from_model(cls, auction: Auction) -> "AuctionSnapshot":
        return cls(
            auction_id=auction.auction_id,
            seller_id=auction.seller_id,
            listing_id=auction.listing_id,
            title=auction.title,
            status=auction.status,
            ended_reason=auction.ended_reason,
            current_bid=auction.current_bid,
            highest_bidder_id=auction.highest_bidder_id,
            end_time=auction.end_time,
        )


@dataclass(frozen=True)
class BidRecord:
    """A committed bid, detached from the session."""

    bid_id: UUID
    auction_id: UUID
    bidder_id: UUID
    amount: Decimal
    is_autobid: bool
    created_at: datetime

    @classmethod
    def from_model(cls, bid: Bid) -> "BidRecord":
        return cls(
            bid_id=bid.bid_id,
            auction_id=bid.auction_id,
            bidder_id=bid.bidder_id,
            amount=bid.amount,
            is_autobid=bid.is_autobid,
            created_at=bid.created_at,
        )


@dataclass
class BidCommit:
    """A persisted bid together with the decision that admitted it."""

    bid: BidRecord
    decision: BidDecision
    auction: AuctionSnapshot


class AuctionRepository:
    """Async SQLAlchemy implementation of the auction data-access interface."""

    def __init__(self, db: AsyncSession, redis_service: RedisService | None = None):
        self.db = db
        self.redis_service = redis_service

    # ==================== Auctions ====================

    async def create_auction(self, seller_id: UUID, data: AuctionCreate) -> Auction:
        """Create a scheduled auction.

        Args:
            seller_id: Owner of the auction
            data: Validated auction parameters

        Returns:
            Created auction
        """
        auction = Auction(
            seller_id=seller_id,
            listing_id=data.listing_id,
            title=data.title,
            starting_price=data.starting_price,
            bid_increment=data.bid_increment,
            start_time=as_utc(data.start_time),
            end_time=as_utc(data.end_time),
            status=AuctionStatus.SCHEDULED.value,
        )
        with translate_transient_errors():
            self.db.add(auction)
            await self.db.commit()
            await self.db.refresh(auction)
        logger.info(f"Auction {auction.auction_id} scheduled by {seller_id}")
        return auction

    async def get_auction(self, auction_id: UUID) -> Auction | None:
        with translate_transient_errors():
            result = await self.db.execute(
                select(Auction).where(Auction.auction_id == auction_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def list_auctions(
        self, status: str | None = None, skip: int = 0, limit: int = 50
    ) -> tuple[list[Auction], int]:
        """List auctions, soonest-ending first.

        Returns:
            Tuple of (auctions, total matching)
        """
        query = select(Auction)
        count_query = select(func.count(Auction.auction_id))
        if status is not None:
            query = query.where(Auction.status == status)
            count_query = count_query.where(Auction.status == status)

        with translate_transient_errors():
            result = await self.db.execute(
                query.order_by(Auction.end_time.asc()).offset(skip).limit(limit)
            )
            auctions = list(result.scalars().all())
            total = (await self.db.execute(count_query)).scalar_one()
        return auctions, total

    async def get_end_time(self, auction_id: UUID) -> datetime:
        """Resolve an auction's end time for clock readings.

        Uses a 3-tier lookup: local TTLCache, then the Redis snapshot,
        then the database.

        Raises:
            AuctionNotFound: If the auction does not exist
        """
        key = str(auction_id)
        cached = _end_time_local_cache.get(key)
        if cached is not None:
            return cached

        if self.redis_service is not None:
            with translate_transient_errors():
                snapshot = await self.redis_service.get_cached_auction(key)
            if snapshot and "end_time" in snapshot:
                end_time = as_utc(datetime.fromisoformat(snapshot["end_time"]))
                _end_time_local_cache[key] = end_time
                return end_time

        auction = await self.get_auction(auction_id)
        if auction is None:
            raise AuctionNotFound(auction_id)

        end_time = as_utc(auction.end_time)
        _end_time_local_cache[key] = end_time
        if self.redis_service is not None:
            with translate_transient_errors():
                await self.redis_service.cache_auction(
                    key,
                    {"end_time": end_time.isoformat(), "status": auction.status},
                    ttl=settings.AUCTION_CACHE_TTL_SECONDS,
                )
        return end_time

    async def update_auction_status(
        self,
        auction_id: UUID,
        expected: AuctionStatus,
        new: AuctionStatus,
        reason: str | None = None,
    ) -> AuctionSnapshot | None:
        """Move an auction from ``expected`` to ``new`` in one conditional UPDATE.

        Concurrent callers race on the WHERE clause; exactly one of them gets
        the updated row back and the rest get None.

        Returns:
            Snapshot of the updated auction, or None if it was not in ``expected``
        """
        values: dict = {"status": new.value}
        if reason is not None:
            values["ended_reason"] = reason

        stmt = (
            update(Auction)
            .where(Auction.auction_id == auction_id, Auction.status == expected.value)
            .values(**values)
            .returning(Auction)
        )
        with translate_transient_errors():
            result = await self.db.execute(stmt)
            row = result.scalar_one_or_none()
            snapshot = AuctionSnapshot.from_model(row) if row is not None else None
            await self.db.commit()

        if snapshot is not None and self.redis_service is not None:
            try:
                await self.redis_service.invalidate_auction_cache(str(auction_id))
            except Exception as e:
                logger.warning(f"Failed to invalidate cache for auction {auction_id}: {e}")
        return snapshot

    async def list_due_for_activation(self, now: datetime, limit: int = 100) -> list[Auction]:
        with translate_transient_errors():
            result = await self.db.execute(
                select(Auction)
                .where(
                    Auction.status == AuctionStatus.SCHEDULED.value,
                    Auction.start_time <= now,
                )
                .order_by(Auction.start_time.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_due_for_expiry(self, now: datetime, limit: int = 100) -> list[Auction]:
        with translate_transient_errors():
            result = await self.db.execute(
                select(Auction)
                .where(
                    Auction.status == AuctionStatus.ACTIVE.value,
                    Auction.end_time <= now,
                )
                .order_by(Auction.end_time.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ==================== Bids ====================

    async def insert_bid(
        self,
        auction_id: UUID,
        bidder_id: UUID,
        amount: object,
        now: datetime,
        is_autobid: bool = False,
    ) -> BidCommit:
        """Validate and persist a bid atomically.

        Locks the auction row with SELECT ... FOR UPDATE, re-runs the bidding
        rules against the locked row, then inserts the bid and moves
        current_bid in the same transaction. Concurrent bids on one auction
        serialize here, so a decision made on a stale snapshot never commits.

        created_at is strictly later than every earlier bid on the auction,
        so bids placed within one clock reading still sort in placement order.

        Args:
            auction_id: Auction UUID
            bidder_id: Bidder UUID
            amount: Proposed amount
            now: Server time used for the expiry check
            is_autobid: True when placed by a proxy bid

        Returns:
            BidCommit with detached copies of the new bid and the auction

        Raises:
            AuctionNotFound, AuctionClosed, AuctionNotActive, InvalidAmount,
            SelfBidNotAllowed, BidTooLow, TransientNetworkError
        """
        try:
            with translate_transient_errors():
                result = await self.db.execute(
                    select(Auction)
                    .where(Auction.auction_id == auction_id)
                    .with_for_update()
                )
                auction = result.scalar_one_or_none()
                if auction is None:
                    raise AuctionNotFound(auction_id)

                decision = validate_bid(
                    AuctionState.from_model(auction), amount, now, bidder_id=bidder_id
                )

                latest = (
                    await self.db.execute(
                        select(func.max(Bid.created_at)).where(Bid.auction_id == auction_id)
                    )
                ).scalar()
                created_at = as_utc(now)
                if latest is not None and as_utc(latest) >= created_at:
                    created_at = as_utc(latest) + timedelta(microseconds=1)

                bid = Bid(
                    auction_id=auction_id,
                    bidder_id=bidder_id,
                    amount=decision.amount,
                    is_autobid=is_autobid,
                    created_at=created_at,
                )
                self.db.add(bid)
                auction.current_bid = decision.amount
                auction.highest_bidder_id = bidder_id

                await self.db.commit()
                await self.db.refresh(bid)
                commit = BidCommit(
                    bid=BidRecord.from_model(bid),
                    decision=decision,
                    auction=AuctionSnapshot.from_model(auction),
                )
        except AuctionError:
            await self.db.rollback()
            raise

        return commit

    async def list_bids(self, auction_id: UUID) -> list[Bid]:
        """All bids on an auction in creation order."""
        with translate_transient_errors():
            result = await self.db.execute(
                select(Bid)
                .where(Bid.auction_id == auction_id)
                .order_by(Bid.created_at.asc(), Bid.bid_id.asc())
            )
            return list(result.scalars().all())

    async def count_bids(self, auction_id: UUID) -> int:
        with translate_transient_errors():
            result = await self.db.execute(
                select(func.count(Bid.bid_id)).where(Bid.auction_id == auction_id)
            )
            return result.scalar_one()

    # ==================== Proxy bids ====================

    async def upsert_auto_bid(
        self, auction_id: UUID, user_id: UUID, max_amount: Decimal
    ) -> AutoBid:
        """Set a user's proxy maximum, re-activating an existing row.

        Uses INSERT ... ON CONFLICT UPDATE on (auction_id, user_id).
        """
        stmt = pg_insert(AutoBid).values(
            auction_id=auction_id,
            user_id=user_id,
            max_amount=max_amount,
            is_active=True,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["auction_id", "user_id"],
            set_={
                "max_amount": max_amount,
                "is_active": True,
                "updated_at": func.now(),
            },
        ).returning(AutoBid)

        with translate_transient_errors():
            result = await self.db.execute(stmt)
            auto_bid = result.scalar_one()
            await self.db.commit()
        return auto_bid

    async def get_auto_bid(self, auction_id: UUID, user_id: UUID) -> AutoBid | None:
        with translate_transient_errors():
            result = await self.db.execute(
                select(AutoBid)
                .where(
                    AutoBid.auction_id == auction_id,
                    AutoBid.user_id == user_id,
                )
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def deactivate_auto_bid(self, auction_id: UUID, user_id: UUID) -> bool:
        """Turn off a user's proxy bid.

        Returns:
            True if an active proxy bid was deactivated
        """
        with translate_transient_errors():
            result = await self.db.execute(
                update(AutoBid)
                .where(
                    AutoBid.auction_id == auction_id,
                    AutoBid.user_id == user_id,
                    AutoBid.is_active.is_(True),
                )
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return result.rowcount > 0

    async def list_active_auto_bids(self, auction_id: UUID) -> list[AutoBid]:
        """Active proxy bids, highest maximum first, earliest first on ties."""
        with translate_transient_errors():
            result = await self.db.execute(
                select(AutoBid)
                .where(
                    AutoBid.auction_id == auction_id,
                    AutoBid.is_active.is_(True),
                )
                .order_by(AutoBid.max_amount.desc(), AutoBid.created_at.asc())
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())
