"""Auction lifecycle: activation, bid placement, proxy bids and settlement.

Status only moves forward, scheduled -> active -> ended. Every transition is
a conditional update in the repository, so however many triggers race (the
sweeper, a client's expiry signal, an admin close) each auction transitions
once and its side effects run once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from auction_engine.core.config import settings
from auction_engine.core.exceptions import (
    AuctionError,
    AuctionNotFound,
    InvalidTransition,
    NotAuthorized,
)
from auction_engine.middleware.metrics import record_bid, record_transition
from auction_engine.models.auction import AuctionStatus, EndReason
from auction_engine.models.notification import NotificationType
from auction_engine.services.auction_clock import is_expired, utcnow
from auction_engine.services.auction_repository import (
    AuctionRepository,
    AuctionSnapshot,
    BidCommit,
    BidRecord,
)
from auction_engine.services.bid_validator import AuctionState
from auction_engine.services.notification_service import NotificationService
from auction_engine.services.realtime import RealtimeBus

logger = logging.getLogger(__name__)


@dataclass
class BidOutcome:
    """Result of ``place_bid``, after proxy bids have answered."""

    bid: BidRecord
    current_bid: Decimal
    highest_bidder_id: UUID
    outbid_user_id: UUID | None = None
    proxy_bids: list[BidRecord] = field(default_factory=list)


@dataclass
class SettlementResult:
    auction: AuctionSnapshot
    winner_id: UUID | None
    winning_bid: Decimal | None

    @property
    def sold(self) -> bool:
        return self.winner_id is not None


def _fmt(amount: Decimal | None) -> str:
    return f"{amount:.2f}" if amount is not None else "-"


def _name(auction: AuctionSnapshot) -> str:
    return auction.title or f"auction {auction.auction_id}"


class AuctionLifecycleManager:
    """Orchestrates state transitions and their side effects.

    Notifications and realtime publishes are best-effort: a failure is
    logged and counted, and the committed bid or transition stands.
    """

    def __init__(
        self,
        repo: AuctionRepository,
        notifier: NotificationService,
        realtime: RealtimeBus | None = None,
        max_proxy_rounds: int | None = None,
    ):
        self.repo = repo
        self.notifier = notifier
        self.realtime = realtime
        self.max_proxy_rounds = max_proxy_rounds or settings.PROXY_BID_MAX_ROUNDS

    # ==================== Activation ====================

    async def activate_due(self, now: datetime | None = None) -> list[AuctionSnapshot]:
        """Move every scheduled auction whose start_time has passed to active.

        Returns:
            Auctions activated by this call
        """
        now = now or utcnow()
        activated = []
        due_ids = [due.auction_id for due in await self.repo.list_due_for_activation(now)]
        for auction_id in due_ids:
            auction = await self.repo.update_auction_status(
                auction_id, AuctionStatus.SCHEDULED, AuctionStatus.ACTIVE
            )
            if auction is None:
                continue

            record_transition(AuctionStatus.ACTIVE.value)
            logger.info(f"Auction {auction.auction_id} is now active")
            activated.append(auction)

            if auction.seller_id is not None:
                await self.notifier.notify_safely(
                    auction.seller_id,
                    NotificationType.AUCTION_START,
                    "Your auction has started",
                    f"Bidding is open on {_name(auction)}",
                    auction_id=auction.auction_id,
                    listing_id=auction.listing_id,
                )
            await self._publish_status(auction)
        return activated

    # ==================== Bidding ====================

    async def place_bid(
        self,
        auction_id: UUID,
        bidder_id: UUID,
        amount: Any,
        now: datetime | None = None,
    ) -> BidOutcome:
        """Place a bid and run its side effects.

        The repository validates against the locked row and commits; only
        then are the outbid and seller notifications sent and the event
        published. Proxy bids answer afterwards.

        Args:
            auction_id: Auction UUID
            bidder_id: Bidder UUID
            amount: Proposed amount
            now: Server time (defaults to the current UTC time)

        Returns:
            BidOutcome with the accepted bid and the resulting state

        Raises:
            AuctionError: Any rejection from the bidding rules
        """
        now = now or utcnow()
        try:
            commit = await self.repo.insert_bid(auction_id, bidder_id, amount, now)
        except AuctionError as e:
            record_bid(e.code.lower())
            raise

        record_bid("accepted")
        await self._after_bid(commit)

        proxy_bids: list[BidRecord] = []
        try:
            proxy_bids = await self.resolve_proxy_bids(auction_id, now)
        except Exception as e:
            logger.error(f"Proxy bidding on auction {auction_id} stopped: {e}")

        final = proxy_bids[-1] if proxy_bids else commit.bid
        return BidOutcome(
            bid=commit.bid,
            current_bid=final.amount,
            highest_bidder_id=final.bidder_id,
            outbid_user_id=commit.decision.previous_high_bidder_id,
            proxy_bids=proxy_bids,
        )

    async def _after_bid(self, commit: BidCommit) -> None:
        auction, bid = commit.auction, commit.bid
        outbid = commit.decision.previous_high_bidder_id

        if outbid is not None:
            await self._notify_outbid(auction, outbid, bid)

        if auction.seller_id is not None:
            await self.notifier.notify_safely(
                auction.seller_id,
                NotificationType.BID,
                "New bid on your auction",
                f"A bid of {_fmt(bid.amount)} was placed on {_name(auction)}",
                auction_id=auction.auction_id,
                listing_id=auction.listing_id,
                related_user_id=bid.bidder_id,
            )

        if self.realtime is not None:
            try:
                await self.realtime.publish_bid_inserted(
                    auction.auction_id,
                    {
                        "bid_id": str(bid.bid_id),
                        "auction_id": str(auction.auction_id),
                        "bidder_id": str(bid.bidder_id),
                        "amount": str(bid.amount),
                        "is_autobid": bid.is_autobid,
                        "created_at": bid.created_at.isoformat() if bid.created_at else None,
                    },
                )
            except Exception as e:
                logger.warning(f"Failed to publish bid {bid.bid_id}: {e}")

    async def _notify_outbid(self, auction: AuctionSnapshot, user_id: UUID, bid: BidRecord) -> None:
        await self.notifier.notify_safely(
            user_id,
            NotificationType.OUTBID,
            "You've been outbid",
            f"The highest bid on {_name(auction)} is now {_fmt(bid.amount)}",
            auction_id=auction.auction_id,
            listing_id=auction.listing_id,
            related_user_id=bid.bidder_id,
        )

    # ==================== Proxy bids ====================

    async def resolve_proxy_bids(
        self, auction_id: UUID, now: datetime | None = None
    ) -> list[BidRecord]:
        """Let proxy bids answer the current high bid.

        Each round the strongest proxy that is not leading either takes the
        lead at one increment over the leader's ceiling, or, if the leader's
        own proxy is higher, the leader's proxy rises to one increment over
        it. When both maximums are equal the proxy set first wins at that
        maximum. Proxies that can no longer beat the current bid are
        deactivated.

        Returns:
            Bids placed on behalf of proxies, in order
        """
        now = now or utcnow()
        placed: list[BidRecord] = []

        for _ in range(self.max_proxy_rounds):
            auction = await self.repo.get_auction(auction_id)
            if (
                auction is None
                or auction.status != AuctionStatus.ACTIVE
                or is_expired(auction.end_time, now)
            ):
                break

            state = AuctionState.from_model(auction)
            leader = state.highest_bidder_id
            leader_proxy = None
            challengers = []
            for auto_bid in await self.repo.list_active_auto_bids(auction_id):
                if auto_bid.user_id == leader:
                    leader_proxy = auto_bid
                elif auto_bid.user_id == state.seller_id or auto_bid.max_amount <= state.threshold:
                    await self.repo.deactivate_auto_bid(auction_id, auto_bid.user_id)
                else:
                    challengers.append(auto_bid)

            if not challengers:
                break

            top = challengers[0]
            if leader_proxy is not None and leader_proxy.max_amount > state.threshold:
                leader_ceiling = leader_proxy.max_amount
            else:
                leader_ceiling = state.threshold

            challenger_first = (
                leader_proxy is not None
                and top.max_amount == leader_ceiling
                and top.created_at < leader_proxy.created_at
            )
            if top.max_amount > leader_ceiling or challenger_first:
                bidder_id = top.user_id
                amount = min(top.max_amount, leader_ceiling + state.bid_increment)
                beaten_user_id = None
            else:
                bidder_id = leader_proxy.user_id
                amount = min(leader_proxy.max_amount, top.max_amount + state.bid_increment)
                beaten_user_id = top.user_id

            try:
                commit = await self.repo.insert_bid(
                    auction_id, bidder_id, amount, now, is_autobid=True
                )
            except AuctionError as e:
                record_bid(e.code.lower())
                logger.warning(f"Proxy bid by {bidder_id} on auction {auction_id} rejected: {e.message}")
                break

            record_bid("proxy")
            placed.append(commit.bid)
            await self._after_bid(commit)

            if beaten_user_id is not None:
                await self._notify_outbid(commit.auction, beaten_user_id, commit.bid)
                await self.repo.deactivate_auto_bid(auction_id, beaten_user_id)
        else:
            logger.warning(f"Proxy bidding on auction {auction_id} hit {self.max_proxy_rounds} rounds")

        return placed

    # ==================== Ending ====================

    async def end_auction(
        self,
        auction_id: UUID,
        reason: EndReason = EndReason.EXPIRED,
        now: datetime | None = None,
    ) -> SettlementResult | None:
        """Transition active -> ended and settle.

        Returns:
            SettlementResult for the caller that performed the transition,
            None for every caller that lost the race or found it not active
        """
        auction = await self.repo.update_auction_status(
            auction_id, AuctionStatus.ACTIVE, AuctionStatus.ENDED, reason.value
        )
        if auction is None:
            return None

        record_transition(AuctionStatus.ENDED.value)
        result = await self._settle(auction)
        logger.info(
            f"Auction {auction_id} ended ({reason.value}), "
            f"winner={result.winner_id} amount={_fmt(result.winning_bid)}"
        )
        await self._publish_status(auction, result)
        return result

    async def _settle(self, auction: AuctionSnapshot) -> SettlementResult:
        """Notify the winner and the seller. Unsold auctions notify nobody."""
        winner_id = auction.highest_bidder_id
        winning_bid = auction.current_bid
        if winner_id is None:
            return SettlementResult(auction=auction, winner_id=None, winning_bid=None)

        await self.notifier.notify_safely(
            winner_id,
            NotificationType.AUCTION_WON,
            "You won the auction",
            f"You won {_name(auction)} with a bid of {_fmt(winning_bid)}",
            auction_id=auction.auction_id,
            listing_id=auction.listing_id,
            related_user_id=auction.seller_id,
        )
        if auction.seller_id is not None:
            await self.notifier.notify_safely(
                auction.seller_id,
                NotificationType.SALE,
                "Your auction sold",
                f"{_name(auction)} sold for {_fmt(winning_bid)}",
                auction_id=auction.auction_id,
                listing_id=auction.listing_id,
                related_user_id=winner_id,
            )
        return SettlementResult(auction=auction, winner_id=winner_id, winning_bid=winning_bid)

    async def handle_expiry_signal(
        self, auction_id: UUID, now: datetime | None = None
    ) -> SettlementResult | None:
        """A client's clock reached zero.

        Ends the auction only when the server clock agrees, so a client with
        a fast clock cannot end an auction early.

        Raises:
            AuctionNotFound: If the auction does not exist
        """
        now = now or utcnow()
        auction = await self.repo.get_auction(auction_id)
        if auction is None:
            raise AuctionNotFound(auction_id)
        if auction.status != AuctionStatus.ACTIVE:
            return None
        if not is_expired(auction.end_time, now):
            logger.debug(f"Early expiry signal for auction {auction_id} ignored")
            return None
        return await self.end_auction(auction_id, EndReason.EXPIRED, now)

    async def close_auction(
        self, auction_id: UUID, actor_id: UUID, is_admin: bool = False, now: datetime | None = None
    ) -> SettlementResult:
        """End an active auction before its end_time.

        Args:
            auction_id: Auction UUID
            actor_id: User asking for the close
            is_admin: Whether the actor is an admin
            now: Server time

        Raises:
            AuctionNotFound: If the auction does not exist
            NotAuthorized: If the actor is neither admin nor the seller
            InvalidTransition: If the auction is not active
        """
        auction = await self.repo.get_auction(auction_id)
        if auction is None:
            raise AuctionNotFound(auction_id)
        if not is_admin and actor_id != auction.seller_id:
            raise NotAuthorized("Only the seller or an admin can close this auction")
        if auction.status != AuctionStatus.ACTIVE:
            raise InvalidTransition(auction.status, AuctionStatus.ENDED.value)

        result = await self.end_auction(auction_id, EndReason.CLOSED, now)
        if result is None:
            # Another trigger ended it between the read and the update
            raise InvalidTransition(AuctionStatus.ACTIVE.value, AuctionStatus.ENDED.value)
        return result

    async def sweep_expired(self, now: datetime | None = None) -> list[SettlementResult]:
        """End every active auction whose end_time has passed."""
        now = now or utcnow()
        settled = []
        due_ids = [due.auction_id for due in await self.repo.list_due_for_expiry(now)]
        for auction_id in due_ids:
            try:
                result = await self.end_auction(auction_id, EndReason.EXPIRED, now)
            except AuctionError as e:
                logger.error(f"Failed to end auction {auction_id}: {e.message}")
                continue
            if result is not None:
                settled.append(result)
        return settled

    async def _publish_status(
        self, auction: AuctionSnapshot, result: SettlementResult | None = None
    ) -> None:
        if self.realtime is None:
            return
        data = {
            "auction_id": str(auction.auction_id),
            "status": auction.status,
            "ended_reason": auction.ended_reason,
        }
        if result is not None:
            data["winner_id"] = str(result.winner_id) if result.winner_id else None
            data["winning_bid"] = str(result.winning_bid) if result.winning_bid is not None else None
        try:
            await self.realtime.publish_status_changed(auction.auction_id, data)
        except Exception as e:
            logger.warning(f"Failed to publish status of auction {auction.auction_id}: {e}")
