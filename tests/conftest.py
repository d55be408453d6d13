"""Pytest configuration and fixtures for testing."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from auction_engine.core.exceptions import AuctionNotFound
from auction_engine.models.auction import AuctionStatus
from auction_engine.models.notification import NotificationType
from auction_engine.services.auction_repository import AuctionSnapshot, BidCommit, BidRecord
from auction_engine.services.bid_validator import AuctionState, validate_bid
from auction_engine.services.lifecycle_service import AuctionLifecycleManager

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# In-memory stand-ins for the data-access layer
# =============================================================================

@dataclass
class FakeAuction:
    seller_id: UUID | None
    starting_price: Decimal
    start_time: datetime
    end_time: datetime
    status: str = AuctionStatus.ACTIVE.value
    current_bid: Decimal | None = None
    highest_bidder_id: UUID | None = None
    bid_increment: Decimal = Decimal("1.00")
    title: str | None = "Vintage watch"
    listing_id: UUID | None = None
    ended_reason: str | None = None
    auction_id: UUID = field(default_factory=uuid4)
    created_at: datetime = NOW


@dataclass
class FakeBid:
    auction_id: UUID
    bidder_id: UUID
    amount: Decimal
    created_at: datetime
    is_autobid: bool = False
    bid_id: UUID = field(default_factory=uuid4)


@dataclass
class FakeAutoBid:
    auction_id: UUID
    user_id: UUID
    max_amount: Decimal
    created_at: datetime
    is_active: bool = True
    auto_bid_id: UUID = field(default_factory=uuid4)
    updated_at: datetime = NOW


class FakeAuctionRepository:
    """Dict-backed repository with the same validate-then-write contract."""

    def __init__(self):
        self.auctions: dict[UUID, FakeAuction] = {}
        self.bids: list[FakeBid] = []
        self.auto_bids: list[FakeAutoBid] = []

    def add_auction(self, **kwargs) -> FakeAuction:
        kwargs.setdefault("seller_id", uuid4())
        kwargs.setdefault("starting_price", Decimal("1000"))
        kwargs.setdefault("start_time", NOW - timedelta(hours=1))
        kwargs.setdefault("end_time", NOW + timedelta(hours=1))
        auction = FakeAuction(**kwargs)
        self.auctions[auction.auction_id] = auction
        return auction

    async def get_auction(self, auction_id):
        return self.auctions.get(auction_id)

    async def insert_bid(self, auction_id, bidder_id, amount, now, is_autobid=False):
        auction = self.auctions.get(auction_id)
        if auction is None:
            raise AuctionNotFound(auction_id)
        decision = validate_bid(AuctionState.from_model(auction), amount, now, bidder_id=bidder_id)
        bid = FakeBid(
            auction_id=auction_id,
            bidder_id=bidder_id,
            amount=decision.amount,
            created_at=now,
            is_autobid=is_autobid,
        )
        self.bids.append(bid)
        auction.current_bid = decision.amount
        auction.highest_bidder_id = bidder_id
        return BidCommit(
            bid=BidRecord.from_model(bid),
            decision=decision,
            auction=AuctionSnapshot.from_model(auction),
        )

    async def list_bids(self, auction_id):
        return [b for b in self.bids if b.auction_id == auction_id]

    async def count_bids(self, auction_id):
        return len(await self.list_bids(auction_id))

    async def update_auction_status(self, auction_id, expected, new, reason=None):
        auction = self.auctions.get(auction_id)
        if auction is None or auction.status != expected.value:
            return None
        auction.status = new.value
        if reason is not None:
            auction.ended_reason = reason
        return AuctionSnapshot.from_model(auction)

    async def list_due_for_activation(self, now):
        return [
            a for a in self.auctions.values()
            if a.status == AuctionStatus.SCHEDULED.value and a.start_time <= now
        ]

    async def list_due_for_expiry(self, now):
        return [
            a for a in self.auctions.values()
            if a.status == AuctionStatus.ACTIVE.value and a.end_time <= now
        ]

    async def upsert_auto_bid(self, auction_id, user_id, max_amount, created_at=NOW):
        existing = await self.get_auto_bid(auction_id, user_id)
        if existing is not None:
            existing.max_amount = Decimal(max_amount)
            existing.is_active = True
            return existing
        auto_bid = FakeAutoBid(auction_id, user_id, Decimal(max_amount), created_at)
        self.auto_bids.append(auto_bid)
        return auto_bid

    async def get_auto_bid(self, auction_id, user_id):
        for auto_bid in self.auto_bids:
            if auto_bid.auction_id == auction_id and auto_bid.user_id == user_id:
                return auto_bid
        return None

    async def deactivate_auto_bid(self, auction_id, user_id):
        auto_bid = await self.get_auto_bid(auction_id, user_id)
        if auto_bid is None or not auto_bid.is_active:
            return False
        auto_bid.is_active = False
        return True

    async def list_active_auto_bids(self, auction_id):
        active = [a for a in self.auto_bids if a.auction_id == auction_id and a.is_active]
        return sorted(active, key=lambda a: (-a.max_amount, a.created_at))


class FakeNotifier:
    """Records every notification instead of storing it."""

    def __init__(self):
        self.sent: list[SimpleNamespace] = []

    async def notify_safely(self, user_id, type, title, message, **refs):
        notification = SimpleNamespace(
            user_id=user_id, type=NotificationType(type), title=title, message=message, **refs
        )
        self.sent.append(notification)
        return notification

    def of_type(self, type: NotificationType) -> list[SimpleNamespace]:
        return [n for n in self.sent if n.type == type]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def repo() -> FakeAuctionRepository:
    return FakeAuctionRepository()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def mock_realtime() -> MagicMock:
    """Realtime bus with awaitable publish methods."""
    realtime = MagicMock()
    realtime.publish_bid_inserted = AsyncMock(return_value=1)
    realtime.publish_status_changed = AsyncMock(return_value=1)
    return realtime


@pytest.fixture
def lifecycle(repo, notifier, mock_realtime) -> AuctionLifecycleManager:
    return AuctionLifecycleManager(repo, notifier, mock_realtime, max_proxy_rounds=20)


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    # Mock common Redis operations
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.expire = AsyncMock(return_value=True)
    redis.hset = AsyncMock(return_value=1)
    redis.hgetall = AsyncMock(return_value={})
    redis.publish = AsyncMock(return_value=1)

    # Pipelines queue commands synchronously and execute once
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, True])
    redis.pipeline = MagicMock(return_value=pipe)

    return redis


@pytest.fixture
def mock_db() -> MagicMock:
    """Create a mock AsyncSession."""
    db = MagicMock()
    db.add = MagicMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    return db


# Mock user fixture
@pytest.fixture
def mock_user() -> MagicMock:
    """Create a mock user object."""
    user = MagicMock()
    user.user_id = uuid4()
    user.email = "test@example.com"
    user.username = "testuser"
    user.status = "active"
    user.is_admin = False
    user.created_at = NOW
    return user


# Mock admin user fixture
@pytest.fixture
def mock_admin_user(mock_user: MagicMock) -> MagicMock:
    """Create a mock admin user object."""
    mock_user.is_admin = True
    return mock_user
