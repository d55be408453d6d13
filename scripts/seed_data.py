"""Seed data script for development and testing.

Creates:
- 1 admin, 1 seller and USER_COUNT bidders
- 1 active auction ending AUCTION_DURATION_MINUTES from now
- 1 scheduled auction starting in 5 minutes

Environment Variables:
    AUCTION_DURATION_MINUTES: Active auction duration in minutes (default: 20)
    USER_COUNT: Number of bidder accounts (default: 50)
    RESET_DATA: Set to "true" to clear auctions, bids and notifications first (default: false)

Usage:
    python -m scripts.seed_data
    RESET_DATA=true AUCTION_DURATION_MINUTES=5 python -m scripts.seed_data

Accounts:
    - Admin: admin@test.com / admin123
    - Seller: seller@test.com / password123
    - Bidders: user0001@test.com ~ user{USER_COUNT}@test.com / password123
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from auction_engine.core.database import async_session_maker, engine
from auction_engine.core.redis import close_redis, get_redis
from auction_engine.core.security import get_password_hash
from auction_engine.models import Auction, AuctionStatus, User
from auction_engine.services.redis_service import RedisService

# Configuration from environment variables
AUCTION_DURATION_MINUTES = int(os.getenv("AUCTION_DURATION_MINUTES", "20"))
USER_COUNT = int(os.getenv("USER_COUNT", "50"))
RESET_DATA = os.getenv("RESET_DATA", "false").lower() == "true"


async def reset_auction_data(session: AsyncSession) -> None:
    """Clear notifications, proxy bids, bids and auctions."""
    print("Resetting auction data...")
    await session.execute(text("DELETE FROM notifications"))
    await session.execute(text("DELETE FROM auto_bids"))
    await session.execute(text("DELETE FROM bids"))
    await session.execute(text("DELETE FROM auctions"))
    await session.commit()
    print("  Cleared notifications, auto_bids, bids, auctions")


async def seed_users(session: AsyncSession) -> tuple[User, list[User]]:
    """Create the admin, the seller and the bidders.

    Returns:
        Tuple of (seller, bidders)
    """
    print("Seeding users...")

    result = await session.execute(select(User).where(User.email == "seller@test.com"))
    seller = result.scalar_one_or_none()
    if seller is not None:
        print("  Users already exist, skipping...")
        result = await session.execute(
            select(User).where(User.email.like("user%@test.com")).order_by(User.email)
        )
        return seller, list(result.scalars().all())

    password_hash = get_password_hash("password123")
    admin = User(
        email="admin@test.com",
        password_hash=get_password_hash("admin123"),
        username="admin",
        status="active",
        is_admin=True,
    )
    seller = User(
        email="seller@test.com",
        password_hash=password_hash,
        username="seller",
        status="active",
    )
    bidders = [
        User(
            email=f"user{i:04d}@test.com",
            password_hash=password_hash,
            username=f"user{i:04d}",
            status="active",
        )
        for i in range(1, USER_COUNT + 1)
    ]

    session.add_all([admin, seller, *bidders])
    await session.commit()
    print(f"  Created admin, seller and {len(bidders)} bidders")
    return seller, bidders


async def seed_auctions(session: AsyncSession, seller: User) -> list[Auction]:
    """Create one active and one scheduled auction for the seller."""
    print("Seeding auctions...")

    now = datetime.now(timezone.utc)
    active = Auction(
        seller_id=seller.user_id,
        title="Vintage mechanical watch",
        starting_price=Decimal("1000.00"),
        bid_increment=Decimal("50.00"),
        start_time=now,
        end_time=now + timedelta(minutes=AUCTION_DURATION_MINUTES),
        status=AuctionStatus.ACTIVE.value,
    )
    scheduled = Auction(
        seller_id=seller.user_id,
        title="Signed first edition",
        starting_price=Decimal("250.00"),
        bid_increment=Decimal("10.00"),
        start_time=now + timedelta(minutes=5),
        end_time=now + timedelta(minutes=5 + AUCTION_DURATION_MINUTES),
        status=AuctionStatus.SCHEDULED.value,
    )
    session.add_all([active, scheduled])
    await session.commit()

    for auction in (active, scheduled):
        print(f"  Created auction: {auction.auction_id} ({auction.status})")
        print(f"    Start: {auction.start_time}")
        print(f"    End: {auction.end_time}")
    return [active, scheduled]


async def main():
    """Main seed function."""
    print("=" * 60)
    print("Auction Engine - Seed Data Script")
    print("=" * 60)
    print(f"  RESET_DATA: {RESET_DATA}")
    print(f"  AUCTION_DURATION_MINUTES: {AUCTION_DURATION_MINUTES}")
    print(f"  USER_COUNT: {USER_COUNT}")
    print("=" * 60)

    async with async_session_maker() as session:
        if RESET_DATA:
            await reset_auction_data(session)

        seller, bidders = await seed_users(session)
        auctions = await seed_auctions(session, seller)

    # Warm the auction snapshot cache used by the clock endpoint
    redis_service = RedisService(await get_redis())
    for auction in auctions:
        await redis_service.cache_auction(
            str(auction.auction_id),
            {"end_time": auction.end_time.isoformat(), "status": auction.status},
        )

    print("=" * 60)
    print("Seed data complete!")
    print(f"  Bidders: {len(bidders)}")
    print(f"  Active auction: {auctions[0].auction_id}")
    print(f"  Watch it live: ws://localhost:8000/ws/{auctions[0].auction_id}?token=<jwt>")
    print("=" * 60)

    await close_redis()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
