"""Accounts: registration, sign-in, seller/bidder activity and suspension."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auction_engine.core.exceptions import (
    EmailTaken,
    InvalidCredentials,
    NotAuthorized,
    UserNotFound,
    translate_transient_errors,
)
from auction_engine.core.security import get_password_hash, verify_password
from auction_engine.models.auction import Auction, AuctionStatus
from auction_engine.models.user import User, UserStatus
from auction_engine.schemas.user import UserRegister
from auction_engine.services.redis_service import RedisService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuctionActivity:
    """How many auctions a user is selling and has won."""

    selling: int
    won: int


def cache_fields(user: User) -> dict:
    """The user fields kept in the Redis user cache. Never the password hash."""
    return {
        "username": user.username,
        "email": user.email,
        "status": user.status,
        "is_admin": str(user.is_admin),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


class UserService:
    """Account operations for buyers, sellers and admins.

    Any user can both sell and bid; ``is_admin`` is the only role flag.
    """

    def __init__(self, db: AsyncSession, redis_service: RedisService | None = None):
        self.db = db
        self.redis_service = redis_service

    async def get_by_email(self, email: str) -> User | None:
        with translate_transient_errors():
            result = await self.db.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def get_by_id(self, user_id: UUID) -> User | None:
        with translate_transient_errors():
            result = await self.db.execute(select(User).where(User.user_id == user_id))
            return result.scalar_one_or_none()

    async def create_user(self, user_data: UserRegister) -> User:
        """Register an active, non-admin account.

        Raises:
            EmailTaken: If the email is already registered, including when a
                concurrent registration wins the unique index
        """
        if await self.get_by_email(user_data.email) is not None:
            raise EmailTaken(user_data.email)

        user = User(
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            username=user_data.username,
            status=UserStatus.ACTIVE.value,
            is_admin=False,
        )
        try:
            with translate_transient_errors():
                self.db.add(user)
                await self.db.commit()
                await self.db.refresh(user)
        except IntegrityError:
            await self.db.rollback()
            raise EmailTaken(user_data.email)

        logger.info(f"User {user.user_id} registered")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials for sign-in.

        Raises:
            InvalidCredentials: Unknown email, wrong password or suspended account
        """
        user = await self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentials()
        if user.status != UserStatus.ACTIVE:
            logger.info(f"Sign-in refused for suspended user {user.user_id}")
            raise InvalidCredentials()
        return user

    async def get_activity(self, user_id: UUID) -> AuctionActivity:
        """Count the user's open auctions as seller and ended auctions won."""
        selling_query = select(func.count(Auction.auction_id)).where(
            Auction.seller_id == user_id,
            Auction.status != AuctionStatus.ENDED.value,
        )
        won_query = select(func.count(Auction.auction_id)).where(
            Auction.highest_bidder_id == user_id,
            Auction.status == AuctionStatus.ENDED.value,
        )
        with translate_transient_errors():
            selling = (await self.db.execute(selling_query)).scalar_one()
            won = (await self.db.execute(won_query)).scalar_one()
        return AuctionActivity(selling=selling, won=won)

    async def set_status(self, user_id: UUID, status: UserStatus, actor_id: UUID) -> User:
        """Suspend or reinstate an account.

        The cached copy is dropped so the change applies to the user's next
        request rather than after the cache TTL.

        Raises:
            NotAuthorized: If an admin targets their own account
            UserNotFound: If the user does not exist
        """
        if user_id == actor_id:
            raise NotAuthorized("Admins cannot change their own status")

        user = await self.get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)

        status = UserStatus(status)
        if user.status != status:
            user.status = status.value
            with translate_transient_errors():
                await self.db.commit()
                await self.db.refresh(user)
            logger.info(f"User {user_id} is now {status.value} (by {actor_id})")

        if self.redis_service is not None:
            try:
                await self.redis_service.invalidate_user_cache(str(user_id))
            except Exception as e:
                logger.warning(f"Failed to invalidate cache for user {user_id}: {e}")
        return user
