"""API dependencies for authentication, database access and services."""

import logging
from datetime import datetime, timezone
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auction_engine.core.database import get_db
from auction_engine.core.redis import get_redis
from auction_engine.core.security import decode_access_token
from auction_engine.models.user import User, UserStatus
from auction_engine.services.auction_repository import AuctionRepository
from auction_engine.services.lifecycle_service import AuctionLifecycleManager
from auction_engine.services.notification_service import NotificationService
from auction_engine.services.realtime import RealtimeBus, get_realtime_bus
from auction_engine.services.redis_service import RedisService
from auction_engine.services.user_service import UserService, cache_fields

logger = logging.getLogger(__name__)

security = HTTPBearer()

USER_CACHE_TTL = 120


def _user_from_cache(user_id: UUID, data: dict[str, str]) -> User:
    """Reconstruct a detached User from cached data without hitting the database."""
    created_at_str = data.get("created_at")
    try:
        created_at = datetime.fromisoformat(created_at_str) if created_at_str else None
    except ValueError:
        created_at = None

    user = User(
        email=data.get("email", ""),
        password_hash="",  # Not cached for security
        username=data.get("username", ""),
        status=data.get("status", UserStatus.ACTIVE.value),
        is_admin=data.get("is_admin", "False").lower() == "true",
    )
    # Bypass SQLAlchemy instrumentation for columns the database normally sets
    object.__setattr__(user, "user_id", user_id)
    object.__setattr__(user, "created_at", created_at or datetime.now(timezone.utc))
    return user


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


async def resolve_user(token: str, db: AsyncSession, redis_service: RedisService) -> User | None:
    """Resolve an access token to an active user, or None.

    Shared by the HTTP bearer dependency and the WebSocket endpoint.
    """
    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        return None
    try:
        user_uuid = UUID(payload["sub"])
    except ValueError:
        return None

    user_id = str(user_uuid)
    try:
        cached_user = await redis_service.get_cached_user(user_id)
    except Exception as e:
        logger.warning(f"User cache read failed: {e}")
        cached_user = None
    if cached_user:
        if cached_user.get("status") != UserStatus.ACTIVE:
            return None
        return _user_from_cache(user_uuid, cached_user)

    user = await UserService(db).get_by_id(user_uuid)
    if user is None or user.status != UserStatus.ACTIVE:
        return None

    try:
        await redis_service.cache_user(user_id, cache_fields(user), ttl=USER_CACHE_TTL)
    except Exception as e:
        logger.warning(f"User cache write failed: {e}")
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
) -> User:
    """Get current authenticated user from JWT token with Redis caching.

    Raises:
        HTTPException: If token is invalid or user not found / inactive
    """
    user = await resolve_user(credentials.credentials, db, redis_service)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are an admin.

    Raises:
        HTTPException: If user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_current_admin_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
RedisServiceDep = Annotated[RedisService, Depends(get_redis_service)]


async def get_realtime() -> RealtimeBus:
    return await get_realtime_bus()


async def get_auction_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
) -> AuctionRepository:
    """Get AuctionRepository instance with injected dependencies."""
    return AuctionRepository(db, redis_service)


async def get_notification_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> NotificationService:
    return NotificationService(db)


async def get_lifecycle_manager(
    repo: Annotated[AuctionRepository, Depends(get_auction_repository)],
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
    realtime: Annotated[RealtimeBus, Depends(get_realtime)],
) -> AuctionLifecycleManager:
    """Get AuctionLifecycleManager wired to the request's session."""
    return AuctionLifecycleManager(repo, notifier, realtime)


AuctionRepositoryDep = Annotated[AuctionRepository, Depends(get_auction_repository)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
LifecycleDep = Annotated[AuctionLifecycleManager, Depends(get_lifecycle_manager)]


async def get_user_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
) -> UserService:
    return UserService(db, redis_service)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]
