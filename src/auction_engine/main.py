import asyncio
import logging
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auction_engine.api.v1 import auctions, auth, auto_bids, bids, notifications, users, ws
from auction_engine.core.config import settings
from auction_engine.core.database import async_session_maker
from auction_engine.core.exceptions import AuctionError
from auction_engine.core.redis import close_redis, get_redis
from auction_engine.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from auction_engine.services.auction_repository import AuctionRepository
from auction_engine.services.lifecycle_service import AuctionLifecycleManager
from auction_engine.services.notification_service import NotificationService
from auction_engine.services.realtime import close_realtime_bus, get_realtime_bus
from auction_engine.services.redis_service import RedisService
from auction_engine.services.ws_manager import manager

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Background task control
_activation_task: asyncio.Task | None = None
_expiry_sweep_task: asyncio.Task | None = None
_notification_cleanup_task: asyncio.Task | None = None


@asynccontextmanager
async def lifecycle_manager():
    """A lifecycle manager on a fresh session, for work outside a request."""
    async with async_session_maker() as session:
        redis_service = RedisService(await get_redis())
        yield AuctionLifecycleManager(
            AuctionRepository(session, redis_service),
            NotificationService(session),
            await get_realtime_bus(),
        )


async def _run_locked(name: str, ttl: int, job) -> None:
    """Run ``job`` only if this worker holds the named lock."""
    redis_service = RedisService(await get_redis())
    acquired, owner_id = await redis_service.acquire_lock(name, ttl=ttl)
    if not acquired:
        return
    try:
        await job()
    finally:
        await redis_service.release_lock(name, owner_id)


async def activation_loop():
    """Background task opening scheduled auctions whose start_time has passed."""
    interval = settings.LIFECYCLE_CHECK_INTERVAL_SECONDS

    async def job():
        async with lifecycle_manager() as lifecycle:
            activated = await lifecycle.activate_due()
            if activated:
                logger.info(f"Activated {len(activated)} auctions")

    while True:
        try:
            await _run_locked("lifecycle:activation", int(interval * 2) + 1, job)
            await asyncio.sleep(interval)

        except asyncio.CancelledError:
            logger.info("Activation loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in activation loop: {e}")
            await asyncio.sleep(interval)


async def expiry_sweep_loop():
    """Background task ending active auctions whose end_time has passed.

    The server clock is authoritative; client expiry signals only make the
    transition happen sooner.
    """
    interval = settings.LIFECYCLE_CHECK_INTERVAL_SECONDS

    async def job():
        async with lifecycle_manager() as lifecycle:
            settled = await lifecycle.sweep_expired()
            if settled:
                logger.info(
                    f"Ended {len(settled)} auctions, "
                    f"{sum(1 for r in settled if r.sold)} sold"
                )

    while True:
        try:
            await _run_locked("lifecycle:expiry", int(interval * 2) + 1, job)
            await asyncio.sleep(interval)

        except asyncio.CancelledError:
            logger.info("Expiry sweep loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in expiry sweep loop: {e}")
            await asyncio.sleep(interval)


async def notification_cleanup_loop():
    """Background task deleting read notifications past retention."""
    interval = settings.NOTIFICATION_CLEANUP_INTERVAL_SECONDS

    async def job():
        async with async_session_maker() as session:
            await NotificationService(session).cleanup_read_older_than()

    while True:
        try:
            await _run_locked("notifications:cleanup", 600, job)
            await asyncio.sleep(interval)

        except asyncio.CancelledError:
            logger.info("Notification cleanup loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in notification cleanup loop: {e}")
            await asyncio.sleep(interval)


async def on_room_clock_expire(auction_id: str) -> None:
    """Expiry signal from a WebSocket room clock."""
    async with lifecycle_manager() as lifecycle:
        await lifecycle.handle_expiry_signal(UUID(auction_id))


async def _cancel(task: asyncio.Task | None) -> None:
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    global _activation_task, _expiry_sweep_task, _notification_cleanup_task

    # Startup
    logger.info("Starting application...")
    manager.realtime = await get_realtime_bus()
    manager.on_clock_expire = on_room_clock_expire

    logger.info("Starting background tasks...")
    _activation_task = asyncio.create_task(activation_loop())
    _expiry_sweep_task = asyncio.create_task(expiry_sweep_loop())
    _notification_cleanup_task = asyncio.create_task(notification_cleanup_loop())

    yield

    # Shutdown
    logger.info("Stopping background tasks")
    await _cancel(_activation_task)
    await _cancel(_expiry_sweep_task)
    await _cancel(_notification_cleanup_task)

    await close_realtime_bus()
    manager.realtime = None
    await close_redis()


app = FastAPI(
    title="Auction Engine",
    version="1.0.0",
    description="Timed auctions with bidding, proxy bids, settlement and notifications",
    lifespan=lifespan,
)


@app.exception_handler(AuctionError)
async def auction_error_handler(request: Request, exc: AuctionError) -> JSONResponse:
    """Render typed auction errors as ``{"detail": {"code", "message"}}``."""
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=headers,
    )


# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(auctions.router, prefix="/api/v1/auctions", tags=["auctions"])
app.include_router(bids.router, prefix="/api/v1/bids", tags=["bids"])
app.include_router(auto_bids.router, prefix="/api/v1/auto-bids", tags=["auto-bids"])
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["notifications"])
app.include_router(users.router, prefix="/api/v1/users", tags=["users"])

# WebSocket router (no prefix, endpoint is /ws/{auction_id})
app.include_router(ws.router, tags=["websocket"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
