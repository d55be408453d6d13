"""WebSocket endpoint for real-time auction updates."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from auction_engine.api.deps import resolve_user
from auction_engine.core.database import async_session_maker
from auction_engine.core.redis import get_redis
from auction_engine.services.auction_repository import AuctionRepository
from auction_engine.services.redis_service import RedisService
from auction_engine.services.ws_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/{auction_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    auction_id: str,
    token: str = Query(..., description="JWT access token"),
    locale: str | None = Query(None, description="Clock label locale"),
):
    """WebSocket endpoint for real-time auction updates.

    Connection URL: ws://host/ws/{auction_id}?token={jwt_token}

    Events pushed to client:
    - clock_tick: Remaining time, once per second
    - bid_placed: Every accepted bid, including proxy bids
    - auction_started / auction_ended: Status transitions

    Client can send:
    - ping: Server responds with pong (heartbeat)
    """
    try:
        auction_uuid = UUID(auction_id)
    except ValueError:
        await websocket.close(code=4002, reason="Invalid auction ID")
        return

    # The session is only held while authenticating and loading the auction
    async with async_session_maker() as session:
        redis_service = RedisService(await get_redis())
        user = await resolve_user(token, session, redis_service)
        if user is None:
            await websocket.close(code=4001, reason="Invalid token")
            return
        auction = await AuctionRepository(session, redis_service).get_auction(auction_uuid)
        if auction is None:
            await websocket.close(code=4004, reason="Auction not found")
            return
        end_time = auction.end_time

    # Normalized so every connection to one auction shares a room
    room_id = str(auction_uuid)
    user_id = str(user.user_id)
    await manager.connect(room_id, user_id, websocket, end_time=end_time, locale=locale)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: auction={room_id}, user={user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: auction={room_id}, user={user_id}, error={e}")
    finally:
        await manager.disconnect(room_id, user_id)
