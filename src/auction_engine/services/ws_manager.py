"""WebSocket connection manager for real-time auction rooms."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import WebSocket

from auction_engine.core.config import settings
from auction_engine.middleware.metrics import WS_ROOMS_ACTIVE
from auction_engine.schemas.ws import (
    AuctionEndedEvent,
    AuctionStartedEvent,
    AuctionStatusData,
    BidPlacedData,
    BidPlacedEvent,
    ClockTickData,
    ClockTickEvent,
)
from auction_engine.services.auction_clock import AuctionClock, ClockReading
from auction_engine.services.realtime import RealtimeBus, Subscription

logger = logging.getLogger(__name__)

ExpireHandler = Callable[[str], Awaitable[Any]]


@dataclass
class AuctionRoom:
    """Connections watching one auction plus the tasks feeding them."""

    auction_id: str
    connections: dict[str, WebSocket] = field(default_factory=dict)
    clock: AuctionClock | None = None
    subscriptions: list[Subscription] = field(default_factory=list)


class ConnectionManager:
    """Manages WebSocket connections organized by auction rooms.

    Each room runs one AuctionClock pushing ``clock_tick`` events and one set
    of realtime subscriptions forwarding ``bid_placed`` and ``auction_ended``.
    Both start with the first connection and stop when the room empties.
    """

    def __init__(self):
        self.rooms: dict[str, AuctionRoom] = {}
        self._lock = asyncio.Lock()
        # Wired in the application lifespan
        self.realtime: RealtimeBus | None = None
        self.on_clock_expire: ExpireHandler | None = None

    async def connect(
        self,
        auction_id: str,
        user_id: str,
        websocket: WebSocket,
        end_time: datetime | None = None,
        locale: str | None = None,
    ) -> None:
        """Accept connection and add to auction room.

        Args:
            auction_id: Auction UUID string
            user_id: User UUID string
            websocket: WebSocket connection
            end_time: Auction end time; the room clock only starts when given
            locale: Clock label locale for the room
        """
        await websocket.accept()

        async with self._lock:
            room = self.rooms.get(auction_id)
            if room is None:
                room = AuctionRoom(auction_id=auction_id)
                self.rooms[auction_id] = room
                WS_ROOMS_ACTIVE.inc()
                self._start_room(room, end_time, locale)

            # If user already has a connection, close the old one
            old_ws = room.connections.get(user_id)
            if old_ws is not None:
                try:
                    await old_ws.close()
                except Exception as e:
                    logger.debug(f"Closing stale socket for {user_id} failed: {e}")

            room.connections[user_id] = websocket
            logger.info(
                f"WebSocket connected: auction={auction_id}, user={user_id}, "
                f"room_size={len(room.connections)}"
            )

    async def disconnect(self, auction_id: str, user_id: str) -> None:
        """Remove connection from auction room, closing the room when empty."""
        async with self._lock:
            room = self.rooms.get(auction_id)
            if room is None:
                return
            if room.connections.pop(user_id, None) is not None:
                logger.info(f"WebSocket disconnected: auction={auction_id}, user={user_id}")

            if not room.connections:
                del self.rooms[auction_id]
                WS_ROOMS_ACTIVE.dec()
                await self._stop_room(room)

    def _start_room(self, room: AuctionRoom, end_time: datetime | None, locale: str | None) -> None:
        auction_id = room.auction_id

        if end_time is not None:
            async def on_tick(reading: ClockReading) -> None:
                await self.broadcast_clock_tick(auction_id, reading)

            async def on_expire() -> None:
                if self.on_clock_expire is not None:
                    await self.on_clock_expire(auction_id)

            room.clock = AuctionClock(
                end_time,
                on_expire=on_expire,
                on_tick=on_tick,
                locale=locale or settings.CLOCK_LOCALE,
                tick_interval=settings.CLOCK_TICK_SECONDS,
            )
            room.clock.start()

        if self.realtime is not None:
            async def on_bid(data: dict[str, Any]) -> None:
                await self.broadcast_bid_placed(auction_id, data)

            async def on_status(data: dict[str, Any]) -> None:
                await self.broadcast_status(auction_id, data)

            room.subscriptions = [
                self.realtime.on_bid_inserted(auction_id, on_bid),
                self.realtime.on_auction_status_changed(auction_id, on_status),
            ]

    async def _stop_room(self, room: AuctionRoom) -> None:
        for subscription in room.subscriptions:
            subscription.close()
        room.subscriptions = []
        if room.clock is not None:
            await room.clock.stop()
            room.clock = None

    async def send_to_user(
        self, auction_id: str, user_id: str, message: dict[str, Any]
    ) -> bool:
        """Send message to a specific user in an auction room.

        Returns:
            True if message was sent, False if user not connected
        """
        room = self.rooms.get(auction_id)
        if room is None or user_id not in room.connections:
            return False

        websocket = room.connections[user_id]
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send to user {user_id}: {e}")
            await self.disconnect(auction_id, user_id)
            return False

    async def broadcast_to_auction(
        self, auction_id: str, message: dict[str, Any]
    ) -> int:
        """Broadcast message to all users in an auction room using concurrent sends.

        Returns:
            Number of users successfully sent to
        """
        room = self.rooms.get(auction_id)
        if room is None:
            return 0

        # Create a copy to avoid modification during iteration
        connections = dict(room.connections)
        if not connections:
            return 0

        async def send_to_one(user_id: str, ws: WebSocket) -> tuple[str, bool]:
            try:
                await ws.send_json(message)
                return (user_id, True)
            except Exception as e:
                logger.warning(f"Failed to broadcast to user {user_id}: {e}")
                return (user_id, False)

        results = await asyncio.gather(
            *[send_to_one(uid, ws) for uid, ws in connections.items()],
            return_exceptions=True,
        )

        sent_count = 0
        disconnected_users = []
        for result in results:
            if isinstance(result, Exception):
                continue
            user_id, success = result
            if success:
                sent_count += 1
            else:
                disconnected_users.append(user_id)

        for user_id in disconnected_users:
            await self.disconnect(auction_id, user_id)

        return sent_count

    async def broadcast_clock_tick(self, auction_id: str, reading: ClockReading) -> int:
        event = ClockTickEvent(
            data=ClockTickData(
                auction_id=auction_id,
                remaining_seconds=reading.remaining_seconds,
                label=reading.label,
                expired=reading.expired,
                timestamp=datetime.now(timezone.utc),
            )
        )
        return await self.broadcast_to_auction(auction_id, event.model_dump(mode="json"))

    async def broadcast_bid_placed(self, auction_id: str, data: dict[str, Any]) -> int:
        event = BidPlacedEvent(data=BidPlacedData(**data))
        return await self.broadcast_to_auction(auction_id, event.model_dump(mode="json"))

    async def broadcast_status(self, auction_id: str, data: dict[str, Any]) -> int:
        """Forward a status change; an ended auction also stops the room clock."""
        status_data = AuctionStatusData(**data)
        if status_data.status == "ended":
            event = AuctionEndedEvent(data=status_data)
            room = self.rooms.get(auction_id)
            # An expired clock stops on its own; only a closed auction needs stopping
            if room is not None and room.clock is not None and not room.clock.expiry_signaled:
                await room.clock.stop()
        else:
            event = AuctionStartedEvent(data=status_data)
        return await self.broadcast_to_auction(auction_id, event.model_dump(mode="json"))

    def get_room_size(self, auction_id: str) -> int:
        """Get number of connected users in an auction room."""
        room = self.rooms.get(auction_id)
        return len(room.connections) if room else 0

    def get_active_auctions(self) -> list[str]:
        return list(self.rooms.keys())

    def get_connected_users(self, auction_id: str) -> list[str]:
        room = self.rooms.get(auction_id)
        return list(room.connections.keys()) if room else []


# Global singleton instance
manager = ConnectionManager()
