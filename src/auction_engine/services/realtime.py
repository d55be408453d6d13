"""Realtime bid and status events over Redis pub/sub.

Every worker publishes to ``auction:{auction_id}:events``; any worker with a
WebSocket room for that auction receives the event, whichever worker
committed the bid. Ordering is whatever Redis delivers; there is no replay.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable
from uuid import UUID

from redis.asyncio import Redis

from auction_engine.core.redis import get_redis

logger = logging.getLogger(__name__)

BID_INSERTED = "bid_inserted"
AUCTION_STATUS_CHANGED = "auction_status_changed"

EventCallback = Callable[[dict[str, Any]], Any]


def channel_for(auction_id: UUID | str) -> str:
    return f"auction:{auction_id}:events"


class Subscription:
    """Handle returned by the ``on_*`` methods. ``close()`` is idempotent."""

    def __init__(self, bus: "RealtimeBus", channel: str, event: str, callback: EventCallback):
        self._bus = bus
        self.channel = channel
        self.event = event
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._bus._remove(self)


class RealtimeBus:
    """Publish and subscribe to per-auction change events.

    Example:
        >>> bus = RealtimeBus(redis)
        >>> sub = bus.on_bid_inserted(auction_id, handle_bid)
        >>> await bus.publish_bid_inserted(auction_id, {"amount": "1500.00"})
        >>> sub.close()
    """

    def __init__(self, redis: Redis):
        self.redis = redis
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._listeners: dict[str, asyncio.Task] = {}

    # ==================== Publishing ====================

    async def publish(self, auction_id: UUID | str, event: str, data: dict[str, Any]) -> int:
        """Publish one event.

        Returns:
            Number of Redis subscribers that received it
        """
        payload = json.dumps({"event": event, "data": data}, default=str)
        return await self.redis.publish(channel_for(auction_id), payload)

    async def publish_bid_inserted(self, auction_id: UUID | str, bid: dict[str, Any]) -> int:
        return await self.publish(auction_id, BID_INSERTED, bid)

    async def publish_status_changed(self, auction_id: UUID | str, change: dict[str, Any]) -> int:
        return await self.publish(auction_id, AUCTION_STATUS_CHANGED, change)

    # ==================== Subscribing ====================

    def on_bid_inserted(self, auction_id: UUID | str, callback: EventCallback) -> Subscription:
        """Call ``callback(bid_data)`` for each bid committed on the auction."""
        return self._add(channel_for(auction_id), BID_INSERTED, callback)

    def on_auction_status_changed(
        self, auction_id: UUID | str, callback: EventCallback
    ) -> Subscription:
        """Call ``callback(change_data)`` for each status transition of the auction."""
        return self._add(channel_for(auction_id), AUCTION_STATUS_CHANGED, callback)

    def _add(self, channel: str, event: str, callback: EventCallback) -> Subscription:
        subscription = Subscription(self, channel, event, callback)
        self._subscriptions.setdefault(channel, []).append(subscription)
        if channel not in self._listeners:
            self._listeners[channel] = asyncio.create_task(self._listen(channel))
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.channel, [])
        if subscription in subs:
            subs.remove(subscription)
        if not subs:
            self._subscriptions.pop(subscription.channel, None)
            task = self._listeners.pop(subscription.channel, None)
            if task is not None:
                task.cancel()

    async def _listen(self, channel: str) -> None:
        """Pump messages for one channel until cancelled."""
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            logger.info(f"Listening on {channel}")
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                await self.dispatch(channel, message["data"])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Listener for {channel} stopped: {e}")
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except Exception as e:
                logger.warning(f"Failed to close pubsub for {channel}: {e}")

    async def dispatch(self, channel: str, raw: str | bytes) -> None:
        """Route a raw pub/sub payload to the matching callbacks."""
        try:
            message = json.loads(raw)
            event = message["event"]
            data = message.get("data", {})
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Dropping malformed message on {channel}: {e}")
            return

        for subscription in list(self._subscriptions.get(channel, [])):
            if subscription.event != event:
                continue
            try:
                result = subscription.callback(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Callback for {event} on {channel} failed: {e}")

    async def close(self) -> None:
        """Cancel every listener."""
        tasks = list(self._listeners.values())
        self._listeners.clear()
        self._subscriptions.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


_bus: RealtimeBus | None = None


async def get_realtime_bus() -> RealtimeBus:
    """Get the process-wide bus on the shared Redis pool."""
    global _bus
    if _bus is None:
        _bus = RealtimeBus(await get_redis())
    return _bus


async def close_realtime_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
        _bus = None
