"""Countdown clock for an auction's end time.

The clock turns ``end_time`` into a remaining-time reading with a localized,
coarsest-unit label, and raises the expiry signal exactly once.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClockLabels:
    """Templates for the remaining-time label in one locale."""

    days: str
    hours: str
    minutes: str
    seconds: str
    expired: str


CLOCK_LABELS: dict[str, ClockLabels] = {
    "en": ClockLabels(
        days="{days}d {hours}h",
        hours="{hours}h {minutes}m",
        minutes="{minutes}m {seconds}s",
        seconds="{seconds}s",
        expired="Auction ended",
    ),
    "ar": ClockLabels(
        days="{days} يوم {hours} ساعة",
        hours="{hours} ساعة {minutes} دقيقة",
        minutes="{minutes} دقيقة {seconds} ثانية",
        seconds="{seconds} ثانية",
        expired="انتهى المزاد",
    ),
}
DEFAULT_LOCALE = "en"


def get_labels(locale: str | None) -> ClockLabels:
    """Return labels for ``locale``, falling back to English."""
    if locale and locale in CLOCK_LABELS:
        return CLOCK_LABELS[locale]
    return CLOCK_LABELS[DEFAULT_LOCALE]


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(end_time: datetime, now: datetime) -> bool:
    """An auction is over once ``now >= end_time``."""
    return as_utc(now) >= as_utc(end_time)


def remaining_time(end_time: datetime, now: datetime) -> timedelta:
    """Time left until ``end_time``, clamped at zero."""
    diff = as_utc(end_time) - as_utc(now)
    return diff if diff > timedelta(0) else timedelta(0)


def format_remaining(remaining: timedelta, labels: ClockLabels) -> str:
    """Format using the coarsest applicable unit.

    days+hours if at least a day is left, else hours+minutes, else
    minutes+seconds, else seconds. Units are floored.
    """
    if remaining <= timedelta(0):
        return labels.expired

    total = int(remaining.total_seconds())

    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 0:
        return labels.days.format(days=days, hours=hours)
    if hours > 0:
        return labels.hours.format(hours=hours, minutes=minutes)
    if minutes > 0:
        return labels.minutes.format(minutes=minutes, seconds=seconds)
    return labels.seconds.format(seconds=seconds)


@dataclass(frozen=True)
class ClockReading:
    """One tick of the clock.

    ``expired_now`` is True only on the first expired reading of a clock.
    """

    end_time: datetime
    remaining: timedelta
    label: str
    expired: bool
    expired_now: bool = False

    @property
    def remaining_seconds(self) -> int:
        return int(self.remaining.total_seconds())


def read_clock(
    end_time: datetime, now: datetime | None = None, locale: str | None = None
) -> ClockReading:
    """Stateless reading, for one-off queries that need no expiry signal."""
    now = now or utcnow()
    remaining = remaining_time(end_time, now)
    expired = is_expired(end_time, now)
    label = get_labels(locale).expired if expired else format_remaining(remaining, get_labels(locale))
    return ClockReading(
        end_time=as_utc(end_time),
        remaining=remaining,
        label=label,
        expired=expired,
    )


ExpireCallback = Callable[[], Any]
TickCallback = Callable[[ClockReading], Any]


class AuctionClock:
    """Periodic countdown with an edge-triggered expiry signal.

    Example:
        >>> clock = AuctionClock(end_time, on_expire=end_auction)
        >>> clock.start()          # ticks once per second in the background
        >>> await clock.stop()     # cancel when the consumer goes away
    """

    def __init__(
        self,
        end_time: datetime,
        on_expire: ExpireCallback | None = None,
        on_tick: TickCallback | None = None,
        locale: str | None = None,
        tick_interval: float = 1.0,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.end_time = as_utc(end_time)
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.labels = get_labels(locale)
        self.tick_interval = tick_interval
        self._now_fn = now_fn
        self._expiry_signaled = False
        self._task: asyncio.Task | None = None

    @property
    def expiry_signaled(self) -> bool:
        return self._expiry_signaled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self, now: datetime | None = None) -> ClockReading:
        """Compute the current reading and latch the expiry edge."""
        now = now or self._now_fn()
        remaining = remaining_time(self.end_time, now)

        if not is_expired(self.end_time, now):
            return ClockReading(
                end_time=self.end_time,
                remaining=remaining,
                label=format_remaining(remaining, self.labels),
                expired=False,
            )

        expired_now = not self._expiry_signaled
        self._expiry_signaled = True
        return ClockReading(
            end_time=self.end_time,
            remaining=timedelta(0),
            label=self.labels.expired,
            expired=True,
            expired_now=expired_now,
        )

    async def run(self) -> None:
        """Tick until expiry has been signaled, then return."""
        while True:
            reading = self.tick()
            if self.on_tick is not None:
                await _maybe_await(self.on_tick(reading))

            if reading.expired:
                if reading.expired_now and self.on_expire is not None:
                    try:
                        await _maybe_await(self.on_expire())
                    except Exception as e:
                        logger.error(f"Expiry callback failed for clock ending {self.end_time}: {e}")
                return

            await asyncio.sleep(self.tick_interval)

    def start(self) -> asyncio.Task:
        """Run the clock as a background task."""
        if not self.running:
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Cancel the background tick, if running."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if task is asyncio.current_task():
            # Stopped from inside a tick callback
            task.cancel()
            return
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result
