"""Tests for the auction countdown clock.

Covers label formatting per unit, locale fallback, non-negative remaining
time, and the exactly-once expiry signal of a running clock.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from auction_engine.services.auction_clock import (
    CLOCK_LABELS,
    AuctionClock,
    format_remaining,
    get_labels,
    is_expired,
    read_clock,
    remaining_time,
)

END = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
EN = CLOCK_LABELS["en"]


class TestFormatRemaining:
    """Test coarsest-unit label formatting."""

    def test_days_and_hours(self):
        """At least a day left shows days and hours."""
        assert format_remaining(timedelta(days=2, hours=3, minutes=59), EN) == "2d 3h"

    def test_hours_and_minutes(self):
        assert format_remaining(timedelta(hours=1, minutes=5, seconds=30), EN) == "1h 5m"

    def test_minutes_and_seconds(self):
        assert format_remaining(timedelta(minutes=3, seconds=7), EN) == "3m 7s"

    def test_seconds_only(self):
        assert format_remaining(timedelta(seconds=42), EN) == "42s"

    def test_units_are_floored(self):
        """59.9 seconds is still 59 seconds."""
        assert format_remaining(timedelta(seconds=59, milliseconds=900), EN) == "59s"
        assert format_remaining(timedelta(hours=23, minutes=59, seconds=59), EN) == "23h 59m"

    def test_zero_is_expired_label(self):
        assert format_remaining(timedelta(0), EN) == "Auction ended"

    def test_arabic_labels(self):
        """Arabic locale uses its own templates."""
        ar = get_labels("ar")
        assert format_remaining(timedelta(seconds=5), ar) == "5 ثانية"
        assert format_remaining(timedelta(0), ar) == "انتهى المزاد"

    def test_unknown_locale_falls_back_to_english(self):
        assert get_labels("xx") is EN
        assert get_labels(None) is EN


class TestRemainingTime:
    """Test expiry rule and clamping."""

    def test_never_negative(self):
        """Remaining time after the end is zero, not negative."""
        assert remaining_time(END, END + timedelta(minutes=10)) == timedelta(0)

    def test_expired_at_exact_end_time(self):
        assert is_expired(END, END)
        assert not is_expired(END, END - timedelta(microseconds=1))

    def test_naive_datetimes_treated_as_utc(self):
        naive_end = END.replace(tzinfo=None)
        assert remaining_time(naive_end, END - timedelta(seconds=30)) == timedelta(seconds=30)

    def test_read_clock_after_end(self):
        reading = read_clock(END, now=END + timedelta(seconds=1))
        assert reading.expired
        assert reading.remaining_seconds == 0
        assert reading.label == "Auction ended"


class TestAuctionClockTick:
    """Test the edge-triggered expiry signal."""

    def test_expired_now_only_on_first_expired_tick(self):
        """Expiry is reported exactly once per clock."""
        clock = AuctionClock(END)

        before = clock.tick(END - timedelta(seconds=1))
        first = clock.tick(END)
        second = clock.tick(END + timedelta(seconds=1))

        assert not before.expired and not before.expired_now
        assert first.expired and first.expired_now
        assert second.expired and not second.expired_now
        assert clock.expiry_signaled

    def test_tick_label_uses_locale(self):
        clock = AuctionClock(END, locale="ar")
        reading = clock.tick(END - timedelta(minutes=2, seconds=3))
        assert reading.label == "2 دقيقة 3 ثانية"


class TestAuctionClockRun:
    """Test the periodic runner."""

    @pytest.mark.asyncio
    async def test_run_calls_on_expire_once_and_stops(self):
        """Ticks until expiry, fires the callback once, then returns."""
        times = iter([
            END - timedelta(seconds=2),
            END - timedelta(seconds=1),
            END,
            END + timedelta(seconds=1),
        ])
        on_expire = AsyncMock()
        readings = []

        clock = AuctionClock(
            END,
            on_expire=on_expire,
            on_tick=readings.append,
            tick_interval=0,
            now_fn=lambda: next(times),
        )
        await clock.run()

        on_expire.assert_awaited_once()
        assert [r.remaining_seconds for r in readings] == [2, 1, 0]
        assert [r.expired_now for r in readings] == [False, False, True]

    @pytest.mark.asyncio
    async def test_run_swallows_expire_callback_error(self):
        """A failing expiry handler is logged, not raised."""
        on_expire = AsyncMock(side_effect=RuntimeError("boom"))
        clock = AuctionClock(END, on_expire=on_expire, tick_interval=0, now_fn=lambda: END)

        await clock.run()

        on_expire.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sync_callbacks_supported(self):
        on_expire = MagicMock()
        clock = AuctionClock(END, on_expire=on_expire, tick_interval=0, now_fn=lambda: END)

        await clock.run()

        on_expire.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_cancels_running_clock(self):
        """Stopping before expiry cancels the task without signaling."""
        on_expire = AsyncMock()
        clock = AuctionClock(
            END,
            on_expire=on_expire,
            tick_interval=10,
            now_fn=lambda: END - timedelta(hours=1),
        )

        clock.start()
        await asyncio.sleep(0)
        assert clock.running

        await clock.stop()

        assert not clock.running
        on_expire.assert_not_awaited()
        assert not clock.expiry_signaled

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        clock = AuctionClock(END)
        await clock.stop()
        assert not clock.running
