"""Tests for session countdowns."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from sweepbot.services.timer_service import CountdownTimer, TimerService, format_remaining


def test_format_remaining():
    assert format_remaining(65) == "1:05"
    assert format_remaining(600) == "10:00"
    assert format_remaining(0) == "0:00"
    assert format_remaining(-3) == "0:00"


@pytest.mark.asyncio
async def test_countdown_ticks_then_expires():
    ticks = []

    async def on_tick(remaining: int):
        ticks.append(remaining)

    on_expire = AsyncMock()
    timer = CountdownTimer(3, on_expire, on_tick, tick_interval=0.01)
    timer.start()
    await timer.task

    assert ticks == [2, 1, 0]
    on_expire.assert_awaited_once()
    assert not timer.running


@pytest.mark.asyncio
async def test_failing_tick_does_not_stop_countdown():
    on_expire = AsyncMock()
    timer = CountdownTimer(2, on_expire, AsyncMock(side_effect=RuntimeError("boom")), tick_interval=0.01)
    timer.start()
    await timer.task
    on_expire.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_before_expiry():
    on_expire = AsyncMock()
    timer = CountdownTimer(100, on_expire, tick_interval=0.01)
    timer.start()
    await asyncio.sleep(0.03)
    await timer.stop()

    assert not timer.running
    assert timer.remaining < 100
    on_expire.assert_not_awaited()


@pytest.mark.asyncio
async def test_stop_from_expiry_callback():
    """Stopping a timer from inside its own on_expire must not cancel itself."""
    timer = None

    async def on_expire():
        await timer.stop()

    timer = CountdownTimer(1, on_expire, tick_interval=0.01)
    timer.start()
    task = timer.task
    await task
    assert not task.cancelled()


@pytest.mark.asyncio
async def test_timer_service_keeps_one_timer_per_chat():
    service = TimerService()
    first_expire = AsyncMock()
    second_expire = AsyncMock()

    first = await service.start(1, 100, first_expire)
    second = await service.start(1, 100, second_expire)

    assert not first.running
    assert second.running
    assert service.timers == {1: second}
    assert service.remaining(1) == 100
    assert service.remaining(2) is None

    await service.stop_all()
    assert service.timers == {}
    first_expire.assert_not_awaited()
    second_expire.assert_not_awaited()


@pytest.mark.asyncio
async def test_timer_service_stop_unknown_chat():
    service = TimerService()
    await service.stop(42)
    assert service.remaining(42) is None
