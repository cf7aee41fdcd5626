from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from polymarket_updown.errors import CatalogError
from polymarket_updown.models import EventDescriptor

# 2025-01-01 00:00:00 UTC, aligned to a 15 minute slot
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
SLOT = timedelta(minutes=15)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ManualTimer:
    def __init__(self, scheduler: ManualScheduler, interval: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.interval = interval
        self.callback = callback
        self.due = scheduler.elapsed + interval
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """Scheduler whose time only moves when a test calls advance()."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.elapsed = 0.0
        self.timers: list[ManualTimer] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self, interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def live_timers(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float, step: float = 1.0) -> None:
        target = self.elapsed + seconds
        while self.elapsed < target:
            delta = min(step, target - self.elapsed)
            self.elapsed += delta
            self.clock.advance(delta)
            for timer in list(self.timers):
                while not timer.cancelled and timer.due <= self.elapsed:
                    timer.due += timer.interval
                    timer.callback()


def make_event(start: datetime, asset: str = "btc") -> EventDescriptor:
    ts = int(start.timestamp())
    return EventDescriptor(
        slug=f"{asset}-updown-15m-{ts}",
        title=f"Bitcoin Up or Down - {start:%B %d, %H:%M} UTC",
        start_time=start,
        end_time=start + SLOT,
        condition_id=f"0xcond{ts}",
        question_id=f"0xq{ts}",
        clob_token_ids=(f"{ts}1", f"{ts}2"),
    )


def make_events(count: int, start: datetime = T0) -> list[EventDescriptor]:
    return [make_event(start + i * SLOT) for i in range(count)]


class FakeCatalog:
    """Stands in for gamma.fetch_upcoming."""

    def __init__(self, events: list[EventDescriptor] | None = None) -> None:
        self.events = list(events or [])
        self.error: Exception | None = None
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def __call__(self, count: int) -> list[EventDescriptor]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.events[:count]

    def fail(self, message: str = "API returned 503") -> None:
        self.error = CatalogError(message)


class FakeFeed:
    def __init__(self, on_price, on_status) -> None:
        self.on_price = on_price
        self.on_status = on_status
        self.started = 0
        self.stopped = 0

    def start(self) -> None:
        self.started += 1

    async def stop(self) -> None:
        self.stopped += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog(make_events(10))
