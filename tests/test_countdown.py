from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from conftest import SLOT, T0
from polymarket_updown.core.countdown import CountdownDriver, CountdownState, seconds_remaining
from polymarket_updown.core.lifecycle import EventLifecycleEngine
from polymarket_updown.core.snapshots import PriceSnapshotTracker
from polymarket_updown.display.format import fmt_countdown
from polymarket_updown.models import PriceTick


@pytest.fixture
def engine(clock, catalog):
    engine = EventLifecycleEngine(catalog, clock=clock)
    asyncio.run(engine.refresh(10))
    return engine


@pytest.fixture
def tracker(engine):
    return PriceSnapshotTracker(engine)


@pytest.fixture
def driver(engine, tracker, scheduler):
    ticks: list = []
    expired: list = []
    d = CountdownDriver(engine, tracker, scheduler, on_tick=ticks.append, on_expire=expired.append)
    d.ticks = ticks
    d.expired = expired
    return d


def test_seconds_remaining_floors_and_clamps():
    from conftest import make_event

    event = make_event(T0)
    assert seconds_remaining(event, T0) == 900
    assert seconds_remaining(event, T0 + timedelta(seconds=0.4)) == 899
    assert seconds_remaining(event, T0 + SLOT) == 0
    assert seconds_remaining(event, T0 + SLOT + timedelta(minutes=3)) == 0


def test_idle_without_active_event(clock, driver):
    clock.set(T0 - timedelta(minutes=1))

    driver.sync()

    assert driver.state is CountdownState.IDLE
    assert driver.remaining is None


def test_running_ticks_every_second(clock, scheduler, driver):
    clock.set(T0 + timedelta(minutes=10))

    driver.sync()
    scheduler.advance(3)

    assert driver.state is CountdownState.RUNNING
    assert driver.ticks == [300, 299, 298, 297]
    assert fmt_countdown(driver.remaining) == "00:04:57"


def test_expiry_reports_zero_and_refreshes_once(clock, scheduler, engine, tracker, driver):
    events = engine.get_events()
    clock.set(T0 + SLOT - timedelta(seconds=2))
    tracker.record_tick(PriceTick(value=64000.0, timestamp=clock()))

    driver.sync()
    scheduler.advance(10)
    driver.sync()
    driver.sync()

    assert driver.ticks[:3] == [2, 1, 0]
    assert driver.expired == [events[0].slug]
    assert driver.event_slug == events[1].slug
    assert tracker.get_last_price(events[1].slug) == 64000.0


def test_end_time_equal_to_now_reports_zero_once(clock, engine, scheduler, driver):
    events = engine.get_events()
    clock.set(T0 + timedelta(minutes=14))
    driver.sync()

    # the timer doesn't fire before the clock reaches end_time exactly
    clock.set(events[0].event.end_time)
    driver.sync()
    driver.sync()

    # 60 on start, 0 when the boundary is seen, then the next event takes over
    assert driver.ticks == [60, 0, 900]
    assert fmt_countdown(driver.ticks[1]) == "00:00:00"
    assert driver.expired == [events[0].slug]
    assert driver.event_slug == events[1].slug


def test_restart_never_stacks_timers(clock, scheduler, driver):
    clock.set(T0 + timedelta(minutes=5))

    driver.start()
    driver.start()
    driver.start()

    assert len(scheduler.live_timers) == 1
    before = len(driver.ticks)
    scheduler.advance(1)
    assert len(driver.ticks) == before + 1


def test_follows_next_active_event(clock, scheduler, engine, driver):
    events = engine.get_events()
    clock.set(T0 + SLOT - timedelta(seconds=1))
    driver.sync()
    scheduler.advance(2)
    assert driver.expired == [events[0].slug]

    driver.sync()

    assert driver.state is CountdownState.RUNNING
    assert driver.event_slug == events[1].slug
    assert len(scheduler.live_timers) == 1


def test_stop_cancels_timer(clock, scheduler, driver):
    clock.set(T0 + timedelta(minutes=5))
    driver.sync()

    driver.stop()
    driver.stop()
    count = len(driver.ticks)
    scheduler.advance(5)

    assert driver.state is CountdownState.IDLE
    assert len(driver.ticks) == count
    assert scheduler.live_timers == []


def test_hands_over_when_timer_fires_inside_last_second(clock, scheduler, engine, driver):
    events = engine.get_events()
    clock.set(T0 + SLOT - timedelta(seconds=1.5))
    driver.sync()

    scheduler.advance(1)
    assert driver.expired == [events[0].slug]
    assert driver.state is CountdownState.RUNNING
    assert driver.event_slug == events[0].slug
    assert driver.remaining == 0

    # a refresh landing before end_time changes nothing
    driver.sync()
    assert driver.event_slug == events[0].slug

    scheduler.advance(1)

    assert driver.ticks == [1, 0, 899]
    assert driver.expired == [events[0].slug]
    assert driver.event_slug == events[1].slug
    assert len(scheduler.live_timers) == 1


def test_sync_during_last_second_does_not_restart_expired_event(clock, scheduler, engine, driver):
    events = engine.get_events()
    clock.set(T0 + SLOT - timedelta(seconds=0.5))
    driver.sync()
    driver.stop()

    driver.sync()

    assert driver.state is CountdownState.RUNNING
    assert driver.remaining == 0
    assert driver.expired == [events[0].slug]
    scheduler.advance(1)
    assert driver.event_slug == events[1].slug
    assert driver.ticks == [0, 899]
