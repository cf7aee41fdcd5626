"""Countdown for the active event.

IDLE -> RUNNING when the engine reports an active event, RUNNING -> IDLE when
it no longer does. While running, ticks once per interval. The first tick
that reaches zero captures the next event's last price and fires on_expire
exactly once. The cadence keeps running until the clock passes the event's
end_time, then moves on to whichever event is active.
"""

import logging
import math
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from polymarket_updown.config import COUNTDOWN_INTERVAL
from polymarket_updown.core.lifecycle import EventLifecycleEngine
from polymarket_updown.core.snapshots import PriceSnapshotTracker
from polymarket_updown.core.timers import Scheduler, TimerHandle
from polymarket_updown.models import EventDescriptor

logger = logging.getLogger(__name__)


class CountdownState(Enum):
    IDLE = "idle"
    RUNNING = "running"


def seconds_remaining(event: EventDescriptor, now: datetime) -> int:
    return max(0, math.floor((event.end_time - now).total_seconds()))


class CountdownDriver:
    def __init__(
        self,
        engine: EventLifecycleEngine,
        tracker: PriceSnapshotTracker,
        scheduler: Scheduler,
        on_tick: Callable[[int | None], None] | None = None,
        on_expire: Callable[[str], None] | None = None,
        interval: float = COUNTDOWN_INTERVAL,
    ) -> None:
        self._engine = engine
        self._tracker = tracker
        self._scheduler = scheduler
        self._interval = interval
        self.on_tick = on_tick
        self.on_expire = on_expire

        self._timer: TimerHandle | None = None
        self._event: EventDescriptor | None = None
        self._expired_slug: str | None = None
        self.remaining: int | None = None

    @property
    def state(self) -> CountdownState:
        return CountdownState.RUNNING if self._timer is not None else CountdownState.IDLE

    @property
    def event_slug(self) -> str | None:
        return self._event.slug if self._event else None

    def sync(self) -> None:
        """Follow the engine's active event: start, restart or stop."""
        if self._event is not None and seconds_remaining(self._event, self._engine.now()) == 0:
            # tracked event ran out between two timer ticks
            self.tick()
        self._follow()

    def _follow(self) -> None:
        index = self._engine.get_current_event_index()
        if index < 0:
            if self.state is CountdownState.RUNNING:
                self.stop()
            return
        active = self._engine.get_events()[index].event
        if self.state is CountdownState.IDLE or active.slug != self.event_slug:
            self.start()

    def start(self) -> None:
        """(Re)start for the current active event. Stops any prior cadence first."""
        self.stop()
        index = self._engine.get_current_event_index()
        if index < 0:
            return
        self._event = self._engine.get_events()[index].event
        self._timer = self._scheduler.call_every(self._interval, self.tick)
        if self._event.slug == self._expired_slug:
            # already counted down; the cadence hands over once end_time passes
            self.remaining = 0
            return
        logger.debug("Countdown started for %s", self._event.slug)
        self.tick()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._event = None
        self.remaining = None

    def tick(self) -> None:
        if self._event is None:
            self.stop()
            if self.on_tick:
                self.on_tick(None)
            return

        event = self._event
        if event.slug != self._expired_slug:
            self.remaining = seconds_remaining(event, self._engine.now())
            if self.on_tick:
                self.on_tick(self.remaining)
            if self.remaining > 0:
                return

            nxt = self._engine.next_event(event.slug)
            if nxt is not None:
                self._tracker.capture_last_price(nxt.slug)
            logger.info("Event %s expired", event.slug)
            self._expired_slug = event.slug
            if self.on_expire:
                self.on_expire(event.slug)

        # the timer may fire inside the final second, before end_time
        if self._event is event and self._engine.now() >= event.end_time:
            self._follow()
