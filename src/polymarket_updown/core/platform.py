"""Wires the feed, catalog, lifecycle engine, snapshot tracker and countdown.

Everything runs on one asyncio loop. Inputs are price ticks, connection
changes and timer callbacks; the only suspending operation is the catalog
refresh. Presentation reads `state()` and listens on `on_change`.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from polymarket_updown.config import (
    DEFAULT_EVENT_COUNT,
    DEFAULT_REFRESH_INTERVAL,
    HISTORY_SIZE,
)
from polymarket_updown.core.countdown import CountdownDriver
from polymarket_updown.core.lifecycle import EventLifecycleEngine, FetchUpcoming, Clock, utcnow
from polymarket_updown.core.snapshots import PriceSnapshotTracker
from polymarket_updown.core.timers import AsyncioScheduler, Scheduler, TimerHandle
from polymarket_updown.errors import CatalogError
from polymarket_updown.models import (
    ConnectionState,
    ConnectionStatus,
    DataSource,
    EventStatus,
    EventView,
    PriceTick,
)

logger = logging.getLogger(__name__)


class PriceFeed(Protocol):
    def start(self) -> None: ...

    async def stop(self) -> None: ...


# on_change views
VIEW_PRICE = "price"
VIEW_ACTIVE = "active"
VIEW_TABLE = "table"
VIEW_STATUS = "status"
VIEW_COUNTDOWN = "countdown"


@dataclass(frozen=True)
class DashboardState:
    """Read-only snapshot handed to presentation."""

    events: list[EventView]
    current_index: int
    price_to_beat: dict[str, float]
    last_price: dict[str, float]
    current_price: float | None
    price_change: tuple[float, float] | None
    last_tick_at: datetime | None
    connection: ConnectionStatus
    events_error: str | None
    countdown: int | None
    loaded: bool = False
    tracked_slug: str | None = None

    @property
    def active(self) -> EventView | None:
        return self.events[self.current_index] if self.current_index >= 0 else None


class StreamingPlatform:
    def __init__(
        self,
        fetch_upcoming: FetchUpcoming,
        feed_factory: Callable[..., PriceFeed] | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock = utcnow,
        event_count: int = DEFAULT_EVENT_COUNT,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        history_size: int = HISTORY_SIZE,
    ) -> None:
        self.event_count = event_count
        self.refresh_interval = refresh_interval
        self._clock = clock
        self._scheduler = scheduler or AsyncioScheduler()

        self.engine = EventLifecycleEngine(fetch_upcoming, clock=clock)
        self.tracker = PriceSnapshotTracker(
            self.engine,
            history_size=history_size,
            on_price_to_beat=lambda slug, value: self._notify(VIEW_ACTIVE),
            on_last_price=lambda slug, value: self._notify(VIEW_TABLE),
        )
        self.countdown = CountdownDriver(
            self.engine,
            self.tracker,
            self._scheduler,
            on_tick=lambda remaining: self._notify(VIEW_COUNTDOWN),
            on_expire=self._handle_expiry,
        )

        # feed_factory(on_price=..., on_status=...) -> object with start()/stop()
        self._feed: PriceFeed | None = (
            feed_factory(on_price=self.handle_tick, on_status=self.handle_connection)
            if feed_factory
            else None
        )

        self.connection = ConnectionStatus()
        self.events_error: str | None = None
        self.loaded = False

        self.on_change: Callable[[str], None] | None = None
        self.on_error: Callable[[str], None] | None = None

        self._refresh_timer: TimerHandle | None = None
        self._refresh_task: asyncio.Task | None = None
        self._closed = False

    # Lifecycle -----------------------------------------------------------

    async def start(self, connect: bool = True) -> None:
        await self.load_events()
        if self._closed:
            return
        self._refresh_timer = self._scheduler.call_every(self.refresh_interval, self.request_refresh)
        if connect:
            self.connect()

    async def close(self) -> None:
        """Tear down timers, the feed and any pending refresh."""
        self._closed = True
        if self._refresh_timer is not None:
            self._refresh_timer.cancel()
            self._refresh_timer = None
        self.countdown.stop()
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.engine.close()
        if self._feed is not None:
            await self._feed.stop()

    # Feed ----------------------------------------------------------------

    def connect(self) -> None:
        if self._feed is None or self._closed:
            return
        self._feed.start()

    async def disconnect(self) -> None:
        """Stop the feed. Price freezes; captures and events are kept."""
        if self._feed is not None:
            await self._feed.stop()
        self.connection = ConnectionStatus()
        self._notify(VIEW_STATUS)

    def handle_tick(self, tick: PriceTick) -> None:
        if self._closed:
            return
        self.tracker.record_tick(tick)
        self.tracker.evaluate()
        self.countdown.sync()
        self._notify(VIEW_PRICE)

    def handle_connection(self, state: ConnectionState) -> None:
        if self._closed:
            return
        self.connection = ConnectionStatus(
            connected=state.connected,
            source=DataSource.CHAINLINK if state.connected else None,
            last_update=self._clock(),
            error=state.error,
        )
        if state.error:
            logger.warning("Feed: %s", state.error)
        self._notify(VIEW_STATUS)

    # Catalog -------------------------------------------------------------

    async def load_events(self) -> list[EventView]:
        """Refresh the window. Failures keep the last good list and are reported once."""
        try:
            await self.engine.refresh(self.event_count)
        except CatalogError as e:
            self.events_error = f"Failed to load events: {e}"
            logger.error("Error loading events: %s", e)
            if self.on_error:
                self.on_error(self.events_error)
        else:
            self.events_error = None
            self.loaded = True

        if self._closed:
            return self.engine.get_events()
        self.tracker.evaluate()
        self.countdown.sync()
        self._notify(VIEW_TABLE)
        return self.engine.get_events()

    def request_refresh(self) -> asyncio.Task | None:
        """Schedule a refresh unless one is already pending."""
        if self._closed:
            return None
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.debug("Refresh already pending")
            return self._refresh_task
        self._refresh_task = asyncio.get_running_loop().create_task(self.load_events())
        return self._refresh_task

    def _handle_expiry(self, slug: str) -> None:
        logger.info("Active event %s ended; refreshing", slug)
        self._notify(VIEW_ACTIVE)
        self.request_refresh()

    # Presentation --------------------------------------------------------

    def get_events(self) -> list[EventView]:
        return self.engine.get_events()

    def get_current_event_index(self) -> int:
        return self.engine.get_current_event_index()

    def get_price_to_beat(self, slug: str) -> float | None:
        return self.tracker.get_price_to_beat(slug)

    def get_last_price(self, slug: str) -> float | None:
        return self.tracker.get_last_price(slug)

    def state(self) -> DashboardState:
        events = self.engine.get_events()
        latest = self.tracker.history.latest()
        return DashboardState(
            events=events,
            current_index=next((i for i, v in enumerate(events) if v.status is EventStatus.ACTIVE), -1),
            price_to_beat=self.tracker.price_to_beat,
            last_price=self.tracker.last_price,
            current_price=self.tracker.current_price,
            price_change=self.tracker.price_change(),
            last_tick_at=latest.timestamp if latest else None,
            connection=self.connection,
            events_error=self.events_error,
            countdown=self.countdown.remaining,
            loaded=self.loaded,
            tracked_slug=self.countdown.event_slug,
        )

    def _notify(self, view: str) -> None:
        if self.on_change and not self._closed:
            self.on_change(view)
