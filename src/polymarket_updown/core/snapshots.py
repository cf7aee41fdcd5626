"""Price snapshots taken at event transitions.

Two write-once maps keyed by event slug:

    price_to_beat   price when the event became the active one
    last_price      price when the event right before it expired

Both rules run on every tick and every refresh. The last-price rule walks
every adjacent pair, not just the one next to the active event: after a feed
gap several events may have expired between two observed ticks.
"""

import logging
from collections import deque
from collections.abc import Callable, Iterator
from enum import Enum

from polymarket_updown.config import HISTORY_SIZE
from polymarket_updown.core.lifecycle import EventLifecycleEngine
from polymarket_updown.models import EventStatus, PricePoint, PriceTick

logger = logging.getLogger(__name__)

CaptureHook = Callable[[str, float], None]


class Capture(Enum):
    CAPTURED = "captured"
    ALREADY_CAPTURED = "already_captured"
    SKIPPED = "skipped"            # no price received yet


class PriceHistory:
    """Most recent ticks, oldest evicted first."""

    def __init__(self, capacity: int = HISTORY_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._points: deque[PricePoint] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._points.maxlen or 0

    def append(self, point: PricePoint) -> None:
        self._points.append(point)

    def latest(self) -> PricePoint | None:
        return self._points[-1] if self._points else None

    def previous(self) -> PricePoint | None:
        return self._points[-2] if len(self._points) >= 2 else None

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self._points)


class PriceSnapshotTracker:
    def __init__(
        self,
        engine: EventLifecycleEngine,
        history_size: int = HISTORY_SIZE,
        on_price_to_beat: CaptureHook | None = None,
        on_last_price: CaptureHook | None = None,
    ) -> None:
        self._engine = engine
        self.history = PriceHistory(history_size)
        self.current_price: float | None = None
        self._price_to_beat: dict[str, float] = {}
        self._last_price: dict[str, float] = {}
        self.on_price_to_beat = on_price_to_beat
        self.on_last_price = on_last_price

    # Feed --------------------------------------------------------------

    def record_tick(self, tick: PriceTick) -> None:
        # Arrival order wins over the embedded timestamp
        self.current_price = tick.value
        self.history.append(PricePoint(timestamp=tick.timestamp, value=tick.value))

    def price_change(self) -> tuple[float, float] | None:
        """(absolute, percent) change between the last two ticks."""
        latest, previous = self.history.latest(), self.history.previous()
        if latest is None or previous is None:
            return None
        change = latest.value - previous.value
        percent = (change / previous.value * 100) if previous.value else 0.0
        return change, percent

    # Captures ----------------------------------------------------------

    def get_price_to_beat(self, slug: str) -> float | None:
        return self._price_to_beat.get(slug)

    def get_last_price(self, slug: str) -> float | None:
        return self._last_price.get(slug)

    @property
    def price_to_beat(self) -> dict[str, float]:
        return dict(self._price_to_beat)

    @property
    def last_price(self) -> dict[str, float]:
        return dict(self._last_price)

    def capture_price_to_beat(self, slug: str) -> Capture:
        result = self._capture(self._price_to_beat, slug)
        if result is Capture.CAPTURED:
            logger.info("Price to beat for %s: %.2f", slug, self._price_to_beat[slug])
            if self.on_price_to_beat:
                self.on_price_to_beat(slug, self._price_to_beat[slug])
        return result

    def capture_last_price(self, slug: str) -> Capture:
        result = self._capture(self._last_price, slug)
        if result is Capture.CAPTURED:
            logger.info("Last price for %s: %.2f", slug, self._last_price[slug])
            if self.on_last_price:
                self.on_last_price(slug, self._last_price[slug])
        return result

    def _capture(self, store: dict[str, float], slug: str) -> Capture:
        if slug in store:
            return Capture.ALREADY_CAPTURED
        if self.current_price is None:
            return Capture.SKIPPED
        store[slug] = self.current_price
        return Capture.CAPTURED

    def evaluate(self) -> list[tuple[str, str]]:
        """Run both capture rules against the engine's current statuses.

        Returns the (map, slug) pairs captured on this pass.
        """
        if self.current_price is None:
            return []

        captured: list[tuple[str, str]] = []
        events = self._engine.get_events()

        active = next((v for v in events if v.status is EventStatus.ACTIVE), None)
        if active and self.capture_price_to_beat(active.slug) is Capture.CAPTURED:
            captured.append(("price_to_beat", active.slug))

        for previous, current in zip(events, events[1:]):
            if previous.status is not EventStatus.EXPIRED:
                continue
            if self.capture_last_price(current.slug) is Capture.CAPTURED:
                captured.append(("last_price", current.slug))

        return captured
