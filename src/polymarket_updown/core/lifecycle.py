"""Event lifecycle: the ordered event window and the status of each event.

Statuses are never stored. Every read derives them from the clock, so two
reads straddling a slot boundary see the transition without a refresh.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from polymarket_updown.errors import CatalogError
from polymarket_updown.models import EventDescriptor, EventStatus, EventView

logger = logging.getLogger(__name__)

FetchUpcoming = Callable[[int], Awaitable[list[EventDescriptor]]]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventLifecycleEngine:
    def __init__(self, fetch_upcoming: FetchUpcoming, clock: Clock = utcnow) -> None:
        self._fetch_upcoming = fetch_upcoming
        self._clock = clock
        self._events: list[EventDescriptor] = []
        self._by_slug: dict[str, EventDescriptor] = {}
        self._inflight: asyncio.Task | None = None

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def now(self) -> datetime:
        return self._clock()

    async def refresh(self, count: int) -> list[EventView]:
        """Replace the working list with the catalog's current window.

        Concurrent callers share one catalog call. On failure, or an empty
        window, the previous list stays in place and CatalogError is raised.
        """
        if self.refreshing:
            logger.debug("Refresh already in flight; joining it")
            return await asyncio.shield(self._inflight)

        self._inflight = asyncio.ensure_future(self._refresh(count))
        try:
            return await asyncio.shield(self._inflight)
        finally:
            if self._inflight is not None and self._inflight.done():
                self._inflight = None

    async def close(self) -> None:
        """Cancel a catalog call still in flight."""
        task, self._inflight = self._inflight, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _refresh(self, count: int) -> list[EventView]:
        try:
            fetched = await self._fetch_upcoming(count)
        except CatalogError:
            raise
        except Exception as e:
            raise CatalogError(str(e) or e.__class__.__name__) from e

        if not fetched:
            raise CatalogError("No events returned")

        ordered = sorted(fetched, key=lambda e: e.start_time)
        self._events = ordered
        self._by_slug = {e.slug: e for e in ordered}
        logger.debug("Loaded %d events (%s .. %s)", len(ordered), ordered[0].slug, ordered[-1].slug)
        return self.get_events()

    def get_events(self) -> list[EventView]:
        now = self._clock()
        return [EventView(event=e, status=e.status_at(now)) for e in self._events]

    def get_current_event_index(self) -> int:
        for i, view in enumerate(self.get_events()):
            if view.status is EventStatus.ACTIVE:
                return i
        return -1

    def get_event(self, slug: str) -> EventDescriptor | None:
        return self._by_slug.get(slug)

    def next_event(self, slug: str) -> EventDescriptor | None:
        """The event immediately after `slug` in the current ordering."""
        for i, event in enumerate(self._events[:-1]):
            if event.slug == slug:
                return self._events[i + 1]
        return None
