"""Polymarket Gamma API client — the rolling window of 15-minute Up/Down events."""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from polymarket_updown.config import DEFAULT_ASSET, SLOT_MINUTES
from polymarket_updown.errors import CatalogError, human_message
from polymarket_updown.models import EventDescriptor

logger = logging.getLogger(__name__)

GAMMA_BASE = "https://gamma-api.polymarket.com"

SLOT = timedelta(minutes=SLOT_MINUTES)


def slot_start(now: datetime) -> datetime:
    """Start of the slot containing `now` (slots are aligned to the epoch)."""
    secs = int(now.timestamp())
    width = int(SLOT.total_seconds())
    return datetime.fromtimestamp(secs - secs % width, tz=timezone.utc)


def next_slot_starts(count: int, now: datetime) -> list[datetime]:
    """`count` consecutive slot starts, beginning with the slot in progress."""
    first = slot_start(now)
    return [first + i * SLOT for i in range(count)]


def slug_for_slot(start: datetime, asset: str = DEFAULT_ASSET) -> str:
    return f"{asset.lower()}-updown-{SLOT_MINUTES}m-{int(start.timestamp())}"


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_token_ids(raw: Any) -> tuple[str, ...]:
    # clobTokenIds arrives as a JSON-encoded string on most endpoints
    if isinstance(raw, str):
        raw = json.loads(raw or "[]")
    return tuple(str(t) for t in raw or [])


def _parse_event(raw: dict[str, Any], start: datetime, asset: str = DEFAULT_ASSET) -> EventDescriptor:
    markets = raw.get("markets") or []
    market = markets[0] if markets else {}

    end = _parse_time(raw.get("endDate")) or _parse_time(market.get("endDate"))
    if end is None or end <= start:
        end = start + SLOT

    return EventDescriptor(
        slug=raw.get("slug") or slug_for_slot(start, asset),
        title=raw.get("title") or market.get("question", ""),
        start_time=start,
        end_time=end,
        condition_id=market.get("conditionId") or None,
        question_id=market.get("questionID") or market.get("questionId") or None,
        clob_token_ids=_parse_token_ids(market.get("clobTokenIds", "[]")),
    )


async def _fetch_slot(
    client: httpx.AsyncClient,
    start: datetime,
    asset: str,
) -> EventDescriptor | None:
    slug = slug_for_slot(start, asset)
    resp = await client.get(f"{GAMMA_BASE}/events/slug/{slug}")
    if resp.status_code == 404:
        logger.debug("No event listed for %s", slug)
        return None
    resp.raise_for_status()
    data = resp.json()
    # endpoint returns a single object or list
    if isinstance(data, list):
        if not data:
            return None
        data = data[0]
    return _parse_event(data, start, asset)


async def fetch_upcoming(
    count: int,
    asset: str = DEFAULT_ASSET,
    now: datetime | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[EventDescriptor]:
    """Fetch the events for the next `count` slots, ordered by start time.

    Slots the API doesn't know about are skipped, so the result may be
    partial or empty. Raises CatalogError only when nothing came back and at
    least one slot failed outright (network, HTTP or parse error).
    """
    now = now or datetime.now(timezone.utc)
    starts = next_slot_starts(count, now)
    sem = asyncio.Semaphore(10)

    async def fetch_with_sem(c: httpx.AsyncClient, start: datetime) -> EventDescriptor | None:
        async with sem:
            return await _fetch_slot(c, start, asset)

    async def run(c: httpx.AsyncClient) -> list[Any]:
        return await asyncio.gather(
            *(fetch_with_sem(c, s) for s in starts),
            return_exceptions=True,
        )

    if client is None:
        async with httpx.AsyncClient(timeout=15) as c:
            results = await run(c)
    else:
        results = await run(client)

    events: list[EventDescriptor] = []
    errors: list[BaseException] = []
    for start, result in zip(starts, results):
        if isinstance(result, (httpx.HTTPError, ValueError, KeyError, TypeError)):
            logger.warning("Catalog fetch failed for %s: %r", slug_for_slot(start, asset), result)
            errors.append(result)
        elif isinstance(result, BaseException):
            raise result
        elif result is not None:
            events.append(result)

    if not events and errors:
        raise CatalogError(human_message(errors[0])) from errors[0]

    events.sort(key=lambda e: e.start_time)
    return events
