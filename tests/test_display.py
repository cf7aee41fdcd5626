from __future__ import annotations

import io
from datetime import timedelta

import httpx
import pytest
from rich.console import Console

from conftest import T0, make_events
from polymarket_updown.core.platform import DashboardState
from polymarket_updown.display.format import fmt_change, fmt_countdown, fmt_ids, fmt_usd, truncate
from polymarket_updown.display.tables import render_dashboard
from polymarket_updown.errors import CatalogError, human_message
from polymarket_updown.models import ConnectionStatus, EventStatus, EventView


@pytest.mark.parametrize(
    "seconds, text",
    [(None, "--:--:--"), (-5, "00:00:00"), (0, "00:00:00"), (59, "00:00:59"), (899, "00:14:59"), (3725, "01:02:05")],
)
def test_fmt_countdown(seconds, text):
    assert fmt_countdown(seconds) == text


def test_fmt_usd():
    assert fmt_usd(65000) == "$65,000.00"
    assert fmt_usd(0.0) == "$0.00"
    assert fmt_usd(-1.5) == "-$1.50"
    assert fmt_usd(None) == "--"


def test_fmt_change():
    assert fmt_change(None) == ("--", "dim")
    assert fmt_change((12.5, 0.019)) == ("+12.50 (+0.0190%)", "green")
    assert fmt_change((-0.5, -0.0008)) == ("-0.50 (-0.0008%)", "red")


def test_fmt_ids_and_truncate():
    assert fmt_ids(()) == "--"
    assert fmt_ids(("a", "b")) == "a, b"
    assert truncate("abcdef", 4) == "abc…"
    assert truncate("abc", 4) == "abc"


def test_human_message():
    request = httpx.Request("GET", "https://gamma-api.polymarket.com/events/slug/x")
    response = httpx.Response(502, request=request, text="<html>bad gateway</html>")

    assert human_message(httpx.HTTPStatusError("boom", request=request, response=response)) == "API returned 502"
    assert human_message(httpx.ConnectTimeout("slow", request=request)) == "Request timed out"
    assert human_message(CatalogError("No events returned")) == "No events returned"
    assert human_message(RuntimeError()) == "RuntimeError"


def _state(**overrides) -> DashboardState:
    events = make_events(3)
    views = [
        EventView(events[0], EventStatus.ACTIVE),
        EventView(events[1], EventStatus.UPCOMING),
        EventView(events[2], EventStatus.UPCOMING),
    ]
    base = dict(
        events=views,
        current_index=0,
        price_to_beat={},
        last_price={events[1].slug: 64999.0},
        current_price=65000.0,
        price_change=(1.0, 0.0015),
        last_tick_at=T0 + timedelta(minutes=1),
        connection=ConnectionStatus(),
        events_error=None,
        countdown=840,
        loaded=True,
    )
    base.update(overrides)
    return DashboardState(**base)


def _render(state: DashboardState) -> str:
    out = io.StringIO()
    Console(file=out, width=240, color_system=None).print(render_dashboard(state))
    return out.getvalue()


def test_dashboard_shows_current_price_as_fallback_price_to_beat():
    text = _render(_state())

    assert "ACTIVE EVENT" in text
    assert "00:14:00" in text
    assert "$65,000.00 (current)" in text
    assert "$64,999.00" in text
    assert "Disconnected" in text


def test_dashboard_shows_captured_price_to_beat():
    slug0 = make_events(1)[0].slug
    text = _render(_state(price_to_beat={slug0: 64000.0}))

    assert "$64,000.00" in text
    assert "(current)" not in text


def test_dashboard_placeholders():
    text = _render(_state(events=[], current_index=-1, current_price=None, loaded=False))
    assert "Loading events..." in text

    text = _render(_state(events=[], current_index=-1, events_error="Failed to load events: Network error"))
    assert "No active event at the moment" in text
    assert "No events found" in text
    assert "Failed to load events: Network error" in text


def test_dashboard_before_first_tick():
    text = _render(_state(current_price=None, price_change=None, last_tick_at=None))
    assert "Loading..." in text
