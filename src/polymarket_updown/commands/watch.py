import asyncio
from functools import partial
from typing import Annotated

import typer
from rich.live import Live

from polymarket_updown.api.gamma import fetch_upcoming
from polymarket_updown.api.rtds import RTDSClient
from polymarket_updown.config import (
    DEFAULT_ASSET,
    DEFAULT_EVENT_COUNT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_SYMBOL,
    ENV_ASSET,
    ENV_COUNT,
    ENV_REFRESH,
    ENV_SYMBOL,
)
from polymarket_updown.core.platform import StreamingPlatform
from polymarket_updown.display.tables import render_dashboard, console

app = typer.Typer()


def build_platform(
    count: int = DEFAULT_EVENT_COUNT,
    refresh: float = DEFAULT_REFRESH_INTERVAL,
    asset: str = DEFAULT_ASSET,
    symbol: str = DEFAULT_SYMBOL,
    feed: bool = True,
) -> StreamingPlatform:
    async def fetch(n: int):
        return await fetch_upcoming(n, asset=asset)

    return StreamingPlatform(
        fetch_upcoming=fetch,
        feed_factory=partial(RTDSClient, symbol=symbol) if feed else None,
        event_count=count,
        refresh_interval=refresh,
    )


@app.callback(invoke_without_command=True)
def watch(
    count: Annotated[int, typer.Option("--count", "-n", envvar=ENV_COUNT, min=1, help="Number of 15m slots to track")] = DEFAULT_EVENT_COUNT,
    refresh: Annotated[float, typer.Option("--refresh", envvar=ENV_REFRESH, min=1.0, help="Seconds between event list refreshes")] = DEFAULT_REFRESH_INTERVAL,
    asset: Annotated[str, typer.Option("--asset", envvar=ENV_ASSET, help="Event slug prefix (btc, eth, ...)")] = DEFAULT_ASSET,
    symbol: Annotated[str, typer.Option("--symbol", envvar=ENV_SYMBOL, help="RTDS Chainlink symbol")] = DEFAULT_SYMBOL,
    no_feed: Annotated[bool, typer.Option("--no-feed", help="Don't connect to the price feed")] = False,
) -> None:
    """Live dashboard: price feed, active event countdown and price to beat."""

    async def run() -> None:
        platform = build_platform(count, refresh, asset, symbol, feed=not no_feed)

        with Live(
            render_dashboard(platform.state()),
            console=console,
            refresh_per_second=4,
            transient=False,
        ) as live:
            platform.on_change = lambda view: live.update(render_dashboard(platform.state()))
            try:
                await platform.start(connect=not no_feed)
                await asyncio.Event().wait()
            finally:
                await platform.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
