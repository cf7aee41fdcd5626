import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Annotated

import typer

from polymarket_updown.api.gamma import fetch_upcoming
from polymarket_updown.config import DEFAULT_ASSET, DEFAULT_EVENT_COUNT, ENV_ASSET, ENV_COUNT
from polymarket_updown.core.lifecycle import EventLifecycleEngine
from polymarket_updown.display.tables import render_events_table, console
from polymarket_updown.errors import CatalogError

app = typer.Typer()


@app.callback(invoke_without_command=True)
def events(
    count: Annotated[int, typer.Option("--count", "-n", envvar=ENV_COUNT, min=1, help="Number of 15m slots")] = DEFAULT_EVENT_COUNT,
    asset: Annotated[str, typer.Option("--asset", envvar=ENV_ASSET, help="Event slug prefix (btc, eth, ...)")] = DEFAULT_ASSET,
    fmt: Annotated[str, typer.Option("--format", help="Output format: table or json")] = "table",
) -> None:
    """List the current and upcoming 15m Up/Down events."""

    async def run() -> None:
        async def fetch(n: int):
            return await fetch_upcoming(n, asset=asset)

        engine = EventLifecycleEngine(fetch)
        with console.status("[dim]Fetching events…[/dim]", spinner="dots"):
            try:
                views = await engine.refresh(count)
            except CatalogError as e:
                console.print(f"[red]Failed to load events:[/red] {e}")
                raise typer.Exit(1)

        if fmt == "json" or not sys.stdout.isatty():
            out = [
                {
                    "slug": v.event.slug,
                    "title": v.event.title,
                    "start_time": v.event.start_time.isoformat(),
                    "end_time": v.event.end_time.isoformat(),
                    "status": v.status.value,
                    "condition_id": v.event.condition_id,
                    "question_id": v.event.question_id,
                    "clob_token_ids": list(v.event.clob_token_ids),
                }
                for v in views
            ]
            print(json.dumps(out, indent=2))
        else:
            now = datetime.now(timezone.utc).astimezone().strftime("%b %d %H:%M")
            console.print(f"\n[dim]{asset.upper()} Up/Down 15m — {now}[/dim]")
            console.print(render_events_table(views, engine.get_current_event_index(), {}))

    asyncio.run(run())
