"""Rich renderables for the live dashboard and the events command."""

from datetime import datetime

from rich.console import Console, Group
from rich.table import Table
from rich import box
from rich.text import Text
from rich.rule import Rule
from rich.panel import Panel

from polymarket_updown.core.platform import DashboardState
from polymarket_updown.display.format import (
    fmt_change,
    fmt_countdown,
    fmt_ids,
    fmt_slot,
    fmt_time,
    fmt_usd,
    truncate,
)
from polymarket_updown.models import EventStatus, EventView

console = Console()

_STATUS_STYLE = {
    EventStatus.ACTIVE: ("Active", "bold green"),
    EventStatus.EXPIRED: ("Expired", "dim"),
    EventStatus.UPCOMING: ("Upcoming", "cyan"),
}

_W_TITLE = 44
_W_ID = 14


# ---------------------------------------------------------------------------
# Header: connection + current price
# ---------------------------------------------------------------------------

def render_header(state: DashboardState) -> Group:
    now = datetime.now().strftime("%b %d %H:%M:%S")
    rule = Rule(
        f"[bold cyan]BTC/USD[/bold cyan]  [dim]Up/Down 15m  {now}[/dim]",
        style="cyan dim",
    )

    conn = state.connection
    if conn.connected:
        status = "[green]● Connected[/green]"
        if conn.source:
            status += f"  [dim]{conn.source.value}[/dim]"
    else:
        status = "[red]● Disconnected[/red]"
    if conn.error:
        status += f"   [red]{conn.error}[/red]"

    change_text, change_style = fmt_change(state.price_change)
    price = Text.assemble(
        ("  Current Price  ", "dim"),
        (fmt_usd(state.current_price), "bold white"),
        "   ",
        (change_text, change_style),
        ("   Last Update: ", "dim"),
        (fmt_time(state.last_tick_at), "white"),
    )
    return Group(rule, Text.from_markup("  " + status), price)


# ---------------------------------------------------------------------------
# Active event panel
# ---------------------------------------------------------------------------

def _price_to_beat_text(state: DashboardState, slug: str) -> str:
    captured = state.price_to_beat.get(slug)
    if captured is not None:
        return fmt_usd(captured)
    if state.current_price is not None:
        return f"{fmt_usd(state.current_price)} (current)"
    return "Loading..."


def render_active_event(state: DashboardState) -> Panel:
    active = state.active
    if active is None:
        msg = "No active event at the moment" if state.loaded else "Loading events..."
        return Panel(f"[dim]{msg}[/dim]", style="dim", expand=True)

    event = active.event
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="dim", no_wrap=True)
    grid.add_column(no_wrap=True)

    grid.add_row("Time Remaining", f"[bold yellow]{fmt_countdown(state.countdown)}[/bold yellow]")
    grid.add_row("Price to Beat", f"[bold white]{_price_to_beat_text(state, event.slug)}[/bold white]")
    grid.add_row("Start", fmt_slot(event.start_time))
    grid.add_row("End", fmt_slot(event.end_time))
    grid.add_row("Condition ID", event.condition_id or "--")
    grid.add_row("Question ID", event.question_id or "--")
    grid.add_row("CLOB Token IDs", fmt_ids(event.clob_token_ids))
    grid.add_row("Slug", event.slug)

    return Panel(
        grid,
        title=f"[bold green]ACTIVE EVENT[/bold green] [dim]LIVE[/dim]  [bold white]{event.title}[/bold white]",
        title_align="left",
        style="green",
        expand=True,
    )


# ---------------------------------------------------------------------------
# Events table
# ---------------------------------------------------------------------------

def render_events_table(
    events: list[EventView],
    current_index: int,
    last_price: dict[str, float],
) -> Table:
    table = Table(
        box=box.SIMPLE_HEAD,
        show_header=True,
        header_style="bold dim",
        pad_edge=True,
        expand=False,
        show_edge=False,
    )

    table.add_column("Title",          min_width=20, max_width=_W_TITLE, no_wrap=True)
    table.add_column("Start",          no_wrap=True)
    table.add_column("End",            no_wrap=True)
    table.add_column("Status",         no_wrap=True)
    table.add_column("Last Price",     justify="right", no_wrap=True)
    table.add_column("Condition ID",   max_width=_W_ID, no_wrap=True)
    table.add_column("Question ID",    max_width=_W_ID, no_wrap=True)
    table.add_column("CLOB Token IDs", max_width=_W_ID, no_wrap=True)
    table.add_column("Slug",           style="dim", no_wrap=True)

    if not events:
        table.add_row("[dim]No events found[/dim]", *[""] * 8)
        return table

    for i, view in enumerate(events):
        event = view.event
        label, style = _STATUS_STYLE[view.status]
        table.add_row(
            truncate(event.title, _W_TITLE),
            fmt_slot(event.start_time),
            fmt_slot(event.end_time),
            Text(label, style=style),
            fmt_usd(last_price.get(event.slug)),
            truncate(event.condition_id or "--", _W_ID),
            truncate(event.question_id or "--", _W_ID),
            fmt_ids(event.clob_token_ids, _W_ID),
            event.slug,
            style="on grey15" if i == current_index else None,
        )
    return table


# ---------------------------------------------------------------------------
# Full dashboard
# ---------------------------------------------------------------------------

def render_dashboard(state: DashboardState) -> Group:
    parts: list = [render_header(state), Text(""), render_active_event(state), Text("")]
    parts.append(Text("  BTC Up/Down 15m Events", style="bold"))
    if state.events_error:
        parts.append(Text(f"  {state.events_error}", style="red"))
    if state.events or state.loaded:
        parts.append(render_events_table(state.events, state.current_index, state.last_price))
    else:
        parts.append(Text("  Loading events...", style="dim"))
    return Group(*parts)
