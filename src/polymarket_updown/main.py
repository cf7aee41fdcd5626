from typing import Annotated

import typer

from polymarket_updown.commands.events import events
from polymarket_updown.commands.watch import watch
from polymarket_updown.log import setup_logging

app = typer.Typer(
    name="updown",
    help="Track Polymarket 15-minute BTC Up/Down events against the live Chainlink price.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    setup_logging(verbose)


app.command("watch", help="Live dashboard with countdown and price to beat")(watch)
app.command("events", help="List the current and upcoming 15m events")(events)


if __name__ == "__main__":
    app()
