import logging

from rich.logging import RichHandler

from polymarket_updown.display.tables import console


def setup_logging(verbose: bool = False) -> None:
    """Route log records through the shared console so they don't tear the live view."""
    root = logging.getLogger("polymarket_updown")
    if any(isinstance(h, RichHandler) for h in root.handlers):
        root.setLevel(logging.DEBUG if verbose else logging.WARNING)
        return

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="%H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
