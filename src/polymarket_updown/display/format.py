"""Number, time and string formatting helpers."""

from datetime import datetime


def fmt_usd(value: float | None, placeholder: str = "--") -> str:
    """Format a price as USD: $65,000.00."""
    if value is None:
        return placeholder
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def fmt_change(change: tuple[float, float] | None) -> tuple[str, str]:
    """Return (text, style) for the last-tick delta.

    e.g. ("+12.34 (+0.0190%)", "green"), ("-0.50 (-0.0008%)", "red"), ("--", "dim").
    """
    if change is None:
        return "--", "dim"
    delta, pct = change
    style = "green" if delta >= 0 else "red"
    sign = "+" if delta >= 0 else ""
    pct_sign = "+" if pct >= 0 else ""
    return f"{sign}{delta:.2f} ({pct_sign}{pct:.4f}%)", style


def fmt_countdown(seconds: int | None) -> str:
    """HH:MM:SS; 00:00:00 once time is up, --:--:-- when nothing is running."""
    if seconds is None:
        return "--:--:--"
    if seconds <= 0:
        return "00:00:00"
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def fmt_time(dt: datetime | None) -> str:
    """Local wall-clock time of a tick."""
    if dt is None:
        return "--"
    return dt.astimezone().strftime("%H:%M:%S")


def fmt_slot(dt: datetime) -> str:
    """Local date and time of a slot boundary: Oct 19 14:15."""
    return dt.astimezone().strftime("%b %d %H:%M")


def fmt_ids(ids: tuple[str, ...] | None, width: int = 0) -> str:
    if not ids:
        return "--"
    text = ", ".join(ids)
    return truncate(text, width) if width else text


def truncate(text: str, width: int) -> str:
    """Truncate text to width with ellipsis."""
    if len(text) <= width:
        return text
    return text[: width - 1] + "…"
