"""Error taxonomy and presentation-safe error text."""

import httpx


class UpdownError(Exception):
    """Base class for errors raised by the tracker."""


class FeedError(UpdownError):
    """Transport-level failure of the price feed."""


class CatalogError(UpdownError):
    """Event catalog fetch or parse failure, or an empty event window."""


def human_message(exc: BaseException) -> str:
    """Short text suitable for the dashboard; raw payloads stay in the logs."""
    if isinstance(exc, httpx.HTTPStatusError):
        return f"API returned {exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return "Request timed out"
    if isinstance(exc, httpx.TransportError):
        return "Network error"
    text = str(exc).strip()
    return text or exc.__class__.__name__
