"""Defaults for the tracker. CLI options override these (see commands/)."""

DEFAULT_ASSET = "btc"
DEFAULT_SYMBOL = "btc/usd"

SLOT_MINUTES = 15
DEFAULT_EVENT_COUNT = 10

DEFAULT_REFRESH_INTERVAL = 60.0   # seconds between catalog auto-refreshes
COUNTDOWN_INTERVAL = 1.0          # seconds between countdown ticks
HISTORY_SIZE = 100                # ticks kept for the delta display

# Environment variables read by the CLI options
ENV_COUNT = "UPDOWN_EVENT_COUNT"
ENV_REFRESH = "UPDOWN_REFRESH_INTERVAL"
ENV_ASSET = "UPDOWN_ASSET"
ENV_SYMBOL = "UPDOWN_SYMBOL"
