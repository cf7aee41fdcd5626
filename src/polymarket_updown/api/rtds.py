"""Polymarket Real-Time Data Socket (RTDS) client — Chainlink BTC/USD ticks.

Runs on the caller's asyncio loop. Delivers two kinds of callbacks:

    on_price(PriceTick)              one per price update for the subscribed symbol
    on_status(ConnectionState)       on connect, disconnect and transport errors

Reconnects with exponential backoff until stop() is called. A callback that
raises is logged and the feed keeps running.
"""

import asyncio
import json
import logging
import random
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from polymarket_updown.config import DEFAULT_SYMBOL
from polymarket_updown.errors import FeedError, human_message
from polymarket_updown.models import ConnectionState, PriceTick

logger = logging.getLogger(__name__)

RTDS_URL = "wss://ws-live-data.polymarket.com"
PRICE_TOPIC = "crypto_prices_chainlink"

# Reconnect settings
BASE_BACKOFF = 2.0
MAX_BACKOFF = 60.0

# RTDS drops idle sockets; it expects an application-level PING
KEEPALIVE_INTERVAL = 5.0


def subscription_message(
    action: str,
    symbol: str = DEFAULT_SYMBOL,
    topic: str = PRICE_TOPIC,
    type_: str = "*",
) -> str:
    """Build a subscribe/unsubscribe frame keyed by (topic, type, filter)."""
    if action not in ("subscribe", "unsubscribe"):
        raise ValueError(f"unknown action: {action}")
    return json.dumps({
        "action": action,
        "subscriptions": [
            {
                "topic": topic,
                "type": type_,
                "filters": json.dumps({"symbol": symbol}, separators=(",", ":")),
            }
        ],
    })


def parse_price_update(
    raw: str | bytes,
    symbol: str = DEFAULT_SYMBOL,
    topic: str = PRICE_TOPIC,
) -> PriceTick | None:
    """Normalize one RTDS frame into a PriceTick, or None if it isn't one for us."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        # PONG and other plain-text frames
        return None
    if not isinstance(data, dict) or data.get("topic") != topic:
        return None

    payload = data.get("payload")
    if not isinstance(payload, dict):
        return None
    if str(payload.get("symbol", "")).lower() != symbol.lower():
        return None

    try:
        value = float(payload["value"])
        ts_ms = payload.get("timestamp", data.get("timestamp"))
        timestamp = (
            datetime.fromtimestamp(float(ts_ms) / 1000, tz=timezone.utc)
            if ts_ms is not None
            else datetime.now(timezone.utc)
        )
    except (KeyError, TypeError, ValueError, OverflowError, OSError):
        return None
    return PriceTick(value=value, timestamp=timestamp)


class RTDSClient:
    """Async websocket client for RTDS price updates."""

    def __init__(
        self,
        on_price: Callable[[PriceTick], None],
        on_status: Callable[[ConnectionState], None],
        symbol: str = DEFAULT_SYMBOL,
        url: str = RTDS_URL,
    ) -> None:
        self._on_price = on_price
        self._on_status = on_status
        self.symbol = symbol
        self.url = url

        self._running = False
        self._task: asyncio.Task | None = None
        self._ws: Any = None

        # Exponential backoff state
        self._reconnect_attempts = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start listening on the running loop. No-op if already started."""
        if self.running:
            logger.debug("RTDS client already running")
            return
        self._running = True
        self._reconnect_attempts = 0
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        """Stop listening and wait for the socket to close."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        if self._ws is not None:
            try:
                await self._ws.send(subscription_message("unsubscribe", self.symbol))
            except ConnectionClosed:
                pass  # already gone
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("WS_TASK_FAILED | url=%s", self.url)
        logger.info("WS_STOPPED | url=%s", self.url)

    def _calculate_backoff(self) -> float:
        """Exponential backoff with 0-20% jitter."""
        if self._reconnect_attempts == 0:
            return 0
        backoff = min(MAX_BACKOFF, BASE_BACKOFF * (2 ** (self._reconnect_attempts - 1)))
        return backoff + random.uniform(0, backoff * 0.2)

    def _emit(self, callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("WS_CALLBACK_FAILED | %r", callback)

    async def run(self) -> None:
        """Main loop: connect, listen, reconnect on failure."""
        while self._running:
            try:
                await self._connect_and_listen()
            except FeedError as e:
                error = str(e)
            except Exception as e:
                logger.exception("WS_ERROR | url=%s", self.url)
                error = f"Feed error: {human_message(e)}"
            else:
                continue
            if not self._running:
                break
            self._reconnect_attempts += 1
            sleep_for = self._calculate_backoff()
            logger.warning(
                "WS_RECONNECT | attempt=%d | sleep=%.1fs | error=%s",
                self._reconnect_attempts, sleep_for, error,
            )
            self._emit(self._on_status, ConnectionState(connected=False, error=error))
            await asyncio.sleep(sleep_for)

    async def _connect_and_listen(self) -> None:
        try:
            async with websockets.connect(self.url, close_timeout=5.0) as ws:
                self._ws = ws
                await ws.send(subscription_message("subscribe", self.symbol))
                logger.info("WS_CONNECTED | url=%s | symbol=%s", self.url, self.symbol)
                self._reconnect_attempts = 0
                self._emit(self._on_status, ConnectionState(connected=True))

                keepalive = asyncio.create_task(self._keepalive(ws))
                try:
                    async for message in ws:
                        tick = parse_price_update(message, self.symbol)
                        if tick is not None:
                            self._emit(self._on_price, tick)
                finally:
                    keepalive.cancel()
                if self._running:
                    raise FeedError("Connection closed by server")
        except ConnectionClosed as e:
            logger.warning("WS_CLOSED | %s", e)
            raise FeedError("Connection closed") from e
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            logger.warning("WS_EXCEPTION | %r", e)
            raise FeedError(f"Connection failed: {human_message(e)}") from e
        finally:
            self._ws = None

    async def _keepalive(self, ws: Any) -> None:
        try:
            while True:
                await asyncio.sleep(KEEPALIVE_INTERVAL)
                await ws.send("PING")
        except ConnectionClosed:
            # the reader loop sees the close and handles it
            return
