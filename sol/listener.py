"""
Solana program log listener.

Subscribes to logs mentioning each watched program via WebSocket
logsSubscribe and hands matching signatures to the pipeline.
Flow:
  1. One logsSubscribe per Watch on a single WebSocket
  2. For each logsNotification, skip failed txs (err != null)
  3. Run the watch's LogFilter over the raw log lines
  4. On match, emit the signature (never awaits downstream work)

Uses raw WebSocket via aiohttp (no solana-py dependency).
Auto-reconnects with exponential backoff; gives up after
max_reconnects consecutive failed attempts.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Callable

import aiohttp

from errors import SubscriptionError
from sol.constants import COMMITMENT
from sol.models import LogNotification

logger = logging.getLogger("sol_listener")

ANY_OF = "any_of"
EXACT_SET = "exact_set"


class LogFilter:
    """
    Instruction-marker predicate over a transaction's log lines.

    any_of:    some line contains some expected marker.
    exact_set: every line is an expected marker AND every expected
               marker appears, i.e. observed set == expected set.
    """

    def __init__(self, instructions, mode: str = ANY_OF):
        if mode not in (ANY_OF, EXACT_SET):
            raise ValueError(f"unknown filter mode: {mode}")
        if not instructions:
            raise ValueError("at least one instruction marker required")
        self.instructions = tuple(instructions)
        self.mode = mode

    def matches(self, logs: list[str]) -> bool:
        if self.mode == ANY_OF:
            return any(ix in line for line in logs for ix in self.instructions)

        if not logs:
            return False
        expected = set(self.instructions)
        if not all(line.strip() in expected for line in logs):
            return False
        return all(any(ix in line for line in logs) for ix in self.instructions)

    def __repr__(self):
        return f"LogFilter({self.mode}, {list(self.instructions)})"


@dataclass
class Watch:
    """One subscribed program and how to interpret its transactions."""
    name: str
    program_address: str
    log_filter: LogFilter
    mint_account_index: int


class SolanaListener:
    """
    Streams program logs from a Solana RPC node for a set of watches.

    `on_match(signature, watch)` is called synchronously for every
    matching notification and must not block.
    """

    def __init__(
        self,
        wss_url: str,
        watches: list[Watch],
        on_match: Callable[[str, Watch], None],
        max_reconnects: int = 10,
        max_backoff: float = 30,
    ):
        self.wss_url = wss_url
        self.watches = watches
        self.on_match = on_match
        self.max_reconnects = max_reconnects
        self.max_backoff = max_backoff
        self._session: aiohttp.ClientSession | None = None
        self._ws = None
        self._running = False
        self._pending: dict[int, Watch] = {}       # request id -> watch
        self._subscriptions: dict[int, Watch] = {}  # subscription id -> watch
        # Stats
        self.notifications: int = 0
        self.matched: int = 0

    async def start(self):
        """Connect and listen until stopped. Raises SubscriptionError when giving up."""
        self._running = True
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=30)
        )
        logger.info(
            f"Starting Solana listener ({', '.join(w.name for w in self.watches)})"
        )

        backoff = 1
        failures = 0
        try:
            while self._running:
                try:
                    await self._connect_and_listen()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Solana WebSocket error: {e}")

                if not self._running:
                    break
                if len(self._subscriptions) == len(self.watches):
                    # Was fully subscribed before dropping
                    backoff = 1
                    failures = 0
                else:
                    failures += 1
                    if failures >= self.max_reconnects:
                        raise SubscriptionError(
                            f"Log subscription failed {failures} times in a row"
                        )
                self._subscriptions.clear()
                self._pending.clear()
                await asyncio.sleep(min(backoff, self.max_backoff))
                backoff = min(backoff * 2, self.max_backoff)
        finally:
            if self._session and not self._session.closed:
                await self._session.close()

    async def stop(self):
        self._running = False
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()

    async def _connect_and_listen(self):
        """Single WebSocket connection lifecycle."""
        logger.info("Connecting to Solana WebSocket...")

        async with self._session.ws_connect(
            self.wss_url,
            heartbeat=30,
            max_msg_size=0,  # no limit
        ) as ws:
            self._ws = ws
            for req_id, watch in enumerate(self.watches, start=1):
                self._pending[req_id] = watch
                await ws.send_json({
                    "jsonrpc": "2.0",
                    "id": req_id,
                    "method": "logsSubscribe",
                    "params": [
                        {"mentions": [watch.program_address]},
                        {"commitment": COMMITMENT},
                    ],
                })

            async for msg in ws:
                if not self._running:
                    break
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except ValueError as e:
                        logger.debug(f"Message parse error: {e}")
                        continue
                    self._handle_message(data)
                elif msg.type in (
                    aiohttp.WSMsgType.CLOSED,
                    aiohttp.WSMsgType.ERROR,
                ):
                    logger.warning("Solana WebSocket closed, reconnecting...")
                    break
        self._ws = None

    def _handle_message(self, data: dict):
        if "id" in data and data.get("id") in self._pending:
            self._handle_subscribe_response(data)
            return
        if data.get("method") == "logsNotification":
            self._handle_notification(data)

    def _handle_subscribe_response(self, data: dict):
        watch = self._pending.pop(data["id"])
        sub_id = data.get("result")
        if sub_id is None:
            error = data.get("error", {})
            # Drop the connection; start() decides whether to retry
            raise SubscriptionError(f"logsSubscribe failed for {watch.name}: {error}")
        self._subscriptions[sub_id] = watch
        logger.info(f"Solana {watch.name} subscription active (id={sub_id})")

    def _handle_notification(self, data: dict):
        params = data.get("params", {})
        watch = self._subscriptions.get(params.get("subscription"))
        if watch is None:
            return

        value = params.get("result", {}).get("value", {})
        note = LogNotification(
            program_address=watch.program_address,
            signature=value.get("signature", ""),
            logs=value.get("logs") or [],
            err=value.get("err"),
        )
        self.notifications += 1

        # Skip failed transactions
        if note.err is not None or not note.signature:
            return

        if watch.log_filter.matches(note.logs):
            self.matched += 1
            logger.info(f"[{watch.name}] match {note.signature[:16]}...")
            self.on_match(note.signature, watch)
