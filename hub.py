"""
Broadcast hub — WebSocket fan-out of enriched launch events.

  - New consumer: replay the cache snapshot (oldest first), then live events
  - Every published event: cache push + enqueue on every open consumer
  - Liveness sweep every ping_interval: consumers that did not pong
    since the previous sweep are closed

The cache and the connection set are only touched under one asyncio.Lock,
so a late joiner can never see a live event ahead of its replay.
Each consumer has its own send queue + writer task; a slow or dead
consumer never delays the others.
"""
import asyncio
import itertools
import logging

from aiohttp import WSMsgType, web

from events import EnrichedEvent, EventCache

logger = logging.getLogger("hub")

MAX_MSG_SIZE = 10 * 1024 * 1024

# Connection states
CONNECTING = "connecting"
OPEN = "open"
CLOSING = "closing"
CLOSED = "closed"


class Connection:
    """One consumer: liveness flag, outbound queue, writer task."""

    def __init__(self, conn_id: int, ws, queue_size: int, on_failure=None):
        self.id = conn_id
        self.ws = ws
        self.alive = True
        self.state = CONNECTING
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self.sent: int = 0
        self._on_failure = on_failure
        self._writer: asyncio.Task | None = None

    def open(self):
        self.state = OPEN
        self._writer = asyncio.create_task(self._write_loop(), name=f"hub_writer_{self.id}")

    def enqueue(self, text: str) -> bool:
        """False if the consumer is too far behind."""
        try:
            self.queue.put_nowait(text)
            return True
        except asyncio.QueueFull:
            return False

    async def _write_loop(self):
        try:
            while True:
                text = await self.queue.get()
                await self.ws.send_str(text)
                self.sent += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"[hub] send to #{self.id} failed: {e}")
            self.state = CLOSED
            if self._on_failure:
                self._on_failure(self)

    async def close(self):
        if self.state == CLOSED and self._writer is None:
            return
        if self.state != CLOSED:
            self.state = CLOSING
        if self._writer is not None:
            if self._writer is not asyncio.current_task():
                self._writer.cancel()
            self._writer = None
        try:
            await self.ws.close()
        except Exception as e:
            logger.debug(f"[hub] close #{self.id} failed: {e}")
        self.state = CLOSED


class BroadcastHub:
    """Owns the event cache and the consumer set."""

    def __init__(
        self,
        cache: EventCache | None = None,
        ping_interval: float = 30.0,
        send_queue_size: int = 1000,
    ):
        self.cache = cache or EventCache()
        self.ping_interval = ping_interval
        # Replay must always fit in the queue
        self.send_queue_size = max(send_queue_size, self.cache.max_size + 1)
        self.connections: dict[int, Connection] = {}
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._runner: web.AppRunner | None = None
        self._sweep_task: asyncio.Task | None = None
        # Strong refs to fire-and-forget unregister tasks
        self._background: set[asyncio.Task] = set()
        self._running = False
        # Stats
        self.published: int = 0
        self.evicted: int = 0

    # ── Shared state operations ─────────────────────────────

    async def register(self, ws) -> Connection:
        """Replay the snapshot to a new consumer and add it to the broadcast set."""
        async with self._lock:
            conn = Connection(next(self._ids), ws, self.send_queue_size, on_failure=self._on_send_failure)
            for event in self.cache.snapshot():
                conn.enqueue(event.to_json())
            self.connections[conn.id] = conn
            conn.open()
        logger.info(
            f"[hub] consumer #{conn.id} connected, replayed {len(self.cache)} "
            f"({len(self.connections)} open)"
        )
        return conn

    async def unregister(self, conn: Connection):
        async with self._lock:
            removed = self.connections.pop(conn.id, None)
        await conn.close()
        if removed is not None:
            logger.info(f"[hub] consumer #{conn.id} disconnected ({len(self.connections)} open)")

    async def publish(self, event: EnrichedEvent):
        """Cache the event and queue it for every open consumer."""
        text = event.to_json()
        lagging = []
        async with self._lock:
            self.cache.push(event)
            self.published += 1
            for conn in self.connections.values():
                if conn.state != OPEN:
                    continue
                if not conn.enqueue(text):
                    lagging.append(conn)
        for conn in lagging:
            logger.warning(f"[hub] consumer #{conn.id} too slow, closing")
            await self.unregister(conn)

    async def snapshot(self) -> list[EnrichedEvent]:
        async with self._lock:
            return self.cache.snapshot()

    def _on_send_failure(self, conn: Connection):
        task = asyncio.create_task(self.unregister(conn), name=f"hub_drop_{conn.id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ── Liveness ────────────────────────────────────────────

    async def sweep(self):
        """
        Close consumers that never answered the previous ping, then
        clear every remaining flag and ping again.
        """
        async with self._lock:
            dead = [c for c in self.connections.values() if not c.alive]
            for conn in dead:
                self.connections.pop(conn.id, None)
            to_ping = list(self.connections.values())
            for conn in to_ping:
                conn.alive = False

        for conn in dead:
            self.evicted += 1
            logger.info(f"[hub] consumer #{conn.id} missed ping, terminating")
            await conn.close()

        for conn in to_ping:
            try:
                await conn.ws.ping()
            except Exception as e:
                logger.debug(f"[hub] ping #{conn.id} failed: {e}")
                await self.unregister(conn)

    async def _sweep_loop(self):
        while self._running:
            await asyncio.sleep(self.ping_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Liveness sweep error: {e}")

    # ── WebSocket endpoint ──────────────────────────────────

    async def handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        # autoping off so pongs reach us and set the liveness flag
        ws = web.WebSocketResponse(autoping=False, max_msg_size=MAX_MSG_SIZE)
        await ws.prepare(request)
        conn = await self.register(ws)
        try:
            async for msg in ws:
                if msg.type == WSMsgType.PONG:
                    conn.alive = True
                elif msg.type == WSMsgType.PING:
                    conn.alive = True
                    await ws.pong(msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.debug(f"[hub] consumer #{conn.id} error: {ws.exception()}")
                    break
                # Consumers have nothing to say; anything else is ignored
        finally:
            await self.unregister(conn)
        return ws

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.handle_ws)
        return app

    # ── Lifecycle ───────────────────────────────────────────

    async def start(self, host: str, port: int):
        self._running = True
        self._runner = web.AppRunner(self.make_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="hub_sweep")
        logger.info(f"Broadcast hub listening on ws://{host}:{port}/")

    async def stop(self):
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        async with self._lock:
            conns = list(self.connections.values())
            self.connections.clear()
        for conn in conns:
            await conn.close()
        if self._runner:
            await self._runner.cleanup()
        logger.info(f"Broadcast hub stopped ({len(conns)} consumers closed)")
