"""
Launch pipeline — signature queue + resolver worker pool.

The listener only enqueues signatures; a fixed pool of workers takes
each one through resolve → extract → enrich → publish. Per signature the
stages run strictly in order; across signatures there is no ordering.
Any failure drops that one event and the worker moves on.
"""
import asyncio
import logging

from errors import MetadataUnavailable, TransactionNotFound
from sol.extractor import extract
from sol.listener import Watch

logger = logging.getLogger("pipeline")


class LaunchPipeline:

    def __init__(self, resolver, enricher, hub, workers: int = 4):
        self.resolver = resolver
        self.enricher = enricher
        self.hub = hub
        self.workers = workers
        self.queue: asyncio.Queue[tuple[str, Watch]] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []
        self._accepting = False
        # Stats
        self.submitted: int = 0
        self.published: int = 0
        self.dropped: dict[str, int] = {}

    def submit(self, signature: str, watch: Watch):
        """Listener callback. Never blocks."""
        if not self._accepting:
            return
        self.submitted += 1
        self.queue.put_nowait((signature, watch))

    def start(self):
        self._accepting = True
        for i in range(self.workers):
            self._tasks.append(asyncio.create_task(self._worker(i), name=f"resolver_{i}"))
        logger.info(f"Pipeline started with {self.workers} resolver workers")

    async def stop(self, grace: float = 10.0):
        """Stop intake, let queued/in-flight signatures finish up to `grace` seconds."""
        self._accepting = False
        pending = self.queue.qsize()
        if pending:
            logger.info(f"Draining {pending} queued signatures (grace {grace:.0f}s)")
        try:
            await asyncio.wait_for(self.queue.join(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"Shutdown grace expired with {self.queue.qsize()} signatures unprocessed")
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def _worker(self, worker_id: int):
        while True:
            signature, watch = await self.queue.get()
            try:
                await self.process(signature, watch)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"[worker-{worker_id}] unexpected error for {signature[:16]}...")
                self._drop("error")
            finally:
                self.queue.task_done()

    async def process(self, signature: str, watch: Watch) -> bool:
        """Run one signature through every stage. True if published."""
        try:
            tx = await self.resolver.resolve(signature)
        except TransactionNotFound as e:
            logger.warning(f"[drop] {e}")
            self._drop("not_found")
            return False

        record = extract(tx, watch.mint_account_index)
        if record is None:
            self._drop("no_record")
            return False

        try:
            event = await self.enricher.enrich(record.mint, record)
        except MetadataUnavailable as e:
            logger.warning(f"[drop] {e}")
            self._drop("no_metadata")
            return False

        await self.hub.publish(event)
        self.published += 1
        logger.info(
            f"[{watch.name}] {event.symbol or '?'} {record.mint} "
            f"pool={record.pool_address or '-'} liq={record.liquidity_size or '-'}"
        )
        return True

    def _drop(self, reason: str):
        self.dropped[reason] = self.dropped.get(reason, 0) + 1
