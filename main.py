"""
Launch Feed — Main Orchestrator.

Watches Solana program logs for new token launches, resolves each
matching transaction, enriches it with off-chain metadata and pushes
it to every WebSocket consumer (with a replay buffer for late joiners).

Usage:
    python main.py                        # reads .env
    BURN_WATCH_ENABLED=true python main.py  # also watch LP burn/close
"""
import asyncio
import logging
import signal as signal_module
import sys

import config
from enricher import MetadataClient, MetadataEnricher
from errors import SubscriptionError
from events import EventCache
from hub import BroadcastHub
from pipeline import LaunchPipeline
from sol.constants import (
    BURN_INSTRUCTIONS,
    BURN_PROGRAM,
    CREATE_POOL_INSTRUCTIONS,
    LAUNCH_MINT_INDEX,
    RAYDIUM_AMM_V4,
)
from sol.listener import ANY_OF, EXACT_SET, LogFilter, SolanaListener, Watch
from sol.resolver import TransactionResolver

# ── Logging ──
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(name)-14s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("main")
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_watches() -> list[Watch]:
    watches = [
        Watch(
            name="raydium-init",
            program_address=RAYDIUM_AMM_V4,
            log_filter=LogFilter(CREATE_POOL_INSTRUCTIONS, ANY_OF),
            mint_account_index=LAUNCH_MINT_INDEX,
        ),
    ]
    if config.BURN_WATCH_ENABLED:
        watches.append(
            Watch(
                name="burn-close",
                program_address=BURN_PROGRAM,
                log_filter=LogFilter(BURN_INSTRUCTIONS, EXACT_SET),
                mint_account_index=LAUNCH_MINT_INDEX,
            )
        )
    return watches


class LaunchFeed:
    """Main application — wires up all components and runs them concurrently."""

    def __init__(self):
        self.hub = BroadcastHub(
            cache=EventCache(config.CACHE_SIZE),
            ping_interval=config.HUB_PING_INTERVAL,
            send_queue_size=config.HUB_SEND_QUEUE_SIZE,
        )
        self.resolver = TransactionResolver(
            config.SOL_RPC_HTTP,
            max_retries=config.RESOLVE_MAX_RETRIES,
            retry_delay=config.RESOLVE_RETRY_DELAY,
        )
        self.metadata = MetadataClient(config.METADATA_RPC_HTTP, timeout=config.METADATA_TIMEOUT)
        self.enricher = MetadataEnricher(self.metadata)
        self.pipeline = LaunchPipeline(
            self.resolver, self.enricher, self.hub, workers=config.RESOLVER_WORKERS
        )
        self.watches = build_watches()
        self.listener = SolanaListener(
            wss_url=config.SOL_RPC_WSS,
            watches=self.watches,
            on_match=self.pipeline.submit,
            max_reconnects=config.SOL_MAX_RECONNECTS,
            max_backoff=config.SOL_MAX_BACKOFF,
        )
        self._stop_requested = asyncio.Event()
        self._stopping = False

    def request_stop(self):
        self._stop_requested.set()

    async def start(self):
        logger.info("=" * 60)
        logger.info("  SOLANA LAUNCH FEED")
        logger.info(f"  Watches:    {', '.join(w.name for w in self.watches)}")
        logger.info(f"  Hub:        ws://{config.HUB_HOST}:{config.HUB_PORT}/")
        logger.info(f"  Cache:      {config.CACHE_SIZE} events")
        logger.info(f"  Resolver:   {config.RESOLVE_MAX_RETRIES} tries x {config.RESOLVE_RETRY_DELAY}s, "
                    f"{config.RESOLVER_WORKERS} workers")
        logger.info("=" * 60)

        await self.hub.start(config.HUB_HOST, config.HUB_PORT)
        self.pipeline.start()

        tasks = [
            asyncio.create_task(self.listener.start(), name="sol_listener"),
            asyncio.create_task(self._stats_loop(), name="stats"),
            asyncio.create_task(self._stop_requested.wait(), name="stop_signal"),
        ]

        logger.info("All systems running. Waiting for new launches...")

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                # Only fatal errors get here; surface them to main()
                raise exc

    async def stop(self):
        if self._stopping:
            return
        self._stopping = True
        logger.info("Shutting down...")
        await self.listener.stop()
        await self.pipeline.stop(grace=config.SHUTDOWN_GRACE)
        await self.hub.stop()
        await self.resolver.close()
        await self.metadata.close()
        logger.info("Goodbye.")

    async def _stats_loop(self):
        while True:
            await asyncio.sleep(300)
            logger.info(
                f"[stats] notifications={self.listener.notifications} "
                f"matched={self.listener.matched} queued={self.pipeline.queue.qsize()} "
                f"published={self.pipeline.published} consumers={len(self.hub.connections)} "
                f"cached={len(self.hub.cache)} evicted={self.hub.evicted}"
            )
            if self.pipeline.dropped:
                logger.info(f"[stats] drops: {self.pipeline.dropped}")


async def main() -> int:
    feed = LaunchFeed()
    loop = asyncio.get_running_loop()
    for sig in (signal_module.SIGINT, signal_module.SIGTERM):
        loop.add_signal_handler(sig, feed.request_stop)

    exit_code = 0
    try:
        await feed.start()
    except SubscriptionError as e:
        logger.error(f"Fatal: {e}")
        exit_code = 1
    finally:
        await feed.stop()
    return exit_code


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
