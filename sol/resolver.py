"""
Transaction resolver.

A logsNotification arrives before every RPC node has the transaction
indexed, so getTransaction is retried with a fixed delay until the
record shows up or the attempt budget runs out.

Uses raw Solana JSON-RPC via aiohttp. No solana-py dependency.
"""
import asyncio
import logging
import time

import aiohttp

from errors import TransactionNotFound
from sol.constants import COMMITMENT
from sol.models import ResolvedTransaction

logger = logging.getLogger("sol_resolver")

# Rate limit: min 100ms between RPC calls
MIN_RPC_INTERVAL = 0.1


class TransactionResolver:
    """Fetches confirmed transactions by signature with fixed-delay retry."""

    def __init__(
        self,
        http_url: str,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.http_url = http_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._session = session
        self._owns_session = session is None
        self._rate_lock = asyncio.Lock()
        self._last_rpc: float = 0.0
        # Stats
        self.resolved: int = 0
        self.not_found: int = 0

    async def _ensure_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=10)
            )
            self._owns_session = True

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def resolve(
        self,
        signature: str,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> ResolvedTransaction:
        """
        Return the confirmed transaction for `signature`.
        Raises TransactionNotFound after the last failed attempt.
        """
        attempts = max_retries if max_retries is not None else self.max_retries
        delay = retry_delay if retry_delay is not None else self.retry_delay

        for attempt in range(1, attempts + 1):
            result = await self._rpc_get_transaction(signature)
            if result is not None:
                self.resolved += 1
                if attempt > 1:
                    logger.debug(f"[resolved] {signature[:16]}... on attempt {attempt}")
                return ResolvedTransaction.from_rpc(signature, result)

            logger.debug(f"[not-indexed] {signature[:16]}... attempt {attempt}/{attempts}")
            if attempt < attempts:
                await asyncio.sleep(delay)

        self.not_found += 1
        raise TransactionNotFound(signature, attempts)

    async def _wait_rate_slot(self):
        # Only the spacing is serialized, never the request itself
        async with self._rate_lock:
            now = time.time()
            wait = MIN_RPC_INTERVAL - (now - self._last_rpc)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_rpc = time.time()

    async def _rpc_get_transaction(self, signature: str) -> dict | None:
        """One getTransaction call. None if not available or on any RPC error."""
        await self._ensure_session()
        await self._wait_rate_slot()
        try:
            async with self._session.post(
                self.http_url,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": "getTransaction",
                    "params": [
                        signature,
                        {
                            "encoding": "json",
                            "maxSupportedTransactionVersion": 0,
                            "commitment": COMMITMENT,
                        },
                    ],
                },
            ) as resp:
                data = await resp.json(content_type=None)
        except Exception as e:
            logger.debug(f"RPC getTransaction failed for {signature[:16]}...: {e}")
            return None

        # Empty body (429/503 under load) decodes to None
        if not isinstance(data, dict):
            logger.debug(f"RPC getTransaction empty reply for {signature[:16]}...")
            return None
        if data.get("error"):
            logger.debug(f"RPC getTransaction error for {signature[:16]}...: {data['error']}")
            return None
        return data.get("result")
