"""
Off-chain metadata enrichment.
Resolves a mint's descriptor (name, symbol, image, description) and
derives social links from the free-text description.

Descriptor lookup goes through the DAS getAsset JSON-RPC method
(address-keyed), then fetches the off-chain JSON at content.json_uri.
Single attempt with a short timeout: a launch whose metadata is not
ready is dropped, not broadcast half-empty.
"""
import logging
import re

import aiohttp

from errors import MetadataUnavailable
from events import EnrichedEvent
from sol.models import ExtractedRecord

logger = logging.getLogger("enricher")

# A host match must end the URL or be followed by / : ? #, so bare
# "https://x.com" is a twitter link and "https://x.company" is a website
TWITTER_RE = re.compile(r"https?://(?:www\.)?(?:x|twitter)\.com(?![^\s/:?#])\S*", re.IGNORECASE)
TELEGRAM_RE = re.compile(r"https?://(?:www\.)?t\.me(?![^\s/:?#])\S*", re.IGNORECASE)
# Any URL that is neither of the two above (same host boundary)
WEBSITE_RE = re.compile(
    r"https?://(?!(?:www\.)?(?:(?:x|twitter)\.com|t\.me)(?![^\s/:?#]))\S+",
    re.IGNORECASE,
)


def extract_socials(description: str) -> dict:
    """First link of each category in `description`, or None."""
    desc = description or ""
    out = {}
    for key, pattern in (
        ("twitter", TWITTER_RE),
        ("telegram", TELEGRAM_RE),
        ("website", WEBSITE_RE),
    ):
        m = pattern.search(desc)
        out[key] = m.group(0) if m else None
    return out


class MetadataClient:
    """Async descriptor resolver: DAS getAsset + descriptor JSON fetch."""

    def __init__(self, rpc_url: str, timeout: float = 5.0):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Accept": "application/json"},
            )

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get_asset(self, mint: str) -> dict | None:
        try:
            async with self._session.post(
                self.rpc_url,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": "getAsset",
                    "params": {"id": mint},
                },
            ) as resp:
                data = await resp.json(content_type=None)
        except Exception as e:
            logger.debug(f"getAsset failed for {mint[:8]}...: {e}")
            return None
        if not isinstance(data, dict):
            logger.debug(f"getAsset empty reply for {mint[:8]}...")
            return None
        if data.get("error"):
            logger.debug(f"getAsset error for {mint[:8]}...: {data['error']}")
            return None
        return data.get("result")

    async def _get_json(self, uri: str) -> dict | None:
        try:
            async with self._session.get(uri) as resp:
                if resp.status != 200:
                    logger.debug(f"Descriptor {resp.status} for {uri}")
                    return None
                data = await resp.json(content_type=None)
        except Exception as e:
            logger.debug(f"Descriptor fetch failed for {uri}: {e}")
            return None
        return data if isinstance(data, dict) else None

    async def resolve_descriptor(self, mint: str) -> dict | None:
        """
        Returns {name, symbol, image, description} or None if the asset
        or its descriptor cannot be resolved.
        """
        await self._ensure_session()
        asset = await self._get_asset(mint)
        if not asset:
            return None

        content = asset.get("content") or {}
        on_chain = content.get("metadata") or {}
        links = content.get("links") or {}
        descriptor = {
            "name": on_chain.get("name", ""),
            "symbol": on_chain.get("symbol", ""),
            "image": links.get("image", ""),
            "description": on_chain.get("description", ""),
        }

        json_uri = content.get("json_uri")
        if json_uri:
            off_chain = await self._get_json(json_uri)
            if off_chain:
                for key in descriptor:
                    if off_chain.get(key):
                        descriptor[key] = off_chain[key]
        return descriptor


class MetadataEnricher:
    """Turns an extracted launch into an EnrichedEvent."""

    def __init__(self, client: MetadataClient):
        self.client = client
        # Stats
        self.enriched: int = 0
        self.unavailable: int = 0

    async def enrich(self, mint: str, record: ExtractedRecord | None = None) -> EnrichedEvent:
        descriptor = await self.client.resolve_descriptor(mint)
        if descriptor is None:
            self.unavailable += 1
            raise MetadataUnavailable(mint, "descriptor not found")
        if not descriptor.get("name") and not descriptor.get("description"):
            self.unavailable += 1
            raise MetadataUnavailable(mint, "descriptor has no name or description")

        description = descriptor.get("description") or ""
        socials = extract_socials(description)

        event = EnrichedEvent(
            mint=mint,
            name=descriptor.get("name") or "",
            symbol=descriptor.get("symbol") or "",
            image=descriptor.get("image") or "",
            description=description,
            twitter_link=socials["twitter"],
            telegram_link=socials["telegram"],
            website_link=socials["website"],
            liquidity_token_mint=record.liquidity_token_mint if record else None,
            pool_address=record.pool_address if record else None,
            liquidity_size=record.liquidity_size if record else None,
        )
        self.enriched += 1
        logger.debug(
            f"[enriched] {mint[:8]}... {event.symbol or event.name} "
            f"x={bool(event.twitter_link)} tg={bool(event.telegram_link)} web={bool(event.website_link)}"
        )
        return event
