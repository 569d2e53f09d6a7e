"""
Enriched launch events and the replay cache.

EnrichedEvent is the unit of broadcast. Its wire text is rendered once at
construction so every consumer (live or replayed) receives identical bytes.
"""
import json
import logging
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger("events")

# Wire key order; optional keys are omitted when None
WIRE_FIELDS = (
    ("mint", "mint"),
    ("name", "name"),
    ("symbol", "symbol"),
    ("image", "image"),
    ("description", "description"),
    ("twitter_link", "twitterLink"),
    ("telegram_link", "telegramLink"),
    ("website_link", "websiteLink"),
    ("liquidity_token_mint", "liquidityTokenMint"),
    ("pool_address", "poolAddress"),
    ("liquidity_size", "liquiditySize"),
)
REQUIRED_FIELDS = {"mint", "name", "symbol", "image", "description"}


@dataclass(frozen=True)
class EnrichedEvent:
    mint: str
    name: str = ""
    symbol: str = ""
    image: str = ""
    description: str = ""

    # ── Social links parsed from description ────────────────
    twitter_link: str | None = None
    telegram_link: str | None = None
    website_link: str | None = None

    # ── Best-effort pool data from the launch tx ────────────
    liquidity_token_mint: str | None = None
    pool_address: str | None = None
    liquidity_size: str | None = None

    _wire: str = field(init=False, repr=False, compare=False, default="")

    def __post_init__(self):
        object.__setattr__(self, "_wire", json.dumps(self.to_dict(), separators=(",", ":")))

    def to_dict(self) -> dict:
        out = {}
        for attr, key in WIRE_FIELDS:
            value = getattr(self, attr)
            if value is None and attr not in REQUIRED_FIELDS:
                continue
            out[key] = value
        return out

    def to_json(self) -> str:
        return self._wire

    @classmethod
    def from_dict(cls, data: dict) -> "EnrichedEvent":
        kwargs = {attr: data[key] for attr, key in WIRE_FIELDS if key in data}
        return cls(**kwargs)


class EventCache:
    """
    Fixed-capacity FIFO of the most recent events, used to backfill
    consumers that connect late. Not thread-safe; the hub serializes access.
    """

    def __init__(self, max_size: int = 50):
        if max_size < 1:
            raise ValueError("cache size must be >= 1")
        self.max_size = max_size
        self._events: deque[EnrichedEvent] = deque(maxlen=max_size)

    def push(self, event: EnrichedEvent):
        if len(self._events) == self.max_size:
            logger.debug(f"[cache-evict] {self._events[0].mint[:8]}...")
        self._events.append(event)

    def snapshot(self) -> list[EnrichedEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
