"""
Configuration loader — reads .env and exposes all settings.
"""
import os
from dotenv import load_dotenv

load_dotenv()


# ── Solana RPC ─────────────────────────────────────────────────
# Helius recommended (free tier: 100k credits/day). Public endpoint is unreliable.
SOL_RPC_WSS = os.getenv("SOL_RPC_WSS", "wss://api.mainnet-beta.solana.com")
SOL_RPC_HTTP = os.getenv("SOL_RPC_HTTP", "https://api.mainnet-beta.solana.com")
# Consecutive failed (re)connects before the listener gives up and the process exits
SOL_MAX_RECONNECTS = int(os.getenv("SOL_MAX_RECONNECTS", "10"))
# Reconnect backoff doubles from 1s up to this cap
SOL_MAX_BACKOFF = float(os.getenv("SOL_MAX_BACKOFF", "30"))

# ── Watched programs ───────────────────────────────────────────
# Burn/close watch requires the exact instruction set, see sol/listener.py
BURN_WATCH_ENABLED = os.getenv("BURN_WATCH_ENABLED", "false").lower() == "true"

# ── Transaction resolver ───────────────────────────────────────
# Fixed delay between attempts: node indexing lag is short and bounded
RESOLVE_MAX_RETRIES = int(os.getenv("RESOLVE_MAX_RETRIES", "3"))
RESOLVE_RETRY_DELAY = float(os.getenv("RESOLVE_RETRY_DELAY", "2.0"))
RESOLVER_WORKERS = int(os.getenv("RESOLVER_WORKERS", "4"))

# ── Metadata (DAS getAsset) ────────────────────────────────────
# Must support the DAS API (Helius, Triton...). Defaults to the Solana HTTP RPC.
METADATA_RPC_HTTP = os.getenv("METADATA_RPC_HTTP", SOL_RPC_HTTP)
METADATA_TIMEOUT = float(os.getenv("METADATA_TIMEOUT", "5"))

# ── Broadcast hub ──────────────────────────────────────────────
HUB_HOST = os.getenv("HUB_HOST", "0.0.0.0")
HUB_PORT = int(os.getenv("HUB_PORT", "8080"))
HUB_PING_INTERVAL = float(os.getenv("HUB_PING_INTERVAL", "30"))
# Per-consumer backlog; a consumer this far behind is dropped
HUB_SEND_QUEUE_SIZE = int(os.getenv("HUB_SEND_QUEUE_SIZE", "1000"))
CACHE_SIZE = int(os.getenv("CACHE_SIZE", "50"))

# ── Shutdown ───────────────────────────────────────────────────
# Seconds to let in-flight resolutions finish before closing consumers
SHUTDOWN_GRACE = float(os.getenv("SHUTDOWN_GRACE", "10"))

# ── Logging ────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
