"""
Solana program IDs, log markers and account positions for launch detection.

Primary: Raydium AMM V4 pool initialization (InitializeMint in logs).
Optional: burn/close watch (LP burn after launch).
"""

# ═══════════════════════════════════════════════════════════════
#  PROGRAM IDS
# ═══════════════════════════════════════════════════════════════

# Raydium AMM V4 — primary watch (most new token launches)
RAYDIUM_AMM_V4 = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"

# Burn/close watch program
BURN_PROGRAM = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"

# SPL Token Program
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# ═══════════════════════════════════════════════════════════════
#  LOG MARKERS
#
#  The SPL token program logs "Program log: Instruction: <Name>"
#  for every instruction it executes.
# ═══════════════════════════════════════════════════════════════

IX_INITIALIZE_MINT = "Program log: Instruction: InitializeMint"
IX_BURN = "Program log: Instruction: Burn"
IX_CLOSE_ACCOUNT = "Program log: Instruction: CloseAccount"

CREATE_POOL_INSTRUCTIONS = (IX_INITIALIZE_MINT,)
BURN_INSTRUCTIONS = (IX_BURN, IX_CLOSE_ACCOUNT)

# ═══════════════════════════════════════════════════════════════
#  RAYDIUM INITIALIZE2 — TRANSACTION POSITIONS
#
#  Fixed by the instruction's account layout, not discovered:
#    postTokenBalances accountIndex 9  : new token (mint, owner, amount)
#    postTokenBalances accountIndex 10 : LP token mint
#    postTokenBalances accountIndex 6  : pool quote vault (liquidity size)
#    staticAccountKeys[2]              : AMM pool address
# ═══════════════════════════════════════════════════════════════

LAUNCH_MINT_INDEX = 9
LP_TOKEN_INDEX = 10
LP_SIZE_INDEX = 6
POOL_KEY_INDEX = 2

# Commitment for both subscription and transaction fetch
COMMITMENT = "confirmed"
