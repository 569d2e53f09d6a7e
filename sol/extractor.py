"""
Positional field extraction from a resolved launch transaction.

Pure: no I/O. A transaction that matched the log pattern but does not have
the canonical shape yields None and is dropped by the pipeline.
"""
import logging

from sol.constants import LP_SIZE_INDEX, LP_TOKEN_INDEX, POOL_KEY_INDEX
from sol.models import ExtractedRecord, ResolvedTransaction, TokenBalance

logger = logging.getLogger("sol_extract")


def _balance_at(balances: list[TokenBalance], account_index: int) -> TokenBalance | None:
    for bal in balances:
        if bal.account_index == account_index:
            return bal
    return None


def extract(tx: ResolvedTransaction, mint_account_index: int) -> ExtractedRecord | None:
    if tx.post_balances is None:
        logger.warning(f"[extract-skip] {tx.signature[:16]}... no postTokenBalances")
        return None

    launch = _balance_at(tx.post_balances, mint_account_index)
    if launch is None or not launch.mint:
        logger.warning(
            f"[extract-skip] {tx.signature[:16]}... no balance at index {mint_account_index}"
        )
        return None

    # Auxiliary pool fields are best-effort
    lp_token = _balance_at(tx.post_balances, LP_TOKEN_INDEX)
    lp_size = _balance_at(tx.post_balances, LP_SIZE_INDEX)
    pool = None
    if len(tx.static_account_keys) > POOL_KEY_INDEX:
        pool = tx.static_account_keys[POOL_KEY_INDEX] or None

    return ExtractedRecord(
        mint=launch.mint,
        owner=launch.owner,
        token_amount=launch.amount,
        liquidity_token_mint=lp_token.mint if lp_token and lp_token.mint else None,
        pool_address=pool,
        liquidity_size=lp_size.ui_amount_string if lp_size else None,
    )
