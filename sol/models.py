"""
Solana-side records passed between listener, resolver and extractor.
"""
from dataclasses import dataclass, field


@dataclass
class LogNotification:
    program_address: str
    signature: str
    logs: list[str] = field(default_factory=list)
    err: object = None  # non-null = failed transaction


@dataclass
class TokenBalance:
    account_index: int
    mint: str
    owner: str = ""
    amount: dict = field(default_factory=dict)  # raw uiTokenAmount

    @property
    def ui_amount_string(self) -> str | None:
        return self.amount.get("uiAmountString")


@dataclass
class ResolvedTransaction:
    signature: str
    # None = node returned no balance table
    post_balances: list[TokenBalance] | None
    static_account_keys: list[str] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, signature: str, result: dict) -> "ResolvedTransaction":
        """Build from a getTransaction(encoding=json) result."""
        meta = result.get("meta") or {}
        raw_balances = meta.get("postTokenBalances")
        post_balances = None
        if raw_balances is not None:
            post_balances = [
                TokenBalance(
                    account_index=b.get("accountIndex"),
                    mint=b.get("mint", ""),
                    owner=b.get("owner", ""),
                    amount=b.get("uiTokenAmount") or {},
                )
                for b in raw_balances
            ]

        keys = (
            (result.get("transaction") or {})
            .get("message", {})
            .get("accountKeys", [])
        )
        # jsonParsed encoding gives dicts; json gives plain strings
        static_keys = [k.get("pubkey", "") if isinstance(k, dict) else str(k) for k in keys]
        return cls(signature=signature, post_balances=post_balances, static_account_keys=static_keys)


@dataclass
class ExtractedRecord:
    mint: str
    owner: str
    token_amount: dict
    liquidity_token_mint: str | None = None
    pool_address: str | None = None
    liquidity_size: str | None = None
