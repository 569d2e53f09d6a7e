"""
Pipeline error taxonomy.

TransactionNotFound and MetadataUnavailable drop a single event.
SubscriptionError is fatal: without the log stream there is nothing to do.
"""


class LaunchFeedError(Exception):
    pass


class TransactionNotFound(LaunchFeedError):
    """Raised by the resolver after the last retry."""

    def __init__(self, signature: str, attempts: int):
        self.signature = signature
        self.attempts = attempts
        super().__init__(
            f"Transaction {signature} not found after {attempts} attempts"
        )


class MetadataUnavailable(LaunchFeedError):
    def __init__(self, mint: str, reason: str = ""):
        self.mint = mint
        self.reason = reason
        msg = f"Metadata unavailable for {mint}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class SubscriptionError(LaunchFeedError):
    """Log subscription could not be (re)established."""
