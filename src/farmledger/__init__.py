"""Multi-pool, multi-token staking and reward ledger."""

__version__ = "1.0.0"
