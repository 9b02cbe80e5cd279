"""Rate-limited token faucet for Cosmos SDK chains."""

__version__ = "0.1.0"
