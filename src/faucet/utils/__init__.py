"""Utility modules for the faucet."""

from faucet.utils.locks import AddressLockTable

__all__ = ["AddressLockTable"]
