"""HTTP gateway."""

from faucet.api.app import create_app

__all__ = ["create_app"]
