"""Factory for creating the ledger client from settings."""

import logging

from faucet.chain.base import LedgerClient
from faucet.config import Settings
from faucet.errors import ConfigError

logger = logging.getLogger(__name__)


def get_ledger_client(settings: Settings) -> LedgerClient:
    """Build the ledger client named by settings.ledger_backend.

    Raises:
        ConfigError: unknown backend or missing REST endpoint
    """
    backend = settings.ledger_backend

    if backend == "simulated":
        from faucet.chain.simulated import SimulatedLedgerClient

        logger.warning("Using SIMULATED ledger - no real transactions will be sent")
        return SimulatedLedgerClient(address=settings.simulated_address)

    binary_kwargs = dict(
        binary=settings.binary_name,
        account_name=settings.account_name,
        chain_id=settings.chain_id,
        node=settings.node,
        home=settings.home,
        keyring_backend=settings.keyring_backend,
        gas_prices=settings.gas_prices,
        gas_adjustment=settings.gas_adjustment,
        mnemonic=settings.account_mnemonic,
        command_timeout=settings.command_timeout,
        confirm_timeout=settings.confirm_timeout,
        confirm_interval=settings.confirm_interval,
        query_syntax=settings.query_syntax,
    )

    if backend == "cli":
        from faucet.chain.cli import ChainBinaryClient

        return ChainBinaryClient(**binary_kwargs)

    if backend == "rest":
        if not settings.rest_url:
            raise ConfigError("the rest backend requires FAUCET_REST_URL")
        from faucet.chain.rest import RestChainClient

        return RestChainClient(rest_url=settings.rest_url, **binary_kwargs)

    raise ConfigError(f"unknown ledger backend {backend!r}")
