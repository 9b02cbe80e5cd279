"""Main entry point - resolves the faucet account and serves the API."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import uvicorn

from faucet.api.app import create_app
from faucet.chain.factory import get_ledger_client
from faucet.config import FaucetConfig, Settings
from faucet.errors import ConfigError, LedgerError
from faucet.orchestrator import TransferOrchestrator

logger = logging.getLogger(__name__)

# flag -> Settings field
FLAG_FIELDS = {
    "host": "host",
    "port": "port",
    "log_level": "log_level",
    "backend": "ledger_backend",
    "node": "node",
    "rest_url": "rest_url",
    "chain_id": "chain_id",
    "binary_name": "binary_name",
    "home": "home",
    "keyring_backend": "keyring_backend",
    "account_name": "account_name",
    "max_amount": "max_coins_per_account",
    "max_amount_per_request": "max_coins_per_request",
    "default_coins": "default_coins",
    "whitelist_file": "whitelist_file",
}


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line flags. Unset flags fall back to FAUCET_* variables."""
    parser = argparse.ArgumentParser(description="Rate-limited token faucet")
    parser.add_argument("--host", help="HTTP bind address")
    parser.add_argument("--port", type=int, help="Port on which the faucet server listens")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"], help="Log level")
    parser.add_argument("--backend", choices=["cli", "rest", "simulated"], help="Ledger backend")
    parser.add_argument("--node", help="RPC address of the node to connect to")
    parser.add_argument("--rest-url", help="REST endpoint for history queries (rest backend)")
    parser.add_argument("--chain-id", help="Chain ID")
    parser.add_argument("--binary-name", help="Name of the chain binary")
    parser.add_argument("--home", help="Home directory for blockchain config")
    parser.add_argument("--keyring-backend", help="Keyring backend of the faucet account")
    parser.add_argument("--account-name", help="Key name of the faucet account")
    parser.add_argument("--max-amount", help="Total amount of tokens allowed per address, e.g. 10000000uarch")
    parser.add_argument("--max-amount-per-request", help="Amount of tokens allowed per request")
    parser.add_argument("--default-coins", help="Coins sent when a request names none")
    parser.add_argument("--whitelist-file", help="CSV file of address,multiplier")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        field: getattr(args, flag)
        for flag, field in FLAG_FIELDS.items()
        if getattr(args, flag) is not None
    }
    return Settings(**overrides)


def configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Application:
    """Faucet process: startup checks, then the HTTP server."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.ledger = None

    async def build(self):
        """Validate configuration and resolve the faucet account.

        Raises:
            ConfigError: bad limits, whitelist, or missing keyring account
            LedgerError: the ledger could not be reached during setup
        """
        config = FaucetConfig.from_settings(self.settings)
        logger.info(
            f"Limits: {config.limits.max_per_request} per request, "
            f"{config.limits.max_per_account} per account"
        )

        self.ledger = get_ledger_client(self.settings)
        await self.ledger.prepare()

        orchestrator = TransferOrchestrator(
            ledger=self.ledger,
            limits=config.limits,
            whitelist=config.whitelist,
            lock_timeout=config.lock_timeout,
            history_page_size=config.history_page_size,
            max_history_pages=config.max_history_pages,
        )
        return create_app(orchestrator, config, self.settings, on_shutdown=self.ledger.close)

    async def start(self) -> None:
        """Start the API server."""
        app = await self.build()
        server_config = uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level,
        )
        server = uvicorn.Server(server_config)
        logger.info(f"Listening on {self.settings.host}:{self.settings.port}")
        await server.serve()


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValueError as e:
        # pydantic ValidationError subclasses ValueError
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)
    logger.info("Starting faucet...")

    try:
        asyncio.run(Application(settings).start())
    except (ConfigError, LedgerError) as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


if __name__ == "__main__":
    main()
