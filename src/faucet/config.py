"""Application configuration using pydantic-settings.

Settings are read from FAUCET_* environment variables (or a .env file) and
may be overridden by command-line flags. They are turned into an immutable
FaucetConfig once at startup; malformed limits or whitelist files abort the
process there instead of surfacing on a request.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from faucet.coins import CoinSet
from faucet.errors import ConfigError, InvalidCoinError
from faucet.quota.models import Limits
from faucet.whitelist import Whitelist, load_optional_whitelist

LEDGER_BACKENDS = ("cli", "rest", "simulated")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FAUCET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ======================
    # HTTP server
    # ======================
    host: str = Field(default="0.0.0.0", description="HTTP server host")
    port: int = Field(default=8000, description="HTTP server port")
    log_level: str = Field(default="info", description="debug, info, warning or error")
    debug: bool = Field(default=False, description="Enable FastAPI debug mode")

    # ======================
    # Ledger access
    # ======================
    ledger_backend: str = Field(default="cli", description="cli, rest or simulated")
    binary_name: str = Field(default="archwayd", description="Chain binary used for keys and txs")
    node: str = Field(default="", description="RPC address of the node (--node)")
    rest_url: str = Field(default="", description="REST endpoint used by the rest backend")
    chain_id: str = Field(default="", description="Chain ID")
    home: str = Field(default="", description="Home directory of the chain binary")
    command_timeout: float = Field(default=60.0, description="Seconds before a chain command is killed")
    query_syntax: str = Field(default="events", description="'events' or 'query' flag for tx search")

    # ======================
    # Faucet account
    # ======================
    keyring_backend: str = Field(default="test", description="Keyring backend")
    account_name: str = Field(default="faucet-account", description="Key name of the faucet account")
    account_mnemonic: Optional[str] = Field(
        default=None, description="Mnemonic recovered into the keyring when the key is missing"
    )
    simulated_address: str = Field(
        default="archway1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqfaucet",
        description="Faucet address used by the simulated backend",
    )

    # ======================
    # Transactions
    # ======================
    gas_prices: str = Field(default="0.025uarch", description="Gas prices for transfers")
    gas_adjustment: str = Field(default="1.5", description="Gas adjustment for transfers")
    confirm_timeout: float = Field(default=30.0, description="Seconds to wait for block inclusion")
    confirm_interval: float = Field(default=1.0, description="Polling interval for inclusion")

    # ======================
    # Quotas
    # ======================
    max_coins_per_request: str = Field(
        default="1000000uarch", description="Ceiling for a single request"
    )
    max_coins_per_account: str = Field(
        default="10000000uarch", description="Lifetime ceiling per destination account"
    )
    default_coins: str = Field(default="", description="Coins sent when a request names none")
    whitelist_file: Optional[str] = Field(default=None, description="CSV of address,multiplier")
    lock_timeout: float = Field(default=60.0, description="Seconds to wait for a destination lock (0 = forever)")
    history_page_size: int = Field(default=100, description="Transactions per history page")
    max_history_pages: int = Field(default=1000, description="Pages scanned before giving up")

    @property
    def is_simulated(self) -> bool:
        return self.ledger_backend == "simulated"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "ledger_backend": self.ledger_backend,
            "binary_name": self.binary_name,
            "node": self.node,
            "rest_url": self.rest_url,
            "chain_id": self.chain_id,
            "keyring_backend": self.keyring_backend,
            "account_name": self.account_name,
            "account_mnemonic": "***" if self.account_mnemonic else "(not set)",
            "max_coins_per_request": self.max_coins_per_request,
            "max_coins_per_account": self.max_coins_per_account,
            "default_coins": self.default_coins or "(none)",
            "whitelist_file": self.whitelist_file or "(none)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def _parse_coins(value: str, name: str) -> CoinSet:
    try:
        return CoinSet.parse(value)
    except InvalidCoinError as e:
        raise ConfigError(f"invalid {name} {value!r}: {e}") from e


@dataclass(frozen=True)
class FaucetConfig:
    """Runtime configuration, validated once and never mutated."""

    limits: Limits
    default_coins: CoinSet
    whitelist: Optional[Whitelist]
    lock_timeout: Optional[float]
    history_page_size: int
    max_history_pages: int
    chain_id: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "FaucetConfig":
        """Build the runtime config.

        Raises:
            ConfigError: on malformed coin lists, bad numbers or whitelist file
        """
        if settings.ledger_backend not in LEDGER_BACKENDS:
            raise ConfigError(
                f"unknown ledger backend {settings.ledger_backend!r}, "
                f"expected one of {', '.join(LEDGER_BACKENDS)}"
            )
        if settings.query_syntax not in ("events", "query"):
            raise ConfigError(f"unknown query syntax {settings.query_syntax!r}")

        limits = Limits(
            max_per_request=_parse_coins(settings.max_coins_per_request, "max coins per request"),
            max_per_account=_parse_coins(settings.max_coins_per_account, "max coins per account"),
        )
        if not limits.max_per_account:
            raise ConfigError("max coins per account must name at least one denomination")
        for denom in limits.max_per_request:
            if denom not in limits.max_per_account:
                raise ConfigError(
                    f"denomination {denom} has a per-request limit but no per-account limit"
                )

        default_coins = _parse_coins(settings.default_coins, "default coins")
        for denom in default_coins:
            if denom not in limits.max_per_account:
                raise ConfigError(f"default coin {denom} is not a distributable denomination")

        if settings.history_page_size <= 0 or settings.max_history_pages <= 0:
            raise ConfigError("history page size and page count must be positive")
        if settings.lock_timeout < 0:
            raise ConfigError("lock timeout must not be negative")

        return cls(
            limits=limits,
            default_coins=default_coins,
            whitelist=load_optional_whitelist(settings.whitelist_file),
            lock_timeout=settings.lock_timeout or None,
            history_page_size=settings.history_page_size,
            max_history_pages=settings.max_history_pages,
            chain_id=settings.chain_id,
        )
