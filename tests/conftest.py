"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment
os.environ["FAUCET_LEDGER_BACKEND"] = "simulated"
os.environ["FAUCET_LOG_LEVEL"] = "debug"

from faucet.chain.simulated import SimulatedLedgerClient
from faucet.coins import CoinSet
from faucet.orchestrator import TransferOrchestrator
from faucet.quota.models import Limits
from faucet.quota.store import QuotaStore

FAUCET_ADDRESS = "archway1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqfaucet"


def make_address(tag: str) -> str:
    """Build a well-formed bech32-looking address from bech32 characters."""
    return "archway1" + tag + "q" * (38 - len(tag))


@pytest.fixture
def destination() -> str:
    return make_address("dest")


@pytest.fixture
def other_destination() -> str:
    return make_address("zz")


@pytest.fixture
def limits() -> Limits:
    """1,000,000 uarch per request, 10,000,000 uarch per account."""
    return Limits(
        max_per_request=CoinSet.parse("1000000uarch,50ustake"),
        max_per_account=CoinSet.parse("10000000uarch,100ustake"),
    )


@pytest.fixture
def ledger() -> SimulatedLedgerClient:
    return SimulatedLedgerClient(address=FAUCET_ADDRESS)


@pytest.fixture
def quota_store(ledger) -> QuotaStore:
    return QuotaStore(ledger, page_size=5)


@pytest.fixture
def orchestrator(ledger, limits) -> TransferOrchestrator:
    return TransferOrchestrator(ledger=ledger, limits=limits, lock_timeout=5.0, history_page_size=5)
