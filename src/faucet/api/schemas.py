"""HTTP request and response bodies."""

from typing import Optional

from pydantic import BaseModel, Field


class TransferBody(BaseModel):
    """Faucet request body."""

    address: str = Field(default="", description="Destination account address")
    coins: list[str] = Field(
        default_factory=list,
        description="Coins to send, e.g. [\"1000000uarch\"]; default coins when empty",
    )


class TransferResponse(BaseModel):
    """Empty on success, error message otherwise."""

    error: Optional[str] = None


class DenomLimits(BaseModel):
    denom: str
    max_per_request: Optional[str] = Field(None, description="Integer amount as string")
    max_per_account: str = Field(..., description="Integer amount as string")


class FaucetInfo(BaseModel):
    """Public faucet parameters."""

    faucet_address: str
    chain_id: str
    denoms: list[DenomLimits]
    default_coins: list[str]
    whitelist_enabled: bool
