"""Faucet transfer endpoint."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from faucet.api.schemas import DenomLimits, FaucetInfo, TransferBody, TransferResponse
from faucet.coins import CoinSet
from faucet.config import FaucetConfig
from faucet.errors import InvalidCoinError
from faucet.orchestrator import TransferOrchestrator
from faucet.quota.models import TransferRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "/",
    response_model=TransferResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": TransferResponse, "description": "Request rejected"},
        403: {"model": TransferResponse, "description": "Address not whitelisted"},
        500: {"model": TransferResponse, "description": "Ledger failure"},
        503: {"model": TransferResponse, "description": "Destination busy"},
    },
)
async def request_tokens(body: TransferBody, request: Request):
    """Send coins from the faucet account to an address."""
    orchestrator: TransferOrchestrator = request.app.state.orchestrator
    config: FaucetConfig = request.app.state.faucet_config

    try:
        coins = CoinSet.from_strings(body.coins)
    except InvalidCoinError as e:
        return error_response(e.status_code, str(e))

    if not coins and not body.coins:
        coins = config.default_coins

    outcome = await orchestrator.submit(TransferRequest(address=body.address.strip(), coins=coins))

    if outcome.success:
        return JSONResponse(status_code=200, content={})
    return error_response(outcome.status_code, outcome.error or "transfer failed")


@router.get("/", include_in_schema=False)
async def console():
    """Redirect browsers to the OpenAPI console."""
    return RedirectResponse(url="/docs")


@router.get("/info", response_model=FaucetInfo)
async def faucet_info(request: Request) -> FaucetInfo:
    """Faucet address and distribution limits."""
    orchestrator: TransferOrchestrator = request.app.state.orchestrator
    config: FaucetConfig = request.app.state.faucet_config
    limits = config.limits

    denoms = []
    for denom in limits.max_per_account.denoms:
        per_request = limits.request_limit(denom)
        denoms.append(
            DenomLimits(
                denom=denom,
                max_per_request=str(per_request) if per_request is not None else None,
                max_per_account=str(limits.max_per_account[denom]),
            )
        )

    return FaucetInfo(
        faucet_address=orchestrator.faucet_address,
        chain_id=config.chain_id,
        denoms=denoms,
        default_coins=[str(coin) for coin in config.default_coins.coins()],
        whitelist_enabled=config.whitelist is not None,
    )
