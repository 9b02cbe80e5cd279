"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from faucet import __version__
from faucet.config import FaucetConfig, Settings, get_settings
from faucet.errors import FaucetError
from faucet.orchestrator import TransferOrchestrator

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: TransferOrchestrator,
    config: FaucetConfig,
    settings: Optional[Settings] = None,
    on_shutdown=None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        orchestrator: Prepared transfer orchestrator (faucet account resolved)
        config: Validated runtime configuration
        settings: Raw settings, shown redacted on /health/detailed
        on_shutdown: Optional coroutine function awaited at shutdown
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Faucet ready: sending from {orchestrator.faucet_address}")
        yield
        if on_shutdown is not None:
            await on_shutdown()

    app = FastAPI(
        title="Faucet",
        description="Rate-limited token faucet",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.orchestrator = orchestrator
    app.state.faucet_config = config
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(FaucetError)
    async def faucet_error_handler(request: Request, exc: FaucetError):
        return JSONResponse(
            status_code=getattr(exc, "status_code", 500),
            content={"error": str(exc)},
        )

    # Register routes
    from faucet.api.routes import health, transfer

    app.include_router(health.router, tags=["Health"])
    app.include_router(transfer.router, tags=["Faucet"])

    return app
