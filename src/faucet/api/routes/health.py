"""Health check endpoints."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "faucet"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration info."""
    settings = request.app.state.settings
    orchestrator = request.app.state.orchestrator
    return {
        "status": "healthy",
        "service": "faucet",
        "version": request.app.version,
        "faucet_address": orchestrator.faucet_address,
        "pending_destinations": orchestrator.pending_destinations,
        "config": settings.get_safe_dict(),
    }
