"""
Route API pour le health check.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_gateway
from ...services.gateway import Gateway

router = APIRouter()


@router.get("/health")
async def health_check(gateway: Gateway = Depends(get_gateway)):
    """Health check: disponibilité du serveur MCP, sans jamais l'appeler."""
    return gateway.health()
