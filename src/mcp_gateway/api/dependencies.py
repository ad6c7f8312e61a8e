"""
Accès au Gateway depuis les routes (stocké dans `app.state`).
"""
from fastapi import Request

from ..services.gateway import Gateway


def get_gateway(request: Request) -> Gateway:
    """Retourne le Gateway attaché à l'application."""
    return request.app.state.gateway
