"""
MCP stdio Gateway - Application FastAPI Factory.
Expose un serveur MCP stdio (JSON-RPC ligne par ligne) derrière une API HTTP.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.router import api_router
from .config.loader import get_settings
from .config.settings import GatewaySettings
from .services.gateway import Gateway, ProcessFactory
from .proxy.stdio_process import StdioProcess

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[GatewaySettings] = None,
    *,
    gateway: Optional[Gateway] = None,
    process_factory: ProcessFactory = StdioProcess,
    start_gateway: bool = True,
) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    Args:
        settings: Configuration (défaut: `get_settings()`)
        gateway: Gateway déjà construit (tests)
        process_factory: Fabrique du sous-processus MCP
        start_gateway: Lance le serveur MCP au démarrage (lifespan)

    Returns:
        Instance configurée de FastAPI
    """
    settings = settings or (gateway.settings if gateway is not None else get_settings())
    gateway = gateway or Gateway(settings, process_factory=process_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        # Startup
        if start_gateway:
            await gateway.start()
        yield
        # Shutdown (SIGINT/SIGTERM via uvicorn): pas de sous-processus orphelin
        await _shutdown(app)

    app = FastAPI(
        title="MCP stdio Gateway",
        description="API HTTP au-dessus d'un serveur MCP stdio (JSON-RPC 2.0)",
        version=__version__,
        lifespan=lifespan
    )
    app.state.gateway = gateway
    app.state.settings = settings

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app


async def _shutdown(app: FastAPI):
    """Arrêt de l'application."""
    logger.info("🛑 Arrêt du gateway...")
    await app.state.gateway.stop()
    logger.info("✅ Gateway arrêté proprement")
