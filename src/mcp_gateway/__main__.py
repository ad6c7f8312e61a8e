"""
Point d'entrée pour `python -m mcp_gateway`.
"""
import argparse
import logging

import uvicorn

from .config.loader import get_settings
from .core.logging import configure_logging
from .main import create_app

logger = logging.getLogger("mcp_gateway")


def main():
    """Fonction principale."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="MCP stdio Gateway")
    parser.add_argument("--host", default=None, help=f"Host (défaut: {settings.host})")
    parser.add_argument("--port", type=int, default=None, help=f"Port (défaut: MCP_HTTP_PORT ou {settings.port})")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["critical", "error", "warning", "info", "debug"],
        help="Niveau de log (défaut: MCP_GATEWAY_LOG_LEVEL ou info)",
    )

    args = parser.parse_args()

    configure_logging(args.log_level)
    settings = settings.with_overrides(port=args.port, host=args.host)

    logger.info(f"🌐 MCP HTTP gateway sur {settings.host}:{settings.port}")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=(args.log_level or "info").lower(),
    )


if __name__ == "__main__":
    main()
