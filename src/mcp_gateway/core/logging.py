"""
Configuration du logging applicatif.

Un seul handler stderr: stdout reste libre (le gateway ne parle JSON-RPC qu'avec
son sous-processus, mais on garde la même discipline que le bridge stdio).
"""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def resolve_log_level(level: str = None) -> int:
    """Résout un niveau de log (argument, puis MCP_GATEWAY_LOG_LEVEL, puis INFO)."""
    raw = level or os.getenv("MCP_GATEWAY_LOG_LEVEL") or "INFO"
    value = logging.getLevelName(raw.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str = None) -> None:
    """Installe le handler racine du package `mcp_gateway`."""
    logger = logging.getLogger("mcp_gateway")
    logger.setLevel(resolve_log_level(level))

    if not any(getattr(h, "_mcp_gateway", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._mcp_gateway = True
        logger.addHandler(handler)
