"""
Configuration du MCP stdio Gateway.
"""

from .loader import load_config, get_settings, reload_settings, apply_env_overrides
from .settings import GatewaySettings, ServerSettings

__all__ = [
    "load_config",
    "get_settings",
    "reload_settings",
    "apply_env_overrides",
    "GatewaySettings",
    "ServerSettings",
]
