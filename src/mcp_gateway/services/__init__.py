"""
Services applicatifs du gateway.
"""

from .gateway import Gateway, GatewayState

__all__ = ["Gateway", "GatewayState"]
