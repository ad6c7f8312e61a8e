"""
Couche Proxy: I/O vers le serveur MCP stdio.
"""

from .stdio_process import ServerCommand, StdioProcess

__all__ = ["ServerCommand", "StdioProcess"]
