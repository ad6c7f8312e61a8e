"""
MCP stdio Gateway - API HTTP au-dessus d'un serveur MCP stdio.
"""

__version__ = "1.0.0"
