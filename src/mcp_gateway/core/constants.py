"""
Constantes globales pour le MCP stdio Gateway.
"""

# ============================================================================
# SERVEUR HTTP
# ============================================================================
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 3001

# ============================================================================
# PROTOCOLE JSON-RPC / MCP
# ============================================================================
JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"
MCP_CLIENT_NAME = "aws-mcp-ai-dashboard"
MCP_CLIENT_VERSION = "1.0.0"

# Codes d'erreur JSON-RPC 2.0 utilisés par le gateway
JSONRPC_METHOD_NOT_FOUND = -32601

# Méthodes MCP relayées
METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"

# Outil fixe derrière /prompt/analyze
PROMPT_ANALYSIS_TOOL = "prompt_understanding"

# ============================================================================
# SOUS-PROCESSUS MCP
# ============================================================================
DEFAULT_SERVER_COMMAND = "uvx"
DEFAULT_SERVER_ARGS = ["awslabs.core-mcp-server@latest"]
DEFAULT_SERVER_ENV = {
    "FASTMCP_LOG_LEVEL": "ERROR",
    "aws-foundation": "true",
    "solutions-architect": "true",
}

DEFAULT_REQUEST_TIMEOUT_S = 30.0  # Deadline par appel corrélé
DEFAULT_WARMUP_S = 2.0  # Délai entre le spawn et `initialize`
DEFAULT_SHUTDOWN_TIMEOUT_S = 5.0  # SIGTERM -> SIGKILL
DEFAULT_READ_CHUNK_SIZE = 64 * 1024

# Taille max d'une ligne stdout (même bornes que le bridge stdio)
DEFAULT_STREAM_LIMIT = 8 * 1024 * 1024  # 8 MiB
MIN_STREAM_LIMIT = 64 * 1024
MAX_STREAM_LIMIT = 64 * 1024 * 1024  # 64 MiB

# Aperçu max d'une ligne invalide dans les logs
LOG_PREVIEW_CHARS = 200
