"""
Dataclasses pour la configuration.
"""
import shlex
from dataclasses import dataclass, field, replace
from typing import List, Dict, Any, Optional

from ..core.constants import (
    DEFAULT_HTTP_HOST,
    DEFAULT_HTTP_PORT,
    DEFAULT_SERVER_COMMAND,
    DEFAULT_SERVER_ARGS,
    DEFAULT_SERVER_ENV,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_WARMUP_S,
    DEFAULT_SHUTDOWN_TIMEOUT_S,
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_STREAM_LIMIT,
    MIN_STREAM_LIMIT,
    MAX_STREAM_LIMIT,
    MCP_PROTOCOL_VERSION,
    MCP_CLIENT_NAME,
    MCP_CLIENT_VERSION,
)


def clamp_stream_limit(value: int) -> int:
    """Borne la taille max d'une ligne stdout (défaut si <= 0)."""
    if value <= 0:
        return DEFAULT_STREAM_LIMIT
    return min(MAX_STREAM_LIMIT, max(MIN_STREAM_LIMIT, value))


@dataclass
class ServerSettings:
    """Commande et environnement du serveur MCP supervisé."""
    command: str = DEFAULT_SERVER_COMMAND
    args: List[str] = field(default_factory=lambda: list(DEFAULT_SERVER_ARGS))
    env: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SERVER_ENV))
    inherit_env: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSettings":
        """Crée une instance depuis un dictionnaire."""
        command = data.get("command", DEFAULT_SERVER_COMMAND)
        args = data.get("args")
        if "command" not in data:
            args = list(DEFAULT_SERVER_ARGS) if args is None else args
        elif args is None:
            # `command = "uvx awslabs.core-mcp-server@latest"` est accepté tel quel
            parts = shlex.split(command)
            command, args = (parts[0], parts[1:]) if parts else (DEFAULT_SERVER_COMMAND, list(DEFAULT_SERVER_ARGS))
        env = dict(DEFAULT_SERVER_ENV)
        env.update({str(k): str(v) for k, v in data.get("env", {}).items()})
        return cls(
            command=command,
            args=[str(a) for a in args],
            env=env,
            inherit_env=data.get("inherit_env", True),
        )

    @property
    def command_line(self) -> str:
        return shlex.join([self.command, *self.args])


@dataclass
class GatewaySettings:
    """Configuration globale du gateway."""
    host: str = DEFAULT_HTTP_HOST
    port: int = DEFAULT_HTTP_PORT
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    warmup_s: float = DEFAULT_WARMUP_S
    shutdown_timeout_s: float = DEFAULT_SHUTDOWN_TIMEOUT_S
    stream_limit: int = DEFAULT_STREAM_LIMIT
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    protocol_version: str = MCP_PROTOCOL_VERSION
    client_name: str = MCP_CLIENT_NAME
    client_version: str = MCP_CLIENT_VERSION
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    server: ServerSettings = field(default_factory=ServerSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewaySettings":
        """Crée une instance depuis la section `[gateway]` (et `[gateway.server]`)."""
        return cls(
            host=data.get("host", DEFAULT_HTTP_HOST),
            port=int(data.get("port", DEFAULT_HTTP_PORT)),
            request_timeout_s=float(data.get("request_timeout_s", DEFAULT_REQUEST_TIMEOUT_S)),
            warmup_s=float(data.get("warmup_s", DEFAULT_WARMUP_S)),
            shutdown_timeout_s=float(data.get("shutdown_timeout_s", DEFAULT_SHUTDOWN_TIMEOUT_S)),
            stream_limit=clamp_stream_limit(int(data.get("stream_limit", DEFAULT_STREAM_LIMIT))),
            read_chunk_size=int(data.get("read_chunk_size", DEFAULT_READ_CHUNK_SIZE)),
            protocol_version=data.get("protocol_version", MCP_PROTOCOL_VERSION),
            client_name=data.get("client_name", MCP_CLIENT_NAME),
            client_version=data.get("client_version", MCP_CLIENT_VERSION),
            cors_origins=list(data.get("cors_origins", ["*"])),
            server=ServerSettings.from_dict(data.get("server", {})),
        )

    def client_info(self) -> Dict[str, str]:
        """Identification envoyée dans `initialize`."""
        return {"name": self.client_name, "version": self.client_version}

    def with_overrides(self, port: Optional[int] = None, host: Optional[str] = None) -> "GatewaySettings":
        """Copie avec host/port surchargés (arguments CLI)."""
        return replace(
            self,
            port=port if port is not None else self.port,
            host=host if host is not None else self.host,
        )
