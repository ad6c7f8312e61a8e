"""src.mcp_gateway.config.loader

Chargement de la configuration TOML + surcharges par variables d'environnement.

Ordre de priorité (du plus faible au plus fort):
- valeurs par défaut (`core.constants`)
- section `[gateway]` du fichier `config.toml` (optionnel)
- variables d'environnement `MCP_*`
"""
import os
import re
import shlex
import tomllib
from pathlib import Path
from typing import Dict, Any, Optional

from ..core.exceptions import ConfigurationError
from .settings import GatewaySettings, clamp_stream_limit

# Cache global de configuration
_config_cache: Optional[Dict[str, Any]] = None
_settings_cache: Optional[GatewaySettings] = None


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Args:
        obj: Valeur à traiter (str, dict, list)

    Returns:
        Valeur avec variables d'environnement expansées
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))
        return re.sub(r'\$\{([^}]+)\}', replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _default_config_path() -> str:
    env_path = os.getenv("MCP_GATEWAY_CONFIG")
    if env_path:
        return env_path
    # Structure: project/src/mcp_gateway/config/loader.py
    current_file = os.path.abspath(__file__)
    project_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(current_file))))
    return os.path.join(project_dir, "config.toml")


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Charge la configuration depuis config.toml.

    Un fichier absent n'est pas une erreur: le gateway tourne avec ses défauts.

    Raises:
        ConfigurationError: Si le fichier existe mais n'est pas du TOML valide
    """
    global _config_cache

    if _config_cache is not None:
        return _config_cache

    path = Path(config_path or _default_config_path())
    if not path.exists():
        _config_cache = {}
        return _config_cache

    try:
        with open(path, "rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            message=f"Fichier de configuration invalide ({path}): {e}",
            config_key="config_path"
        )

    _config_cache = _expand_env_vars(raw_config)
    return _config_cache


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} doit être un nombre: {raw!r}", config_key=name)


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} doit être un entier: {raw!r}", config_key=name)


def apply_env_overrides(settings: GatewaySettings) -> GatewaySettings:
    """Applique les variables `MCP_*` sur des settings déjà construits."""
    port = _env_int("MCP_HTTP_PORT")
    if port is not None:
        settings.port = port

    host = os.getenv("MCP_HTTP_HOST")
    if host:
        settings.host = host

    command_line = os.getenv("MCP_SERVER_COMMAND")
    if command_line:
        parts = shlex.split(command_line)
        if not parts:
            raise ConfigurationError("MCP_SERVER_COMMAND est vide", config_key="MCP_SERVER_COMMAND")
        settings.server.command, settings.server.args = parts[0], parts[1:]

    timeout_s = _env_float("MCP_REQUEST_TIMEOUT_S")
    if timeout_s is not None:
        settings.request_timeout_s = timeout_s

    warmup_s = _env_float("MCP_WARMUP_S")
    if warmup_s is not None:
        settings.warmup_s = warmup_s

    stream_limit = _env_int("MCP_STDIO_STREAM_LIMIT")
    if stream_limit is not None:
        settings.stream_limit = clamp_stream_limit(stream_limit)

    return settings


def get_settings(config_path: str = None) -> GatewaySettings:
    """
    Retourne les settings en cache (les construit au premier appel).

    Returns:
        GatewaySettings résolus (TOML + environnement)
    """
    global _settings_cache

    if _settings_cache is None:
        config = load_config(config_path)
        settings = GatewaySettings.from_dict(config.get("gateway", {}))
        _settings_cache = apply_env_overrides(settings)
    return _settings_cache


def reload_settings(config_path: str = None) -> GatewaySettings:
    """Vide les caches et relit configuration + environnement."""
    global _config_cache, _settings_cache
    _config_cache = None
    _settings_cache = None
    return get_settings(config_path)
