"""
Core: constantes, exceptions et logging du gateway.
"""
from .exceptions import (
    GatewayError,
    ConfigurationError,
    NotReadyError,
    CallTimeoutError,
    RemoteCallError,
    SubprocessSpawnError,
    SubprocessTerminatedError,
    EnvelopeDecodeError,
)
from .logging import configure_logging

__all__ = [
    "GatewayError",
    "ConfigurationError",
    "NotReadyError",
    "CallTimeoutError",
    "RemoteCallError",
    "SubprocessSpawnError",
    "SubprocessTerminatedError",
    "EnvelopeDecodeError",
    "configure_logging",
]
