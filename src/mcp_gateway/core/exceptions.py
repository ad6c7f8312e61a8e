"""
Exceptions personnalisées pour le MCP stdio Gateway.
"""


class GatewayError(Exception):
    """Exception de base pour toutes les erreurs du gateway."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(GatewayError):
    """Erreur de configuration (fichier invalide, valeur invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class NotReadyError(GatewayError):
    """Appel refusé: le handshake `initialize` n'a pas abouti."""

    def __init__(self, message: str = "MCP server not ready", state: str = None):
        super().__init__(
            message=message,
            code="not_ready",
            details={"state": state} if state else {}
        )


class CallTimeoutError(GatewayError):
    """Aucune réponse reçue avant la deadline de l'appel."""

    def __init__(self, method: str = None, timeout_s: float = None, request_id: str = None):
        super().__init__(
            message="timeout",
            code="timeout",
            details={
                "method": method,
                "timeout_s": timeout_s,
                "request_id": request_id,
            }
        )
        self.method = method
        self.timeout_s = timeout_s


class RemoteCallError(GatewayError):
    """Le sous-processus a répondu avec un objet `error` JSON-RPC."""

    def __init__(self, error: object, method: str = None):
        if isinstance(error, dict):
            message = str(error.get("message") or "remote error")
            rpc_code = error.get("code")
        else:
            message = str(error)
            rpc_code = None
        super().__init__(
            message=message,
            code="remote_error",
            details={"method": method, "rpc_code": rpc_code}
        )
        self.error = error
        self.rpc_code = rpc_code


class SubprocessSpawnError(GatewayError):
    """Impossible de lancer le serveur MCP."""

    def __init__(self, message: str, command: str = None):
        super().__init__(
            message=message,
            code="spawn_error",
            details={"command": command} if command else {}
        )


class SubprocessTerminatedError(GatewayError):
    """Le serveur MCP s'est arrêté (ou son stdin est fermé)."""

    def __init__(self, message: str = "subprocess terminated", returncode: int = None):
        super().__init__(
            message=message,
            code="subprocess_terminated",
            details={"returncode": returncode} if returncode is not None else {}
        )
        self.returncode = returncode


class EnvelopeDecodeError(GatewayError):
    """Ligne reçue qui n'est pas une enveloppe JSON-RPC 2.0 valide."""

    def __init__(self, message: str, line_preview: str = None):
        details = {}
        if line_preview:
            details["preview"] = line_preview[:100]
        super().__init__(
            message=message,
            code="invalid_envelope",
            details=details
        )
