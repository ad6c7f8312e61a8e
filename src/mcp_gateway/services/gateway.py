"""mcp_gateway.services.gateway

Gateway HTTP -> MCP stdio: objet unique qui possède le sous-processus, la table
de corrélation et l'état de disponibilité.

Machine d'états:

    not_started -> starting -> awaiting_handshake -> ready
         \\------------\\----------------\\---------------\\--> terminated

Aucune transition automatique depuis `terminated`: le gateway est fail-stop,
le redémarrage relève d'un gestionnaire de processus externe.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from ..config.settings import GatewaySettings
from ..core.constants import (
    JSONRPC_METHOD_NOT_FOUND,
    LOG_PREVIEW_CHARS,
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    PROMPT_ANALYSIS_TOOL,
)
from ..core.exceptions import (
    EnvelopeDecodeError,
    GatewayError,
    NotReadyError,
    SubprocessSpawnError,
    SubprocessTerminatedError,
)
from ..features.jsonrpc.codec import Envelope, decode_envelope, encode_envelope
from ..features.jsonrpc.correlator import RequestCorrelator
from ..proxy.stdio_process import ServerCommand, StdioProcess

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    AWAITING_HANDSHAKE = "awaiting_handshake"
    READY = "ready"
    TERMINATED = "terminated"


ProcessFactory = Callable[..., StdioProcess]


class Gateway:
    """Pont entre la façade HTTP et un serveur MCP stdio supervisé."""

    def __init__(
        self,
        settings: GatewaySettings,
        *,
        process_factory: ProcessFactory = StdioProcess,
    ):
        self.settings = settings
        self._process_factory = process_factory
        self._process: Optional[StdioProcess] = None
        self._state = GatewayState.NOT_STARTED
        self._ready = False
        self._handshake_task: Optional[asyncio.Task] = None
        self._background_tasks: Set[asyncio.Task] = set()
        self._correlator = RequestCorrelator(
            self._send_line,
            default_timeout_s=settings.request_timeout_s,
        )
        self.server_info: Optional[Dict[str, Any]] = None
        self.returncode: Optional[int] = None
        self.started_at: Optional[datetime] = None
        self.invalid_lines: int = 0

    # ------------------------------------------------------------------ #
    # État
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def pending_count(self) -> int:
        return self._correlator.pending_count

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    def _set_state(self, state: GatewayState) -> None:
        if state is self._state:
            return
        logger.info(f"Gateway MCP: {self._state.value} -> {state.value}")
        self._state = state
        self._ready = state is GatewayState.READY

    # ------------------------------------------------------------------ #
    # Cycle de vie
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Lance le serveur MCP puis planifie le handshake `initialize`.

        Un échec de spawn n'est pas levé: le gateway passe `terminated` et la
        façade HTTP continue de répondre au health check.
        """
        if self._state is not GatewayState.NOT_STARTED:
            return

        self._set_state(GatewayState.STARTING)
        command = ServerCommand.from_settings(self.settings.server)
        logger.info(f"🚀 Démarrage du serveur MCP: {command.describe()}")

        process = self._process_factory(
            command,
            on_line=self._on_line,
            on_exit=self._on_exit,
            on_exit_detected=self._on_exit_detected,
            max_line_bytes=self.settings.stream_limit,
            read_chunk_size=self.settings.read_chunk_size,
        )
        self._process = process

        try:
            await process.start()
        except SubprocessSpawnError as e:
            logger.error(f"❌ {e.message}")
            self._set_state(GatewayState.TERMINATED)
            return

        self.started_at = datetime.now(timezone.utc)
        # La sortie a pu être détectée pendant le spawn
        if self._state is GatewayState.STARTING:
            self._handshake_task = asyncio.create_task(self._handshake())

    async def _handshake(self) -> None:
        if self.settings.warmup_s > 0:
            await asyncio.sleep(self.settings.warmup_s)
        if self._state is not GatewayState.STARTING:
            return

        self._set_state(GatewayState.AWAITING_HANDSHAKE)
        logger.info("🔧 Initialisation du serveur MCP...")
        params = {
            "protocolVersion": self.settings.protocol_version,
            "capabilities": {"tools": {}},
            "clientInfo": self.settings.client_info(),
        }

        try:
            result = await self._correlator.call(METHOD_INITIALIZE, params)
        except GatewayError as e:
            logger.error(f"❌ Initialisation du serveur MCP échouée: {e}")
            return

        if self._state is not GatewayState.AWAITING_HANDSHAKE:
            return

        self.server_info = result if isinstance(result, dict) else {"result": result}
        self._set_state(GatewayState.READY)
        logger.info(f"✅ Serveur MCP initialisé: {self._describe_server()}")

        try:
            await self._send_line(encode_envelope(Envelope.notification(METHOD_INITIALIZED)))
        except SubprocessTerminatedError as e:
            logger.warning(f"⚠️ Notification {METHOD_INITIALIZED} non envoyée: {e.message}")

    def _describe_server(self) -> str:
        info = (self.server_info or {}).get("serverInfo")
        if isinstance(info, dict):
            return f"{info.get('name', '?')} {info.get('version', '')}".strip()
        return "serverInfo absent"

    async def stop(self) -> None:
        """Arrête le serveur MCP et règle les appels en vol. Idempotent."""
        if self._handshake_task is not None and not self._handshake_task.done():
            self._handshake_task.cancel()
            try:
                await self._handshake_task
            except asyncio.CancelledError:
                pass

        for task in list(self._background_tasks):
            task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

        if self._process is not None:
            await self._process.terminate(timeout_s=self.settings.shutdown_timeout_s)

        self._correlator.fail_all(
            SubprocessTerminatedError("gateway arrêté", returncode=self.returncode)
        )
        self._set_state(GatewayState.TERMINATED)

    # ------------------------------------------------------------------ #
    # Callbacks du sous-processus
    # ------------------------------------------------------------------ #

    def _on_line(self, line: str) -> None:
        try:
            envelope = decode_envelope(line)
        except EnvelopeDecodeError as e:
            self.invalid_lines += 1
            logger.warning(f"⚠️ Ligne MCP ignorée ({e.message}): {line[:LOG_PREVIEW_CHARS]}")
            return

        if envelope.is_response:
            self._correlator.resolve(envelope)
        elif envelope.is_request:
            task = asyncio.get_running_loop().create_task(self._reject_server_request(envelope))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
        else:
            logger.debug(f"Notification MCP reçue: {envelope.method}")

    async def _reject_server_request(self, envelope: Envelope) -> None:
        # Requêtes serveur -> client (roots/list, sampling...): non supportées
        logger.info(f"Requête serveur MCP non supportée: {envelope.method}")
        reply = Envelope.error_response(
            envelope.id,
            code=JSONRPC_METHOD_NOT_FOUND,
            message=f"Method not supported by gateway: {envelope.method}",
        )
        try:
            await asyncio.wait_for(
                self._send_line(encode_envelope(reply)),
                timeout=self.settings.request_timeout_s,
            )
        except (GatewayError, asyncio.TimeoutError) as e:
            logger.warning(f"⚠️ Réponse à la requête serveur {envelope.method} non envoyée: {e}")

    def _on_exit_detected(self, returncode: Optional[int]) -> None:
        # Disponibilité coupée avant la vidange de stdout: plus aucun nouvel appel
        self.returncode = returncode
        self._set_state(GatewayState.TERMINATED)

    def _on_exit(self, returncode: Optional[int]) -> None:
        self.returncode = returncode
        self._set_state(GatewayState.TERMINATED)

        if self._handshake_task is not None and not self._handshake_task.done():
            self._handshake_task.cancel()

        self._correlator.fail_all(
            SubprocessTerminatedError(
                f"subprocess terminated (code: {returncode})",
                returncode=returncode,
            )
        )

    async def _send_line(self, data: bytes) -> None:
        if self._process is None:
            raise SubprocessTerminatedError("Le serveur MCP n'est pas lancé")
        await self._process.write_line(data)

    # ------------------------------------------------------------------ #
    # Opérations exposées à la façade HTTP
    # ------------------------------------------------------------------ #

    def _require_ready(self) -> None:
        if not self._ready:
            raise NotReadyError(state=self._state.value)

    async def call(self, method: str, params: Any = None, *, timeout_s: Optional[float] = None) -> Any:
        """Appel corrélé générique, refusé tant que le handshake n'a pas abouti."""
        self._require_ready()
        return await self._correlator.call(method, params if params is not None else {}, timeout_s=timeout_s)

    async def list_tools(self, *, timeout_s: Optional[float] = None) -> List[Any]:
        result = await self.call(METHOD_TOOLS_LIST, {}, timeout_s=timeout_s)
        if isinstance(result, dict):
            tools = result.get("tools")
            if isinstance(tools, list):
                return tools
        return []

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        *,
        timeout_s: Optional[float] = None,
    ) -> Any:
        logger.info(f"🔧 Appel outil MCP: {name}")
        return await self.call(
            METHOD_TOOLS_CALL,
            {"name": name, "arguments": arguments or {}},
            timeout_s=timeout_s,
        )

    async def analyze_prompt(self, prompt: str, *, timeout_s: Optional[float] = None) -> Any:
        logger.info(f"🔍 Analyse de prompt ({len(prompt)} caractères)")
        return await self.call_tool(PROMPT_ANALYSIS_TOOL, {"prompt": prompt}, timeout_s=timeout_s)

    def health(self) -> Dict[str, Any]:
        """Instantané local de l'état (n'appelle jamais le sous-processus)."""
        return {
            "status": "ok",
            "ready": self._ready,
            "state": self._state.value,
            "pending": self._correlator.pending_count,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
