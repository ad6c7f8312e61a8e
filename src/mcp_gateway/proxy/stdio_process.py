"""mcp_gateway.proxy.stdio_process

Sous-processus MCP stdio (couche Proxy: toute l'I/O process/pipes est ici).

- Lance le serveur MCP avec stdin/stdout/stderr en pipes
- stdout: chunks bruts -> `LineFramer` -> callback `on_line`
- stderr: relayé vers le logging (jamais interprété)
- Écritures stdin sérialisées (une ligne = une écriture atomique)
- Détection de sortie -> `on_exit_detected(returncode)` immédiatement, puis
  `on_exit(returncode)` une fois stdout vidé (chacun appelé une seule fois)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import os
from typing import Callable

from ..core.constants import (
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_SHUTDOWN_TIMEOUT_S,
    DEFAULT_STREAM_LIMIT,
)
from ..core.exceptions import SubprocessSpawnError, SubprocessTerminatedError
from ..features.jsonrpc.framing import LineFramer

logger = logging.getLogger(__name__)

# Temps laissé à stdout pour se vider après la sortie du process
_DRAIN_TIMEOUT_S = 1.0


@dataclass(frozen=True)
class ServerCommand:
    command: str
    args: list[str]
    env: dict[str, str]

    @classmethod
    def from_settings(cls, server_settings) -> ServerCommand:
        """Construit la commande depuis `ServerSettings` (env fusionné sur os.environ)."""
        env = dict(os.environ) if server_settings.inherit_env else {}
        env.update(server_settings.env)
        return cls(
            command=server_settings.command,
            args=list(server_settings.args),
            env=env,
        )

    def describe(self) -> str:
        return " ".join([self.command, *self.args])


class StdioProcess:
    """Handle du serveur MCP: process OS + ses trois flux."""

    def __init__(
        self,
        command: ServerCommand,
        *,
        on_line: Callable[[str], None],
        on_exit: Callable[[int | None], None],
        on_exit_detected: Callable[[int | None], None] | None = None,
        max_line_bytes: int = DEFAULT_STREAM_LIMIT,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._command = command
        self._on_line = on_line
        self._on_exit = on_exit
        self._on_exit_detected = on_exit_detected
        self._framer = LineFramer(max_line_bytes=max_line_bytes)
        self._read_chunk_size = max(1, int(read_chunk_size))

        self._proc: asyncio.subprocess.Process | None = None
        self._write_lock = asyncio.Lock()
        self._stdout_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._exit_task: asyncio.Task[None] | None = None
        self._exited = False

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    @property
    def running(self) -> bool:
        return self._proc is not None and not self._exited and self._proc.returncode is None

    @property
    def dropped_lines(self) -> int:
        return self._framer.dropped_lines

    async def start(self) -> None:
        """Lance le process et les pompes stdout/stderr.

        Raises:
            SubprocessSpawnError: si l'exécutable ne peut pas être lancé.
        """
        if self._proc is not None:
            return

        try:
            self._proc = await asyncio.create_subprocess_exec(
                self._command.command,
                *self._command.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._command.env,
            )
        except (OSError, ValueError) as e:
            raise SubprocessSpawnError(
                f"Impossible de démarrer le serveur MCP: {e}",
                command=self._command.describe(),
            )

        logger.info(f"🚀 Serveur MCP lancé (pid={self._proc.pid}): {self._command.describe()}")

        self._stdout_task = asyncio.create_task(self._pump_stdout())
        self._stderr_task = asyncio.create_task(self._pump_stderr())
        self._exit_task = asyncio.create_task(self._watch_exit())

    async def write_line(self, data: bytes) -> None:
        """Écrit une ligne déjà encodée sur stdin (sérialisé par verrou).

        Raises:
            SubprocessTerminatedError: process absent/terminé ou pipe cassé.
        """
        async with self._write_lock:
            proc = self._proc
            if proc is None or proc.stdin is None or not self.running:
                raise SubprocessTerminatedError(
                    "Le serveur MCP n'est pas en cours d'exécution",
                    returncode=self.returncode,
                )
            try:
                proc.stdin.write(data)
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise SubprocessTerminatedError(
                    f"stdin du serveur MCP fermé: {e}",
                    returncode=self.returncode,
                )

    async def terminate(self, timeout_s: float = DEFAULT_SHUTDOWN_TIMEOUT_S) -> int | None:
        """Arrête le process (SIGTERM puis SIGKILL). Idempotent."""
        proc = self._proc
        if proc is None:
            return None

        if proc.returncode is None:
            if proc.stdin is not None:
                try:
                    proc.stdin.close()
                except OSError:
                    pass
            try:
                proc.terminate()
                await asyncio.wait_for(proc.wait(), timeout=timeout_s)
            except asyncio.TimeoutError:
                logger.warning(f"⚠️ Serveur MCP (pid={proc.pid}) ne répond pas à SIGTERM, kill")
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
            except ProcessLookupError:
                pass

        if self._exit_task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._exit_task), timeout=_DRAIN_TIMEOUT_S * 2)
            except asyncio.TimeoutError:
                self._exit_task.cancel()

        for task in (self._stdout_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        return proc.returncode

    async def _pump_stdout(self) -> None:
        assert self._proc is not None and self._proc.stdout is not None
        stream = self._proc.stdout

        try:
            while True:
                chunk = await stream.read(self._read_chunk_size)
                if not chunk:
                    break
                for line in self._framer.feed(chunk):
                    self._deliver(line)
            for line in self._framer.flush():
                self._deliver(line)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Erreur fatale de flux: on arrête le process, la sortie suit son cours
            logger.error(f"❌ Erreur lecture stdout MCP: {e}")
            if self._proc.returncode is None:
                try:
                    self._proc.terminate()
                except ProcessLookupError:
                    pass

    def _deliver(self, line: str) -> None:
        try:
            self._on_line(line)
        except Exception:
            logger.exception("Erreur dans le traitement d'une ligne MCP")

    async def _pump_stderr(self) -> None:
        assert self._proc is not None and self._proc.stderr is not None
        stream = self._proc.stderr

        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Ligne stderr au-delà de la limite asyncio: on jette le reliquat
                await stream.read(self._read_chunk_size)
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.info(f"[mcp stderr] {text}")

    async def _watch_exit(self) -> None:
        assert self._proc is not None
        returncode = await self._proc.wait()
        self._exited = True
        if self._on_exit_detected is not None:
            try:
                self._on_exit_detected(returncode)
            except Exception:
                logger.exception("Erreur dans le callback de détection de sortie MCP")

        # Laisse passer les réponses déjà écrites avant la sortie
        if self._stdout_task is not None and not self._stdout_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._stdout_task), timeout=_DRAIN_TIMEOUT_S)
            except asyncio.TimeoutError:
                pass

        if returncode == 0:
            logger.warning(f"🔚 Serveur MCP terminé (code: {returncode})")
        else:
            logger.error(f"🔚 Serveur MCP terminé (code: {returncode})")

        try:
            self._on_exit(returncode)
        except Exception:
            logger.exception("Erreur dans le callback de sortie MCP")
