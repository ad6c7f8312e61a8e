"""mcp_gateway.features.jsonrpc.framing

Découpage d'un flux d'octets en lignes complètes (NDJSON).

Responsabilités (couche Features):
- Accumuler les chunks bruts lus sur stdout du sous-processus
- Rendre chaque segment terminé par `\\n` (sans le `\\n`)
- Conserver le segment final incomplet pour le chunk suivant

Ce module est **sans I/O** et ne suspend jamais: il tourne jusqu'au bout à chaque
événement de lecture.
"""

from __future__ import annotations

import logging

from ...core.constants import DEFAULT_STREAM_LIMIT

logger = logging.getLogger(__name__)


class LineFramer:
    """Framer ligne par ligne tolérant à n'importe quel découpage de chunks.

    Le buffer reste en bytes: le décodage UTF-8 n'a lieu qu'une fois la ligne
    complète, donc un caractère multi-octets coupé entre deux chunks est
    reconstitué correctement.
    """

    def __init__(self, *, max_line_bytes: int = DEFAULT_STREAM_LIMIT) -> None:
        self._max_line_bytes = max(1, int(max_line_bytes))
        self._buffer = bytearray()
        # True tant qu'on jette la fin d'une ligne trop longue
        self._discarding = False
        self.dropped_lines: int = 0

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[str]:
        """Ajoute un chunk et retourne les lignes complètes qu'il termine."""
        if not chunk:
            return []

        self._buffer.extend(chunk)
        lines: list[str] = []

        while True:
            newline_at = self._buffer.find(b"\n")
            if newline_at < 0:
                break

            raw = bytes(self._buffer[:newline_at])
            del self._buffer[: newline_at + 1]

            if self._discarding:
                self._discarding = False
                continue

            line = self._decode(raw)
            if line is not None:
                lines.append(line)

        if len(self._buffer) > self._max_line_bytes:
            if not self._discarding:
                self.dropped_lines += 1
                logger.warning(
                    f"⚠️ Ligne stdout > {self._max_line_bytes} octets sans fin de ligne, ignorée "
                    f"(augmenter MCP_STDIO_STREAM_LIMIT)"
                )
            self._discarding = True
            self._buffer.clear()

        return lines

    def flush(self) -> list[str]:
        """Fin de flux: rend le reliquat éventuel comme dernière ligne."""
        raw = bytes(self._buffer)
        self._buffer.clear()
        discarding, self._discarding = self._discarding, False
        if discarding:
            return []
        line = self._decode(raw)
        return [line] if line is not None else []

    @staticmethod
    def _decode(raw: bytes) -> str | None:
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        if not raw.strip():
            return None
        return raw.decode("utf-8", errors="replace")
