"""mcp_gateway.features.jsonrpc.codec

Enveloppes JSON-RPC 2.0 échangées avec le serveur MCP (1 message par ligne).

- `decode_envelope()`: ligne -> `Envelope` (lève `EnvelopeDecodeError`)
- `encode_envelope()`: `Envelope` -> une ligne UTF-8 terminée par un seul `\\n`

Le contenu de `params` / `result` / `error` n'est jamais interprété.
"""

from __future__ import annotations

from dataclasses import dataclass
import json

from ...core.constants import JSONRPC_VERSION, LOG_PREVIEW_CHARS
from ...core.exceptions import EnvelopeDecodeError

_MISSING = object()


@dataclass(frozen=True)
class Envelope:
    """Un message JSON-RPC: appel, notification ou réponse."""

    id: str | int | float | None = None
    method: str | None = None
    params: object = None
    result: object = None
    error: object = None
    version: str = JSONRPC_VERSION
    # Distingue `"result": null` d'une absence de `result`
    has_result: bool = False

    @classmethod
    def request(cls, request_id: str | int, method: str, params: object = None) -> Envelope:
        return cls(id=request_id, method=method, params=params)

    @classmethod
    def notification(cls, method: str, params: object = None) -> Envelope:
        return cls(method=method, params=params)

    @classmethod
    def response(cls, request_id: object, result: object) -> Envelope:
        return cls(id=request_id, result=result, has_result=True)

    @classmethod
    def error_response(
        cls,
        request_id: object,
        *,
        code: int,
        message: str,
        data: object | None = None,
    ) -> Envelope:
        error: dict[str, object] = {"code": int(code), "message": message}
        if data is not None:
            error["data"] = data
        return cls(id=request_id, error=error)

    @property
    def is_request(self) -> bool:
        return self.method is not None and self.id is not None

    @property
    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    @property
    def is_response(self) -> bool:
        return self.method is None and (self.has_result or self.error is not None)

    @property
    def is_error(self) -> bool:
        return self.is_response and self.error is not None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"jsonrpc": self.version}
        if self.method is not None:
            if self.id is not None:
                payload["id"] = self.id
            payload["method"] = self.method
            if self.params is not None:
                payload["params"] = self.params
            return payload

        payload["id"] = self.id
        if self.error is not None:
            payload["error"] = self.error
        else:
            payload["result"] = self.result
        return payload


def _valid_id(value: object) -> bool:
    # JSON-RPC 2.0: id is string | number | null (bool exclu).
    return value is None or (isinstance(value, (str, int, float)) and not isinstance(value, bool))


def decode_envelope(line: str | bytes) -> Envelope:
    """Parse une ligne cadrée en enveloppe.

    Raises:
        EnvelopeDecodeError: JSON invalide, pas un objet, marqueur `jsonrpc`
            absent ou message ni appel ni réponse.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")

    preview = line[:LOG_PREVIEW_CHARS]
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as e:
        raise EnvelopeDecodeError(f"JSON invalide: {e.msg}", line_preview=preview)

    if not isinstance(obj, dict):
        raise EnvelopeDecodeError("Enveloppe attendue (objet JSON)", line_preview=preview)
    if obj.get("jsonrpc") != JSONRPC_VERSION:
        raise EnvelopeDecodeError("Marqueur jsonrpc 2.0 absent", line_preview=preview)

    req_id = obj.get("id")
    if not _valid_id(req_id):
        raise EnvelopeDecodeError("id JSON-RPC invalide", line_preview=preview)

    method = obj.get("method")
    if method is not None:
        if not isinstance(method, str):
            raise EnvelopeDecodeError("method doit être une chaîne", line_preview=preview)
        return Envelope(id=req_id, method=method, params=obj.get("params"))

    result = obj.get("result", _MISSING)
    if result is not _MISSING:
        return Envelope(id=req_id, result=result, has_result=True)

    if obj.get("error") is not None:
        return Envelope(id=req_id, error=obj["error"])

    raise EnvelopeDecodeError("Ni appel ni réponse (method/result/error absents)", line_preview=preview)


def encode_envelope(envelope: Envelope) -> bytes:
    """Sérialise une enveloppe en une ligne (exactement un `\\n` final)."""
    return (json.dumps(envelope.to_dict(), ensure_ascii=False) + "\n").encode("utf-8")
