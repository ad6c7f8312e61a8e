"""mcp_gateway.features.jsonrpc.correlator

Table de corrélation requête/réponse pour un canal JSON-RPC multiplexé.

Chaque appel sortant reçoit un identifiant unique (uuid4), un `asyncio.Future`
réglé exactement une fois et une deadline. La table est la seule source de
vérité pour « cet appel est-il encore en vol ».

Discipline mono-écrivain: `dispatch`, `resolve`, l'expiration des deadlines et
`fail_all` s'exécutent tous sur la boucle asyncio; aucun verrou n'est requis
pour la table elle-même.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable
import uuid

from ...core.constants import DEFAULT_REQUEST_TIMEOUT_S
from ...core.exceptions import CallTimeoutError, GatewayError, RemoteCallError
from .codec import Envelope, encode_envelope

logger = logging.getLogger(__name__)

SendLine = Callable[[bytes], Awaitable[None]]


def _new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PendingCall:
    """Appel en vol: détruit dès qu'il est réglé (réponse, timeout ou flush)."""

    request_id: str
    method: str
    future: asyncio.Future
    deadline: float
    timer: asyncio.TimerHandle | None = None


class RequestCorrelator:
    """Associe chaque réponse JSON-RPC à l'appel qui l'attend."""

    def __init__(
        self,
        send: SendLine,
        *,
        default_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
        id_factory: Callable[[], str] = _new_request_id,
    ) -> None:
        self._send = send
        self._default_timeout_s = default_timeout_s
        self._id_factory = id_factory
        self._pending: dict[str, PendingCall] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    def _next_id(self) -> str:
        # Un id n'est jamais réutilisé tant que son appel est vivant.
        request_id = self._id_factory()
        while request_id in self._pending:
            request_id = self._id_factory()
        return request_id

    async def dispatch(
        self,
        method: str,
        params: object = None,
        *,
        timeout_s: float | None = None,
    ) -> asyncio.Future:
        """Enregistre l'appel, écrit l'enveloppe et retourne son future.

        L'écriture est bornée par la deadline de l'appel: si stdin reste bloqué
        jusqu'à l'échéance, le future retourné est déjà réglé en timeout.

        Raises:
            GatewayError: si l'écriture sur stdin échoue (l'entrée est retirée).
        """
        loop = asyncio.get_running_loop()
        timeout = self._default_timeout_s if timeout_s is None else timeout_s
        request_id = self._next_id()

        pending = PendingCall(
            request_id=request_id,
            method=method,
            future=loop.create_future(),
            deadline=loop.time() + timeout,
        )
        pending.timer = loop.call_later(timeout, self._expire, request_id, timeout)
        self._pending[request_id] = pending

        envelope = Envelope.request(request_id, method, params)
        logger.debug(f"📤 MCP requête {method} id={request_id}")
        try:
            await asyncio.wait_for(
                self._send(encode_envelope(envelope)),
                timeout=max(0.0, pending.deadline - loop.time()),
            )
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Écriture MCP {method} id={request_id} bloquée jusqu'à la deadline")
            self._expire(request_id, timeout)
        except GatewayError:
            self._discard(request_id)
            raise

        return pending.future

    async def call(
        self,
        method: str,
        params: object = None,
        *,
        timeout_s: float | None = None,
    ) -> object:
        """Dispatch puis attend le règlement; retourne le `result` JSON-RPC."""
        future = await self.dispatch(method, params, timeout_s=timeout_s)
        return await future

    def resolve(self, envelope: Envelope) -> bool:
        """Règle l'appel correspondant à une réponse.

        Returns:
            False si l'id n'est pas (ou plus) en vol: réponse tardive ignorée.
        """
        if not isinstance(envelope.id, str):
            logger.debug(f"Réponse MCP avec id non corrélable ignorée: {envelope.id!r}")
            return False

        pending = self._pending.pop(envelope.id, None)
        if pending is None:
            logger.debug(f"Réponse MCP tardive ou inconnue ignorée: id={envelope.id}")
            return False

        if pending.timer is not None:
            pending.timer.cancel()

        if pending.future.done():
            return True

        if envelope.error is not None:
            logger.debug(f"📥 MCP erreur {pending.method} id={envelope.id}")
            pending.future.set_exception(RemoteCallError(envelope.error, method=pending.method))
            pending.future.add_done_callback(_consume_exception)
        else:
            logger.debug(f"📥 MCP réponse {pending.method} id={envelope.id}")
            pending.future.set_result(envelope.result)
        return True

    def fail_all(self, exc: BaseException) -> int:
        """Règle tous les appels en vol avec `exc` et vide la table."""
        pending_calls = list(self._pending.values())
        self._pending.clear()

        for pending in pending_calls:
            if pending.timer is not None:
                pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(exc)
                # Évite "Future exception was never retrieved" si l'appelant a disparu
                pending.future.add_done_callback(_consume_exception)

        if pending_calls:
            logger.warning(f"⚠️ {len(pending_calls)} appel(s) MCP en vol échoué(s): {exc}")
        return len(pending_calls)

    def _expire(self, request_id: str, timeout_s: float) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return

        logger.warning(f"⏱️ Timeout MCP {pending.method} id={request_id} après {timeout_s}s")
        if not pending.future.done():
            pending.future.set_exception(
                CallTimeoutError(method=pending.method, timeout_s=timeout_s, request_id=request_id)
            )
            pending.future.add_done_callback(_consume_exception)

    def _discard(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        if pending.timer is not None:
            pending.timer.cancel()
        if not pending.future.done():
            pending.future.cancel()


def _consume_exception(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
