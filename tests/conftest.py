"""
Configuration des tests pytest.
"""
import asyncio
import json
import os
import sys
from pathlib import Path

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from mcp_gateway.config.settings import GatewaySettings, ServerSettings  # noqa: E402
from mcp_gateway.core.exceptions import SubprocessSpawnError, SubprocessTerminatedError  # noqa: E402
from mcp_gateway.services.gateway import Gateway, GatewayState  # noqa: E402

FAKE_SERVER_PATH = Path(__file__).resolve().parent / "fixtures" / "fake_mcp_server_stdio.py"


def pytest_configure(config):
    """Déclare les marqueurs du projet."""
    config.addinivalue_line("markers", "unit: test unitaire sans sous-processus réel")
    config.addinivalue_line("markers", "integration: test lançant un vrai sous-processus")


def make_settings(*extra_args: str, **overrides) -> GatewaySettings:
    """Settings pointant sur le faux serveur MCP stdio (warmup nul)."""
    server = ServerSettings(
        command=sys.executable,
        args=[str(FAKE_SERVER_PATH), *extra_args],
        env={},
    )
    values = {
        "warmup_s": 0.0,
        "request_timeout_s": 5.0,
        "shutdown_timeout_s": 2.0,
        "server": server,
    }
    values.update(overrides)
    return GatewaySettings(**values)


# ---------------------------------------------------------------------------
# Faux sous-processus en mémoire
# ---------------------------------------------------------------------------

def well_behaved(msg: dict) -> list:
    """Répondeur MCP minimal: initialize, tools/list, tools/call."""
    if "id" not in msg:
        return []
    method = msg.get("method")
    req_id = msg["id"]
    if method == "initialize":
        return [{"jsonrpc": "2.0", "id": req_id, "result": {"serverInfo": {"name": "fake", "version": "1"}}}]
    if method == "tools/list":
        return [{"jsonrpc": "2.0", "id": req_id, "result": {"tools": [{"name": "list_x"}]}}]
    if method == "tools/call":
        name = msg["params"]["name"]
        arguments = msg["params"]["arguments"]
        if name == "list_x":
            return [{"jsonrpc": "2.0", "id": req_id, "result": {"count": 0}}]
        if name == "prompt_understanding":
            return [{"jsonrpc": "2.0", "id": req_id, "result": {"intent": "list", "prompt": arguments["prompt"]}}]
        return [{"jsonrpc": "2.0", "id": req_id, "error": {"code": -32000, "message": "tool failed"}}]
    return []


def silent(_msg: dict) -> list:
    return []


class FakeProcess:
    """Double de StdioProcess: enregistre stdin, répond via un `responder`."""

    def __init__(self, command, *, on_line, on_exit, max_line_bytes, read_chunk_size, responder,
                 on_exit_detected=None, fail_spawn=False):
        self.command = command
        self.on_line = on_line
        self.on_exit = on_exit
        self.on_exit_detected = on_exit_detected
        self.responder = responder
        self.fail_spawn = fail_spawn
        self.written: list = []
        self.started = False
        self.exited = False

    async def start(self) -> None:
        if self.fail_spawn:
            raise SubprocessSpawnError("Impossible de démarrer le serveur MCP: not found", command="missing")
        self.started = True

    async def write_line(self, data: bytes) -> None:
        if self.exited:
            raise SubprocessTerminatedError(returncode=0)
        msg = json.loads(data)
        self.written.append(msg)
        loop = asyncio.get_running_loop()
        for reply in self.responder(msg):
            line = reply if isinstance(reply, str) else json.dumps(reply)
            loop.call_soon(self.on_line, line)

    async def terminate(self, timeout_s: float = 5.0):
        if not self.exited:
            self.exit(-15)
        return -15

    def exit(self, code: int) -> None:
        self.exited = True
        self.detect_exit(code)
        self.on_exit(code)

    def detect_exit(self, code: int) -> None:
        """Sortie vue par le superviseur, stdout pas encore vidé."""
        if self.on_exit_detected is not None:
            self.on_exit_detected(code)

    def methods(self) -> list:
        return [m.get("method") for m in self.written]


def make_gateway(settings: GatewaySettings = None, responder=well_behaved, fail_spawn: bool = False):
    """Gateway branché sur un FakeProcess; retourne (gateway, process créés)."""
    created: list = []

    def factory(command, **kwargs):
        proc = FakeProcess(command, responder=responder, fail_spawn=fail_spawn, **kwargs)
        created.append(proc)
        return proc

    return Gateway(settings or make_settings(), process_factory=factory), created


async def wait_for_state(gateway: Gateway, state: GatewayState, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while gateway.state is not state:
        if loop.time() > deadline:
            raise AssertionError(f"état {state} non atteint (actuel: {gateway.state})")
        await asyncio.sleep(0.005)


@pytest.fixture
def settings_factory():
    """Fabrique de settings pour le faux serveur (arguments CLI supplémentaires)."""
    return make_settings


@pytest.fixture
def gateway_factory():
    return make_gateway


@pytest.fixture
def state_waiter():
    return wait_for_state


@pytest.fixture
def responders():
    return {"well_behaved": well_behaved, "silent": silent}
