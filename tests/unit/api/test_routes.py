"""Tests unitaires: façade HTTP (FastAPI + httpx.ASGITransport).

Le Gateway est réel, le sous-processus est un FakeProcess (conftest).
`ASGITransport` ne déclenche pas le lifespan: le gateway est démarré à la main.
"""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from mcp_gateway.main import create_app
from mcp_gateway.services.gateway import GatewayState


async def _client_for(gateway) -> httpx.AsyncClient:
    app = create_app(gateway=gateway, start_gateway=False)
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture
async def ready_client(gateway_factory, state_waiter) -> AsyncGenerator[tuple, None]:
    gateway, created = gateway_factory()
    await gateway.start()
    await state_waiter(gateway, GatewayState.READY)
    async with await _client_for(gateway) as client:
        yield client, created[0]
    await gateway.stop()


@pytest_asyncio.fixture
async def not_ready_client(gateway_factory, state_waiter, responders) -> AsyncGenerator[tuple, None]:
    gateway, created = gateway_factory(responder=responders["silent"])
    await gateway.start()
    await state_waiter(gateway, GatewayState.AWAITING_HANDSHAKE)
    async with await _client_for(gateway) as client:
        yield client, created[0]
    await gateway.stop()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_health_reports_readiness(ready_client, not_ready_client):
    client, _proc = ready_client
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["ready"] is True
    assert "timestamp" in body

    client, _proc = not_ready_client
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ready"] is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_tools_returns_tools(ready_client):
    client, _proc = ready_client
    resp = await client.get("/tools")
    assert resp.status_code == 200
    assert resp.json() == {"tools": [{"name": "list_x"}]}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_tool_success_is_tagged_with_tool_name(ready_client):
    client, _proc = ready_client
    resp = await client.post("/tools/call", json={"name": "list_x", "arguments": {}})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "result": {"count": 0}, "toolName": "list_x"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_tool_remote_failure_returns_500_tagged(ready_client):
    client, _proc = ready_client
    resp = await client.post("/tools/call", json={"name": "boom"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "tool failed"
    assert body["code"] == "remote_error"
    assert body["toolName"] == "boom"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_tool_timeout_returns_timeout_error(gateway_factory, state_waiter, settings_factory, responders):
    def never_answers_tools(msg: dict) -> list:
        return responders["well_behaved"](msg) if msg.get("method") == "initialize" else []

    gateway, _created = gateway_factory(settings_factory(request_timeout_s=0.05), responder=never_answers_tools)
    await gateway.start()
    await state_waiter(gateway, GatewayState.READY)

    async with await _client_for(gateway) as client:
        resp = await client.post("/tools/call", json={"name": "list_x", "arguments": {}})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "timeout", "code": "timeout", "toolName": "list_x"}
    await gateway.stop()


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "body",
    [{}, {"arguments": {}}, {"name": ""}, {"name": "x", "arguments": "not-an-object"}],
)
async def test_call_tool_invalid_body_is_400_without_subprocess_traffic(ready_client, body):
    client, proc = ready_client
    before = len(proc.written)
    resp = await client.post("/tools/call", json=body)
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert len(proc.written) == before


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_tool_non_json_body_is_400(ready_client):
    client, _proc = ready_client
    resp = await client.post("/tools/call", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_not_ready_returns_503_and_never_reaches_subprocess(not_ready_client):
    client, proc = not_ready_client

    resp = await client.get("/tools")
    assert resp.status_code == 503
    assert "error" in resp.json()

    resp = await client.post("/tools/call", json={"name": "list_x"})
    assert resp.status_code == 503
    assert resp.json()["toolName"] == "list_x"

    resp = await client.post("/prompt/analyze", json={"prompt": "hello"})
    assert resp.status_code == 503

    assert proc.methods() == ["initialize"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_analyze_prompt(ready_client):
    client, proc = ready_client
    resp = await client.post("/prompt/analyze", json={"prompt": "list my buckets"})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "analysis": {"intent": "list", "prompt": "list my buckets"},
        "prompt": "list my buckets",
    }
    assert proc.written[-1]["params"]["name"] == "prompt_understanding"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_analyze_prompt_missing_prompt_is_400(ready_client):
    client, _proc = ready_client
    resp = await client.post("/prompt/analyze", json={})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_calls_each_get_their_own_result(gateway_factory, state_waiter):
    gateway, _created = gateway_factory()
    await gateway.start()
    await state_waiter(gateway, GatewayState.READY)

    async with await _client_for(gateway) as client:
        responses = await asyncio.gather(
            *[client.post("/tools/call", json={"name": "list_x"}) for _ in range(10)],
            client.get("/tools"),
            client.post("/prompt/analyze", json={"prompt": "p"}),
        )

    assert all(r.status_code == 200 for r in responses)
    assert all(r.json()["result"] == {"count": 0} for r in responses[:10])
    assert responses[10].json() == {"tools": [{"name": "list_x"}]}
    assert responses[11].json()["analysis"]["prompt"] == "p"
    assert gateway.pending_count == 0
    await gateway.stop()
