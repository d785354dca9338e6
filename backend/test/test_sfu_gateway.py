"""SFU gateway and session route tests (httpx.MockTransport, no network)."""

import json

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from modules.gateways import SFUConfig, SFUGateway, SFUError
from routes.session import router as session_router, init_sfu_gateway


def _gateway(handler) -> SFUGateway:
    config = SFUConfig(APP_ID="app-1", APP_TOKEN="secret", API_BASE="https://sfu.test/v1", TIMEOUT=None)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SFUGateway(config=config, client=client)


@pytest.mark.asyncio
async def test_create_session_uses_bearer_token():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(201, json={"sessionId": "sfu-123"})

    gateway = _gateway(handler)

    assert await gateway.create_session() == "sfu-123"
    request = captured["request"]
    assert request.method == "POST"
    assert str(request.url) == "https://sfu.test/v1/apps/app-1/sessions/new"
    assert request.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_create_session_without_id_is_error():
    gateway = _gateway(lambda request: httpx.Response(200, json={}))
    with pytest.raises(SFUError):
        await gateway.create_session()


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status():
    gateway = _gateway(lambda request: httpx.Response(403, json={"errorCode": "forbidden"}))

    with pytest.raises(SFUError) as exc_info:
        await gateway.create_session()

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == {"errorCode": "forbidden"}


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    gateway = _gateway(handler)
    with pytest.raises(SFUError) as exc_info:
        await gateway.create_session()
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_non_object_body_raises():
    gateway = _gateway(lambda request: httpx.Response(200, json=["unexpected"]))

    with pytest.raises(SFUError) as exc_info:
        await gateway.create_session()
    assert exc_info.value.detail == ["unexpected"]


@pytest.mark.asyncio
async def test_push_tracks_sends_offer():
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"sessionDescription": {"type": "answer", "sdp": "v=0 answer"}})

    gateway = _gateway(handler)
    tracks = [{"location": "local", "trackName": "audio", "mid": "0"}]

    answer = await gateway.push_tracks("sfu-1", "v=0 offer", tracks)

    assert answer["sessionDescription"]["type"] == "answer"
    assert captured["path"] == "/v1/apps/app-1/sessions/sfu-1/tracks/new"
    assert captured["body"] == {"sessionDescription": {"type": "offer", "sdp": "v=0 offer"}, "tracks": tracks}


@pytest.mark.asyncio
async def test_pull_tracks_has_no_offer():
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"requiresImmediateRenegotiation": True})

    gateway = _gateway(handler)
    remote = [{"location": "remote", "sessionId": "sfu-2", "trackName": "audio"}]

    data = await gateway.pull_tracks("sfu-1", remote)

    assert data["requiresImmediateRenegotiation"] is True
    assert captured["body"] == {"tracks": remote}


@pytest.mark.asyncio
async def test_renegotiate_puts_answer():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    gateway = _gateway(handler)
    await gateway.renegotiate("sfu-1", "v=0 answer")

    assert captured["method"] == "PUT"
    assert captured["path"].endswith("/sessions/sfu-1/renegotiate")
    assert captured["body"] == {"sessionDescription": {"type": "answer", "sdp": "v=0 answer"}}


# ============================================================
# /api/session routes
# ============================================================

def _client(handler) -> TestClient:
    init_sfu_gateway(_gateway(handler))
    app = FastAPI()
    app.include_router(session_router)
    return TestClient(app)


def test_route_create_session():
    client = _client(lambda request: httpx.Response(200, json={"sessionId": "sfu-9"}))

    response = client.post("/api/session/new")

    assert response.status_code == 200
    assert response.json() == {"sessionId": "sfu-9"}


def test_route_pull_builds_remote_track():
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"tracks": []})

    client = _client(handler)
    response = client.post("/api/session/sfu-1/pull", json={"remoteSessionId": "sfu-2", "trackName": "video"})

    assert response.status_code == 200
    assert captured["body"] == {"tracks": [{"location": "remote", "sessionId": "sfu-2", "trackName": "video"}]}


def test_route_failure_is_500_with_error():
    client = _client(lambda request: httpx.Response(502, text="bad gateway"))

    response = client.post("/api/session/sfu-1/push", json={"offer": {"sdp": "v=0"}, "tracks": []})

    assert response.status_code == 500
    assert "error" in response.json()


def test_route_non_object_body_is_500_with_error():
    client = _client(lambda request: httpx.Response(200, json=[1, 2]))

    response = client.post("/api/session/new")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create session"}
