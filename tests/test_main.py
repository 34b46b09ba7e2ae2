import json

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from app.bot.realtime_api import build_session_update
from app.config.settings import RealtimeSettings, Settings
from app.main import APP_NAME, app, create_app, get_call_placer
from app.websocket_manager import WebSocketManager

from conftest import FakeConnector, FakeUpstreamSocket


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


@pytest.fixture
def placer():
    placer = MagicMock()
    placer.place_call.return_value = "CA123"
    return placer


@pytest.fixture
def call_client(settings, placer):
    test_app = create_app(settings)
    test_app.dependency_overrides[get_call_placer] = lambda: placer
    return TestClient(test_app)


def test_module_app_is_configured():
    assert app.title == APP_NAME
    assert app.state.settings.realtime.api_key
    assert isinstance(app.state.websocket_manager, WebSocketManager)


def test_health_check(client):
    """Test the health check endpoint returns correct response"""
    response = client.get("/health")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["status"] == "healthy"
    assert response_json["openai_api_key_configured"] is True
    assert response_json["telephony_configured"] is True
    assert response_json["active_calls"] == 0


def test_root_endpoint(client):
    """Test the root endpoint returns the correct API information"""
    response = client.get("/")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["name"] == APP_NAME
    assert response_json["version"] == "1.0.0"
    assert "/media-stream" in response_json["endpoints"]
    assert "/incoming-call" in response_json["endpoints"]
    assert "/health" in response_json["endpoints"]


@pytest.mark.parametrize("method", ["get", "post"])
def test_incoming_call_returns_stream_twiml(client, method):
    response = getattr(client, method)("/incoming-call")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert '<Stream url="wss://relay.example.com/media-stream">' in response.text


def test_incoming_call_uses_request_host_without_domain():
    test_app = create_app(Settings(realtime=RealtimeSettings(api_key="k")))
    response = TestClient(test_app).post("/incoming-call", headers={"host": "abc.ngrok.app"})

    assert '<Stream url="wss://abc.ngrok.app/media-stream">' in response.text


def test_make_call(call_client, placer):
    response = call_client.post("/call", json={"to": "+15551234567"})

    assert response.status_code == 200
    assert response.json() == {"call_sid": "CA123", "to": "+15551234567"}
    placer.place_call.assert_called_once_with(
        "+15551234567", "+15550000000", "https://relay.example.com/status-callback"
    )


@pytest.mark.parametrize("body", [{}, {"to": ""}, {"to": "   "}])
def test_make_call_requires_number(call_client, placer, body):
    response = call_client.post("/call", json=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Phone number is required"
    placer.place_call.assert_not_called()


def test_make_call_reports_provider_errors(call_client, placer):
    placer.place_call.side_effect = RuntimeError("invalid number")

    response = call_client.post("/call", json={"to": "+15551234567"})

    assert response.status_code == 500
    assert response.json()["detail"] == "invalid number"


def test_make_call_without_twilio_credentials():
    test_app = create_app(Settings(realtime=RealtimeSettings(api_key="k")))
    response = TestClient(test_app).post("/call", json={"to": "+15551234567"})

    assert response.status_code == 503


@pytest.mark.parametrize("path", ["/status-callback", "/status"])
def test_status_callback_always_acknowledges(client, path):
    response = client.post(
        path,
        data={"CallSid": "CA123", "CallStatus": "completed", "CallDuration": "42"},
    )

    assert response.status_code == 200
    assert response.text.endswith("<Response />")


def test_status_callback_without_form(client):
    response = client.post("/status-callback", content=b"", headers={"content-type": "text/plain"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_websocket_endpoint_delegates_to_manager(settings):
    manager = MagicMock()
    manager.handle_websocket = AsyncMock()
    test_app = create_app(settings, websocket_manager=manager)
    websocket = MagicMock()
    websocket.app = test_app

    websocket_route = next(route for route in test_app.routes if route.path == "/media-stream")
    await websocket_route.endpoint(websocket)

    manager.handle_websocket.assert_called_once_with(websocket)


def test_media_stream_round_trip(settings):
    upstream = FakeUpstreamSocket()
    manager = WebSocketManager(
        settings,
        connector_factory=lambda: FakeConnector([upstream], session_update=build_session_update(settings.realtime)),
    )
    client = TestClient(create_app(settings, websocket_manager=manager))

    with client.websocket_connect("/media-stream") as ws:
        ws.send_text(json.dumps({"event": "start", "start": {"streamSid": "SID1", "callSid": "CA1"}}))
        ws.send_text(json.dumps({"event": "media", "media": {"payload": "AAAA"}}))
        ws.send_text(json.dumps({"event": "stop", "streamSid": "SID1"}))
        message = ws.receive()

    assert message["type"] == "websocket.close"
    assert message["code"] == 1000
    assert json.loads(upstream.sent[0])["type"] == "session.update"
    assert json.loads(upstream.sent[1]) == {"type": "input_audio_buffer.append", "audio": "AAAA"}
    assert upstream.close_calls == [(1000, "Stream ended by Twilio")]
    assert manager.active_calls == 0
