import os

# app.main builds the application at import time and needs an API key.
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import asyncio
import logging

import pytest
from fastapi import WebSocketDisconnect
from fastapi.websockets import WebSocketState

from app.bot.realtime_api import RealtimeAudioClient
from app.config.settings import RealtimeSettings, Settings, TwilioSettings


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def realtime_settings():
    return RealtimeSettings(
        api_key="sk-test",
        model="gpt-4o-realtime-preview-test",
        max_retries=5,
        base_delay=1.0,
        max_delay=10.0,
    )


@pytest.fixture
def twilio_settings():
    return TwilioSettings(
        account_sid="AC123",
        auth_token="secret",
        phone_number_from="+15550000000",
        domain="relay.example.com",
    )


@pytest.fixture
def settings(realtime_settings, twilio_settings):
    return Settings(realtime=realtime_settings, twilio=twilio_settings)


_CLOSED = object()


class FakeInboundSocket:
    """Stands in for the Starlette WebSocket Twilio connects to."""

    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent = []
        self.closes = []
        self.accepted = False
        self.send_error = None

    async def accept(self):
        self.accepted = True

    async def receive_text(self):
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError('WebSocket is not connected. Need to call "accept" first.')
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_text(self, data):
        if self.send_error is not None:
            raise self.send_error
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.sent.append(data)

    async def close(self, code=1000, reason=None):
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.closes.append((code, reason))
        self.application_state = WebSocketState.DISCONNECTED
        self.client_state = WebSocketState.DISCONNECTED
        self.incoming.put_nowait(WebSocketDisconnect(code))

    def push(self, frame):
        self.incoming.put_nowait(frame)


class FakeUpstreamSocket:
    """In-memory Realtime API socket with the parts of the websockets API the client uses."""

    def __init__(self):
        self.sent = []
        self.close_calls = []
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, message):
        self.sent.append(message)

    async def _messages(self):
        while True:
            item = await self.incoming.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    def __aiter__(self):
        return self._messages()

    async def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        self.incoming.put_nowait(_CLOSED)

    def push(self, message):
        self.incoming.put_nowait(message)

    def drop(self, error):
        """Simulate the server going away."""
        self.incoming.put_nowait(error)


class FakeConnector:
    """Connector returning scripted sockets, or raising scripted errors, in order."""

    url = "wss://realtime.test/v1/realtime?model=test"

    def __init__(self, outcomes, session_update=None):
        self.outcomes = list(outcomes)
        self.calls = 0
        self._session_update = session_update

    def session_update(self):
        return self._session_update

    async def __call__(self):
        self.calls += 1
        if not self.outcomes:
            raise OSError("no more scripted connections")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return RealtimeAudioClient(outcome, self.url)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


async def wait_until(predicate, timeout=2.0):
    """Yield to the event loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def inbound():
    return FakeInboundSocket()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
