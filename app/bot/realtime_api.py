"""
Client for the OpenAI Realtime API over WebSocket.

RealtimeConnector opens one authenticated WebSocket per call and returns it wrapped
in a RealtimeAudioClient, which knows how to configure the session and forward
caller audio. Reconnection is not handled here; the relay drives retries through
its ReconnectState.
"""

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Union
from urllib.parse import urlencode

import websockets
from websockets.exceptions import InvalidStatus

from app.config.constants import CLOSE_NORMAL, LOGGER_NAME, OPENAI_BETA_HEADER
from app.config.settings import RealtimeSettings
from app.models.openai_schemas import InputAudioBufferAppend, SessionConfig, SessionUpdateMessage

logger = logging.getLogger(LOGGER_NAME)

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering
WS_PING_INTERVAL = 20
WS_PING_TIMEOUT = 20

Message = Union[str, bytes]


def build_realtime_url(settings: RealtimeSettings) -> str:
    separator = "&" if "?" in settings.url else "?"
    return f"{settings.url}{separator}{urlencode({'model': settings.model})}"


def build_auth_headers(settings: RealtimeSettings) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {settings.api_key}",
        "OpenAI-Beta": OPENAI_BETA_HEADER,
    }
    if settings.organization:
        headers["OpenAI-Organization"] = settings.organization
    return headers


def build_session_update(settings: RealtimeSettings) -> SessionUpdateMessage:
    return SessionUpdateMessage(
        session=SessionConfig(
            voice=settings.voice,
            instructions=settings.instructions,
            temperature=settings.temperature,
        )
    )


def handshake_status(error: BaseException) -> Optional[int]:
    """Return the HTTP status of a rejected WebSocket handshake, if there was one."""
    if isinstance(error, InvalidStatus):
        return error.response.status_code
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


class RealtimeAudioClient:
    """
    One connected WebSocket to the OpenAI Realtime API.

    Iterating over the client yields raw messages until the socket closes. A normal
    close ends the iteration; an abnormal one raises ConnectionClosedError.
    """

    def __init__(self, ws: Any, url: str):
        self.ws = ws
        self.url = url
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_session_update(self, update: SessionUpdateMessage) -> None:
        logger.info(
            f"Sending session update (voice={update.session.voice}, "
            f"temperature={update.session.temperature})"
        )
        await self.ws.send(update.model_dump_json())

    async def append_audio(self, payload: str) -> None:
        await self.ws.send(InputAudioBufferAppend(audio=payload).model_dump_json())

    def __aiter__(self) -> AsyncIterator[Message]:
        return self.ws.__aiter__()

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close the socket. Later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing Realtime API WebSocket ({code} {reason})")
        await self.ws.close(code, reason)


class RealtimeConnector:
    """
    Opens Realtime API connections for a fixed configuration.

    The ``connect`` callable defaults to ``websockets.connect``; tests replace it
    with a fake that returns an in-memory socket or raises.
    """

    def __init__(
        self,
        settings: RealtimeSettings,
        connect: Optional[Callable[..., Awaitable[Any]]] = None,
    ):
        self.settings = settings
        self.url = build_realtime_url(settings)
        self.headers = build_auth_headers(settings)
        self._connect = connect or websockets.connect

    def session_update(self) -> SessionUpdateMessage:
        return build_session_update(self.settings)

    async def __call__(self) -> RealtimeAudioClient:
        logger.info(f"Connecting to OpenAI Realtime API with model: {self.settings.model}")
        logger.debug(f"WebSocket URL: {self.url}")
        ws = await self._connect(
            self.url,
            additional_headers=self.headers,
            open_timeout=self.settings.handshake_timeout,
            max_size=WS_MAX_SIZE,
            max_queue=WS_MAX_QUEUE,
            ping_interval=WS_PING_INTERVAL,
            ping_timeout=WS_PING_TIMEOUT,
            compression=None,  # Disable compression for lower latency
        )
        logger.info("Successfully connected to OpenAI Realtime API")
        return RealtimeAudioClient(ws, self.url)
