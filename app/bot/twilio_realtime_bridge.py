"""
Bridge module relaying Twilio Media Streams audio to the OpenAI Realtime API.

One CallRelay exists per accepted media WebSocket. It owns the inbound Twilio
socket and the upstream Realtime API connection and forwards audio both ways:

- Twilio ``media`` frames become ``input_audio_buffer.append`` messages upstream.
- ``response.audio.delta`` messages become Twilio ``media`` frames tagged with the
  stream identifier captured from the ``start`` event.

The upstream leg reconnects with exponential backoff. When the retry budget is
exhausted the inbound socket is closed with 1011 so Twilio ends the call instead
of streaming into silence.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from app.bot.realtime_api import RealtimeAudioClient, handshake_status
from app.bot.reconnect import ReconnectState
from app.config.constants import (
    CLOSE_NORMAL,
    CLOSE_UPSTREAM_UNAVAILABLE,
    LOG_EVENT_TYPES,
    LOGGER_NAME,
    MESSAGE_TYPE_AUDIO_DELTA,
    MESSAGE_TYPE_ERROR,
    TWILIO_EVENT_MEDIA,
    TWILIO_EVENT_START,
    TWILIO_EVENT_STOP,
)
from app.config.settings import RealtimeSettings
from app.models.call_session import CallSession
from app.models.openai_schemas import ResponseAudioDelta, SessionUpdateMessage, describe_error
from app.models.twilio_schemas import MediaEvent, OutboundMediaMessage, StartEvent

logger = logging.getLogger(LOGGER_NAME)

Connector = Callable[[], Awaitable[RealtimeAudioClient]]
Sleep = Callable[[float], Awaitable[Any]]


class CallRelay:
    """
    Relay between one Twilio media stream and one Realtime API session.

    This class handles:
    - Opening and configuring the upstream connection, with bounded retries
    - Translating and forwarding audio in both directions, in arrival order
    - Closing each connection exactly once when either side goes away
    """

    def __init__(
        self,
        websocket: WebSocket,
        settings: RealtimeSettings,
        connector: Connector,
        session: CallSession,
        session_update: SessionUpdateMessage,
        sleep: Sleep = asyncio.sleep,
    ):
        self.websocket = websocket
        self.settings = settings
        self.session = session
        self.reconnect = ReconnectState(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
        )
        self._connector = connector
        self._session_update = session_update
        self._sleep = sleep
        self._upstream: Optional[RealtimeAudioClient] = None
        self._upstream_open = False
        self._upstream_task: Optional[asyncio.Task] = None
        self._inbound_closed = False
        self._closed = False

        self.handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            TWILIO_EVENT_START: self.handle_start,
            TWILIO_EVENT_MEDIA: self.handle_media,
            TWILIO_EVENT_STOP: self.handle_stop,
        }

    @property
    def is_closing(self) -> bool:
        return self.session.is_closing

    @property
    def upstream_open(self) -> bool:
        return self._upstream_open and self._upstream is not None

    @property
    def upstream_task(self) -> Optional[asyncio.Task]:
        return self._upstream_task

    def start(self) -> asyncio.Task:
        """Start the upstream connection loop for this call."""
        if self._upstream_task is None:
            self._upstream_task = asyncio.create_task(self._run_upstream())
        return self._upstream_task

    # Inbound (Twilio -> OpenAI)

    async def handle_inbound_message(self, raw: str) -> None:
        """
        Dispatch one text frame received from Twilio.

        Malformed frames are logged and discarded without affecting the session.
        """
        if self.is_closing:
            return

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding malformed Twilio frame: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Discarding Twilio frame that is not an object: {type(data).__name__}")
            return

        event = data.get("event")
        if not isinstance(event, str):
            logger.warning(f"Discarding Twilio frame without an event name: {event!r}")
            return
        handler = self.handlers.get(event)
        if handler is None:
            logger.debug(f"Received Twilio event: {event}")
            return

        try:
            await handler(data)
        except ValidationError as e:
            logger.warning(f"Discarding invalid Twilio {event} frame: {e.error_count()} validation error(s)")

    async def handle_start(self, data: Dict[str, Any]) -> None:
        start = StartEvent(**data).start
        self.session.activate(start.streamSid, start.callSid)
        logger.info(f"Stream started with SID: {start.streamSid} (call {start.callSid})")

    async def handle_media(self, data: Dict[str, Any]) -> None:
        payload = MediaEvent(**data).media.payload
        upstream = self._upstream
        if not self._upstream_open or upstream is None:
            self.session.frames_dropped += 1
            logger.debug("Dropping caller audio: upstream connection not open")
            return

        try:
            await upstream.append_audio(payload)
        except ConnectionClosed as e:
            # The upstream loop sees the same closure and decides about reconnecting.
            self._upstream_open = False
            self.session.frames_dropped += 1
            logger.warning(f"Upstream closed while sending audio: {e}")
            return
        self.session.frames_forwarded += 1

    async def handle_stop(self, data: Dict[str, Any]) -> None:
        logger.info(f"Stream stopped: {self.session.stream_sid}")
        self.session.begin_closing()
        await self._close_upstream(CLOSE_NORMAL, "Stream ended by Twilio")

    # Upstream (OpenAI -> Twilio)

    async def _run_upstream(self) -> None:
        """Connect, serve and reconnect the upstream leg until the session closes."""
        while not self.is_closing:
            self.reconnect.begin_attempt()
            logger.info(
                f"Attempting to connect to OpenAI WebSocket "
                f"(attempt {self.reconnect.attempt + 1}/{self.reconnect.max_retries})"
            )
            try:
                upstream = await self._connector()
            except Exception as e:
                self._log_connect_error(e)
                if not await self._back_off():
                    return
                continue

            if self.is_closing:
                await upstream.close(CLOSE_NORMAL, "Call already ended")
                return

            try:
                await self._serve_upstream(upstream)
            except ConnectionClosed as e:
                logger.warning(f"OpenAI WebSocket closed unexpectedly: {e}")
            except Exception as e:
                logger.error(f"Error on OpenAI WebSocket: {e}", exc_info=True)
                await self._close_upstream(CLOSE_UPSTREAM_UNAVAILABLE, "Relay error")
            finally:
                if self._upstream is upstream:
                    self._upstream = None
                    self._upstream_open = False

            if self.is_closing:
                return
            if not await self._back_off():
                return

    async def _serve_upstream(self, upstream: RealtimeAudioClient) -> None:
        self._upstream = upstream
        await upstream.send_session_update(self._session_update)
        self._upstream_open = True
        self.reconnect.on_connect_success()
        logger.info("Connected to OpenAI WebSocket")

        async for message in upstream:
            if self.is_closing:
                break
            await self.handle_upstream_message(message)

        if not self.is_closing:
            logger.warning("OpenAI WebSocket closed by the server")

    async def _back_off(self) -> bool:
        """Wait before the next attempt. Returns False when the session must end."""
        if self.is_closing:
            return False
        delay = self.reconnect.on_connect_error()
        if delay is None:
            logger.error(
                f"Max retry attempts ({self.reconnect.max_retries}) reached for stream "
                f"{self.session.stream_sid}; closing call"
            )
            await self._fail_session()
            return False
        logger.info(f"Retrying OpenAI connection in {delay:.1f} seconds")
        await self._sleep(delay)
        return not self.is_closing

    async def _fail_session(self) -> None:
        self.session.begin_closing()
        await self._close_inbound(CLOSE_UPSTREAM_UNAVAILABLE, "Unable to establish upstream connection")

    def _log_connect_error(self, error: Exception) -> None:
        status = handshake_status(error)
        target = getattr(self._connector, "url", None)
        if status in (401, 403):
            logger.error(
                f"OpenAI rejected the credentials (HTTP {status}) for {target}; "
                f"check OPENAI_API_KEY and OPENAI_ORG_ID"
            )
        elif status is not None:
            logger.error(f"OpenAI WebSocket handshake failed with HTTP {status} for {target}")
        elif isinstance(error, (asyncio.TimeoutError, OSError)):
            logger.error(f"Network error connecting to {target}: {type(error).__name__}: {error}")
        else:
            logger.error(f"Failed to connect to {target}: {type(error).__name__}: {error}")

    async def handle_upstream_message(self, raw: Any) -> None:
        """Forward audio deltas to Twilio; log everything else."""
        if self.is_closing or not raw:
            return

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Discarding malformed OpenAI message: {e}")
            return
        if not isinstance(data, dict):
            logger.warning("Discarding OpenAI message that is not an object")
            return

        message_type = data.get("type")
        if message_type == MESSAGE_TYPE_AUDIO_DELTA:
            try:
                delta = ResponseAudioDelta(**data).delta
            except ValidationError as e:
                logger.warning(f"Discarding invalid audio delta: {e.error_count()} validation error(s)")
                return
            if delta:
                await self._send_downstream(delta)
        elif message_type == MESSAGE_TYPE_ERROR:
            try:
                summary = describe_error(data)
            except ValidationError:
                summary = str(data.get("error"))
            logger.error(f"Received error from OpenAI: {summary}")
        elif message_type in LOG_EVENT_TYPES:
            logger.info(f"Received event: {message_type}")
        else:
            logger.debug(f"Received message of type: {message_type}")

    async def _send_downstream(self, payload: str) -> None:
        if self.is_closing:
            return
        stream_sid = self.session.stream_sid
        if not stream_sid:
            logger.debug("Dropping audio delta received before the stream started")
            return
        if not self._inbound_is_open():
            return

        message = OutboundMediaMessage.for_stream(stream_sid, payload)
        try:
            await self.websocket.send_text(message.model_dump_json())
        except WebSocketDisconnect as e:
            logger.info(f"Twilio WebSocket gone (code {e.code}) while sending audio; ending call")
            self._inbound_closed = True
            self.session.begin_closing()
            await self._close_upstream(CLOSE_NORMAL, "Twilio WebSocket closed")
            return
        except (RuntimeError, OSError) as e:
            logger.warning(f"Failed to send audio to Twilio: {e}")
            return
        self.session.deltas_forwarded += 1

    # Shutdown

    def _inbound_is_open(self) -> bool:
        return (
            not self._inbound_closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def _close_inbound(self, code: int, reason: str) -> None:
        if self._inbound_closed:
            return
        should_close = self._inbound_is_open()
        self._inbound_closed = True
        if not should_close:
            return
        logger.info(f"Closing Twilio WebSocket with code {code}: {reason}")
        try:
            await self.websocket.close(code=code, reason=reason)
        except RuntimeError as e:
            logger.debug(f"Twilio WebSocket already closed: {e}")

    async def _close_upstream(self, code: int, reason: str) -> None:
        upstream, self._upstream = self._upstream, None
        self._upstream_open = False
        if upstream is None:
            return
        try:
            await upstream.close(code, reason)
        except Exception as e:
            logger.warning(f"Error closing OpenAI WebSocket: {e}")

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "Call ended") -> None:
        """
        Close both legs of the call. Safe to call more than once.

        Called by the connection manager when Twilio disconnects, after a stop event
        and when the receive loop fails.
        """
        if self._closed:
            return
        self._closed = True
        self.session.begin_closing()

        await self._close_upstream(code, reason)

        task = self._upstream_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._close_inbound(code, reason)
        self.session.mark_closed()
        logger.info(
            f"Call relay closed for stream {self.session.stream_sid}: "
            f"{self.session.frames_forwarded} frames forwarded, "
            f"{self.session.frames_dropped} dropped, "
            f"{self.session.deltas_forwarded} audio deltas returned "
            f"in {self.session.duration:.1f}s"
        )
