"""
WebSocket connection manager for Twilio Media Streams.

This module implements the server side of the media stream WebSocket, providing the
infrastructure to:
- Accept one media WebSocket per phone call
- Create a CallRelay for it from the process configuration
- Feed every received frame to the relay in arrival order
- Close both legs of the call and unregister it when either side goes away

Each call gets its own relay; nothing but the health registry is shared between calls.
"""

import logging
import uuid
from typing import Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect

from app.bot.realtime_api import RealtimeConnector
from app.bot.twilio_realtime_bridge import CallRelay
from app.config.constants import LOGGER_NAME
from app.config.settings import Settings
from app.models.call_session import CallSession, CallSessionManager

logger = logging.getLogger(LOGGER_NAME)

ConnectorFactory = Callable[[], RealtimeConnector]


class WebSocketManager:
    """Accepts Twilio media WebSockets and runs one CallRelay per call.

    The connector factory defaults to a RealtimeConnector built from the settings;
    tests pass a factory returning a connector backed by a fake socket.
    """

    def __init__(self, settings: Settings, connector_factory: Optional[ConnectorFactory] = None):
        self.settings = settings
        self.session_manager = CallSessionManager()
        self._connector_factory = connector_factory or (lambda: RealtimeConnector(settings.realtime))

    def create_relay(self, websocket: WebSocket) -> CallRelay:
        """Build the relay for a newly accepted media WebSocket."""
        connector = self._connector_factory()
        session = CallSession(connection_id=uuid.uuid4().hex)
        return CallRelay(
            websocket,
            self.settings.realtime,
            connector=connector,
            session=session,
            session_update=connector.session_update(),
        )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a media WebSocket connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        This method:
        1. Accepts the WebSocket connection and starts the upstream leg
        2. Passes every text frame to the relay until the call is closing
        3. Closes the relay on stop, client disconnect or unexpected errors
        """
        await websocket.accept()
        relay = self.create_relay(websocket)
        session = relay.session
        self.session_manager.add_session(session)
        logger.info(f"Client connected to media stream ({session.connection_id})")

        relay.start()
        try:
            while not relay.is_closing:
                data = await websocket.receive_text()
                await relay.handle_inbound_message(data)
        except WebSocketDisconnect as e:
            logger.info(f"Client disconnected (code {e.code}) for stream {session.stream_sid}")
        except RuntimeError as e:
            # receive_text raises once the relay has closed the socket itself
            if not relay.is_closing:
                logger.error(f"Error in media stream WebSocket: {e}", exc_info=True)
        except Exception as e:
            logger.error(f"Error in media stream WebSocket: {e}", exc_info=True)
        finally:
            await relay.close()
            self.session_manager.remove_session(session.connection_id)
            logger.info(f"Media stream connection closed ({session.connection_id})")

    @property
    def active_calls(self) -> int:
        return len(self.session_manager)
