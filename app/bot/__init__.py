"""
Bot module relaying Twilio calls to the OpenAI Realtime API.

Key components:
- CallRelay: Per-call relay between a Twilio media stream and a Realtime API session,
  forwarding caller audio upstream and synthesized speech back into the call.
- RealtimeConnector / RealtimeAudioClient: Open and wrap the authenticated Realtime
  API WebSocket.
- ReconnectState: Exponential backoff state machine for the upstream leg.

Usage example:
```python
from app.bot import CallRelay, RealtimeConnector
from app.models.call_session import CallSession

connector = RealtimeConnector(settings.realtime)
relay = CallRelay(
    websocket,
    settings.realtime,
    connector=connector,
    session=CallSession(connection_id="abc"),
    session_update=connector.session_update(),
)
relay.start()
await relay.handle_inbound_message(frame_text)
await relay.close()
```
"""

from app.bot.realtime_api import RealtimeAudioClient, RealtimeConnector
from app.bot.reconnect import ConnectionState, ReconnectState
from app.bot.twilio_realtime_bridge import CallRelay

__all__ = [
    "CallRelay",
    "ConnectionState",
    "RealtimeAudioClient",
    "RealtimeConnector",
    "ReconnectState",
]
