"""
Models module for message schemas and call state.

Key components:
- twilio_schemas: Pydantic models for Twilio Media Streams frames.
- openai_schemas: Pydantic models for the OpenAI Realtime API messages the relay uses.
- call_session: Per-call session state and the registry of live calls.
"""

from app.models.call_session import CallSession, CallSessionManager, SessionState
from app.models.openai_schemas import (
    InputAudioBufferAppend,
    ResponseAudioDelta,
    SessionConfig,
    SessionUpdateMessage,
)
from app.models.twilio_schemas import (
    MediaEvent,
    OutboundMediaMessage,
    StartEvent,
    StopEvent,
)
