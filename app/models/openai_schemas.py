"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the messages the relay exchanges with the
OpenAI Realtime API: the session configuration sent once per connection, the audio
append messages sent upstream and the audio deltas received back.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.config.constants import AUDIO_FORMAT_G711_ULAW, MAX_TEMPERATURE, MIN_TEMPERATURE


class RealtimeBaseMessage(BaseModel):
    """Base model for Realtime API messages."""

    model_config = ConfigDict(extra="allow")

    type: str


class TurnDetection(BaseModel):
    """Turn detection configuration."""

    type: str = "server_vad"


class SessionConfig(BaseModel):
    """Session parameters sent with session.update."""

    turn_detection: TurnDetection = Field(default_factory=TurnDetection)
    input_audio_format: str = AUDIO_FORMAT_G711_ULAW
    output_audio_format: str = AUDIO_FORMAT_G711_ULAW
    voice: str
    instructions: str
    modalities: List[str] = Field(default_factory=lambda: ["text", "audio"])
    temperature: float = Field(..., ge=MIN_TEMPERATURE, le=MAX_TEMPERATURE)


class SessionUpdateMessage(BaseModel):
    """Configuration message sent immediately after the upstream socket opens."""

    type: Literal["session.update"] = "session.update"
    session: SessionConfig


class InputAudioBufferAppend(BaseModel):
    """Caller audio forwarded to the Realtime API."""

    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str = Field(..., description="Base64-encoded audio")


class ResponseAudioDelta(RealtimeBaseMessage):
    """Incremental chunk of synthesized speech."""

    type: Literal["response.audio.delta"]
    delta: str = Field(..., description="Base64-encoded audio")
    response_id: Optional[str] = None
    item_id: Optional[str] = None


class RealtimeErrorDetail(BaseModel):
    """Error body reported by the Realtime API."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None
    param: Optional[str] = None


class RealtimeErrorMessage(RealtimeBaseMessage):
    """Error event from the Realtime API."""

    type: Literal["error"]
    error: RealtimeErrorDetail = Field(default_factory=RealtimeErrorDetail)
    event_id: Optional[str] = None


def describe_error(data: Dict[str, Any]) -> str:
    """Return a one-line summary of an error event for logging."""
    error = RealtimeErrorMessage(**data).error
    parts = [part for part in (error.type, error.code, error.message) if part]
    return " / ".join(parts) or "unknown error"
