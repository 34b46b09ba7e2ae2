"""
Pydantic models for Twilio Media Streams message schemas.

This module defines structured data models for the JSON frames exchanged over a
bidirectional Twilio Media Stream WebSocket, providing type validation for the
events the relay acts on and a serializer for the media frames it sends back.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TwilioBaseEvent(BaseModel):
    """Base model for every frame received from Twilio."""

    model_config = ConfigDict(extra="allow")

    event: str = Field(..., description="Event discriminator")
    sequenceNumber: Optional[str] = Field(None, description="Frame sequence number")
    streamSid: Optional[str] = Field(None, description="Stream identifier")


class StreamStart(BaseModel):
    """Payload of the start event."""

    model_config = ConfigDict(extra="allow")

    streamSid: str = Field(..., description="Stream identifier for this call leg")
    callSid: Optional[str] = Field(None, description="Twilio call identifier")
    accountSid: Optional[str] = None
    tracks: List[str] = Field(default_factory=list)
    customParameters: Dict[str, str] = Field(default_factory=dict)
    mediaFormat: Optional[Dict[str, Any]] = None

    @field_validator("streamSid")
    def validate_stream_sid(cls, v):
        """Validate that the stream identifier is not blank."""
        if not v.strip():
            raise ValueError("streamSid cannot be empty")
        return v


class StartEvent(TwilioBaseEvent):
    """Model for the start event that opens a media stream."""

    event: Literal["start"]
    start: StreamStart


class MediaPayload(BaseModel):
    """Audio carried by a media event."""

    model_config = ConfigDict(extra="allow")

    payload: str = Field(..., description="Base64-encoded G.711 mu-law audio")
    track: Optional[str] = None
    chunk: Optional[str] = None
    timestamp: Optional[str] = None


class MediaEvent(TwilioBaseEvent):
    """Model for a media event carrying caller audio."""

    event: Literal["media"]
    media: MediaPayload


class StopEvent(TwilioBaseEvent):
    """Model for the stop event that ends a media stream."""

    event: Literal["stop"]


class OutboundMedia(BaseModel):
    """Audio sent back to Twilio."""

    payload: str = Field(..., description="Base64-encoded G.711 mu-law audio")


class OutboundMediaMessage(BaseModel):
    """Model for a media frame sent from the relay to Twilio."""

    event: Literal["media"] = "media"
    streamSid: str = Field(..., description="Stream identifier captured from the start event")
    media: OutboundMedia

    @classmethod
    def for_stream(cls, stream_sid: str, payload: str) -> "OutboundMediaMessage":
        return cls(streamSid=stream_sid, media=OutboundMedia(payload=payload))
