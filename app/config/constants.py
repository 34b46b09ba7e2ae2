"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol names and default values and making it
easier to maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "call_relay"

# OpenAI Realtime API defaults
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_VOICE = "alloy"
DEFAULT_TEMPERATURE = 0.8
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
DEFAULT_SYSTEM_MESSAGE = (
    "You are a helpful AI assistant talking to a caller over the phone. "
    "Keep responses brief and engaging, and confirm important details "
    "before finishing the conversation."
)
OPENAI_BETA_HEADER = "realtime=v1"

# Audio format shared by Twilio Media Streams and the Realtime session
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"

# Upstream reconnection defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 10.0  # seconds
DEFAULT_HANDSHAKE_TIMEOUT = 30.0  # seconds

# Server defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5050
MEDIA_STREAM_PATH = "/media-stream"

# WebSocket close codes
CLOSE_NORMAL = 1000
CLOSE_UPSTREAM_UNAVAILABLE = 1011

# Twilio Media Streams event types
TWILIO_EVENT_CONNECTED = "connected"
TWILIO_EVENT_START = "start"
TWILIO_EVENT_MEDIA = "media"
TWILIO_EVENT_STOP = "stop"
TWILIO_EVENT_MARK = "mark"

# OpenAI Realtime API message types
MESSAGE_TYPE_SESSION_UPDATE = "session.update"
MESSAGE_TYPE_INPUT_AUDIO_APPEND = "input_audio_buffer.append"
MESSAGE_TYPE_AUDIO_DELTA = "response.audio.delta"
MESSAGE_TYPE_ERROR = "error"
MESSAGE_TYPE_SESSION_CREATED = "session.created"
MESSAGE_TYPE_SESSION_UPDATED = "session.updated"

# Upstream events worth an INFO log line; anything else is logged at DEBUG
LOG_EVENT_TYPES = [
    "error",
    "response.content.done",
    "rate_limits.updated",
    "response.done",
    "input_audio_buffer.committed",
    "input_audio_buffer.speech_stopped",
    "input_audio_buffer.speech_started",
    "session.created",
    "session.updated",
]

# Twilio status callback events subscribed for outbound calls
STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]
