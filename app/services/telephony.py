"""
Twilio call-control integration.

This module keeps the Twilio SDK behind a narrow interface so the relay and its tests
never depend on the concrete vendor client:

- build_stream_twiml renders the TwiML that makes Twilio open the media WebSocket.
- CallPlacer is the ``place_call(to, from_, callback_url) -> call_id`` interface.
- TwilioCallPlacer implements it with ``twilio.rest.Client``.
"""

import logging
from typing import Optional, Protocol

from twilio.twiml.voice_response import Connect, VoiceResponse

from app.config.constants import LOGGER_NAME, MEDIA_STREAM_PATH, STATUS_CALLBACK_EVENTS
from app.config.settings import TwilioSettings

logger = logging.getLogger(LOGGER_NAME)

# Parameters announced to the media stream; they reach the relay in start.customParameters
STREAM_PARAMETERS = {
    "mode": "voice",
    "format": "g711_ulaw",
    "timeout": "3600",
    "sample_rate": "8000",
    "channels": "1",
}

CONNECTING_GREETING = "Please wait while I connect you to the AI assistant."


class TelephonyNotConfiguredError(RuntimeError):
    """Raised when call placement is requested without Twilio credentials."""


class CallPlacer(Protocol):
    def place_call(self, to: str, from_: str, callback_url: str) -> str:
        """Place an outbound call and return its call id."""


def stream_url_for(domain: str) -> str:
    return f"wss://{domain}{MEDIA_STREAM_PATH}"


def status_callback_url_for(domain: str) -> str:
    return f"https://{domain}/status-callback"


def build_stream_twiml(
    stream_url: str,
    greeting: Optional[str] = None,
    pause_seconds: int = 0,
) -> str:
    """
    Render TwiML that connects the call to the media stream WebSocket.

    Args:
        stream_url: wss:// URL of the media stream endpoint
        greeting: Optional sentence spoken before connecting
        pause_seconds: Optional pause before connecting

    Returns:
        str: The TwiML document
    """
    response = VoiceResponse()
    if greeting:
        response.say(greeting, voice="alice")
    if pause_seconds > 0:
        response.pause(length=pause_seconds)

    connect = Connect()
    stream = connect.stream(url=stream_url)
    for name, value in STREAM_PARAMETERS.items():
        stream.parameter(name=name, value=value)
    response.append(connect)
    return str(response)


def empty_twiml() -> str:
    return str(VoiceResponse())


class TwilioCallPlacer:
    """Places outbound calls whose TwiML connects the callee to the relay."""

    def __init__(self, client, stream_url: str, greeting: Optional[str] = CONNECTING_GREETING):
        self.client = client
        self.stream_url = stream_url
        self.greeting = greeting

    def place_call(self, to: str, from_: str, callback_url: str) -> str:
        twiml = build_stream_twiml(self.stream_url, greeting=self.greeting, pause_seconds=1)
        logger.info(f"Initiating outbound call to {to}")
        call = self.client.calls.create(
            twiml=twiml,
            to=to,
            from_=from_,
            status_callback=callback_url,
            status_callback_event=STATUS_CALLBACK_EVENTS,
            status_callback_method="POST",
        )
        logger.info(f"Call initiated successfully: {call.sid}")
        return str(call.sid)


def build_twilio_client(settings: TwilioSettings):
    """Create the Twilio REST client, raising if credentials are missing."""
    if not settings.account_sid or not settings.auth_token:
        raise TelephonyNotConfiguredError("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required")

    from twilio.rest import Client

    return Client(settings.account_sid, settings.auth_token)


def build_call_placer(settings: TwilioSettings, client=None) -> TwilioCallPlacer:
    """Create a TwilioCallPlacer for the configured public domain."""
    if not settings.is_configured:
        raise TelephonyNotConfiguredError(
            "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and PHONE_NUMBER_FROM are required"
        )
    if not settings.domain:
        raise TelephonyNotConfiguredError("DOMAIN is required to place outbound calls")
    return TwilioCallPlacer(client or build_twilio_client(settings), stream_url_for(settings.domain))
