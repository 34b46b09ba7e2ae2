from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.config.settings import TwilioSettings
from app.services.telephony import (
    TelephonyNotConfiguredError,
    TwilioCallPlacer,
    build_call_placer,
    build_stream_twiml,
    empty_twiml,
    status_callback_url_for,
    stream_url_for,
)


def test_urls_for_domain():
    assert stream_url_for("relay.example.com") == "wss://relay.example.com/media-stream"
    assert status_callback_url_for("relay.example.com") == "https://relay.example.com/status-callback"


def test_stream_twiml_connects_media_stream():
    twiml = build_stream_twiml("wss://relay.example.com/media-stream")

    assert twiml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<Connect>" in twiml
    assert '<Stream url="wss://relay.example.com/media-stream">' in twiml
    assert '<Parameter name="format" value="g711_ulaw" />' in twiml
    assert "<Say" not in twiml


def test_stream_twiml_with_greeting():
    twiml = build_stream_twiml("wss://relay.example.com/media-stream", greeting="Hello", pause_seconds=1)

    assert '<Say voice="alice">Hello</Say>' in twiml
    assert '<Pause length="1" />' in twiml
    assert twiml.index("<Say") < twiml.index("<Connect>")


def test_empty_twiml():
    assert empty_twiml().endswith("<Response />")


def test_place_call():
    client = MagicMock()
    client.calls.create.return_value = SimpleNamespace(sid="CA123")
    placer = TwilioCallPlacer(client, "wss://relay.example.com/media-stream")

    call_sid = placer.place_call("+15551234567", "+15550000000", "https://relay.example.com/status-callback")

    assert call_sid == "CA123"
    kwargs = client.calls.create.call_args.kwargs
    assert kwargs["to"] == "+15551234567"
    assert kwargs["from_"] == "+15550000000"
    assert kwargs["status_callback"] == "https://relay.example.com/status-callback"
    assert kwargs["status_callback_event"] == ["initiated", "ringing", "answered", "completed"]
    assert kwargs["status_callback_method"] == "POST"
    assert "wss://relay.example.com/media-stream" in kwargs["twiml"]


def test_place_call_propagates_errors():
    client = MagicMock()
    client.calls.create.side_effect = RuntimeError("invalid number")
    placer = TwilioCallPlacer(client, "wss://relay.example.com/media-stream")

    with pytest.raises(RuntimeError):
        placer.place_call("+1", "+15550000000", "https://relay.example.com/status-callback")


def test_build_call_placer(twilio_settings):
    client = MagicMock()
    placer = build_call_placer(twilio_settings, client=client)

    assert placer.client is client
    assert placer.stream_url == "wss://relay.example.com/media-stream"


def test_build_call_placer_without_credentials():
    with pytest.raises(TelephonyNotConfiguredError):
        build_call_placer(TwilioSettings(domain="relay.example.com"))


def test_build_call_placer_without_domain():
    settings = TwilioSettings(account_sid="AC1", auth_token="token", phone_number_from="+15550000000")
    with pytest.raises(TelephonyNotConfiguredError, match="DOMAIN"):
        build_call_placer(settings, client=MagicMock())
