"""
Tests for the command line entry points: run.py, make_call.py and check_openai.py.
"""

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

import check_openai
import make_call
import run
from app.bot.realtime_api import build_session_update
from app.config.settings import ConfigurationError, RealtimeSettings, Settings, TwilioSettings

from conftest import FakeConnector, FakeUpstreamSocket


class TestRun:

    def test_parse_args_defaults(self):
        args = run.parse_args([])
        assert args.port is None
        assert args.host is None
        assert args.log_level is None

    def test_main_starts_uvicorn(self, settings):
        with patch("run.load_settings", return_value=settings), patch("run.uvicorn.run") as mock_run:
            run.main(["--port", "9000", "--log-level", "DEBUG"])

        args, kwargs = mock_run.call_args
        assert args == ("app.main:app",)
        assert kwargs["port"] == 9000
        assert kwargs["host"] == settings.host
        assert kwargs["log_level"] == "debug"

    def test_main_exits_on_missing_configuration(self):
        with patch("run.load_settings", side_effect=ConfigurationError("OPENAI_API_KEY is required")):
            with patch("run.uvicorn.run") as mock_run:
                with pytest.raises(SystemExit) as exc_info:
                    run.main([])

        assert exc_info.value.code == 1
        mock_run.assert_not_called()


class TestMakeCall:

    def test_places_call(self, settings, capsys):
        placer = MagicMock()
        placer.place_call.return_value = "CA123"

        with patch("make_call.load_settings", return_value=settings):
            result = make_call.main(["+15551234567"], placer=placer)

        assert result == 0
        placer.place_call.assert_called_once_with(
            "+15551234567", "+15550000000", "https://relay.example.com/status-callback"
        )
        assert "Outbound call initiated to +15551234567, SID: CA123" in capsys.readouterr().out

    def test_from_override(self, settings):
        placer = MagicMock()
        placer.place_call.return_value = "CA123"

        with patch("make_call.load_settings", return_value=settings):
            make_call.main(["+15551234567", "--from", "+15559999999"], placer=placer)

        assert placer.place_call.call_args[0][1] == "+15559999999"

    def test_missing_credentials(self, capsys):
        settings = Settings(realtime=RealtimeSettings(api_key="k"), twilio=TwilioSettings())
        with patch("make_call.load_settings", return_value=settings):
            result = make_call.main(["+15551234567"])

        assert result == 1
        assert "Error:" in capsys.readouterr().out

    def test_provider_error(self, settings):
        placer = MagicMock()
        placer.place_call.side_effect = RuntimeError("invalid number")

        with patch("make_call.load_settings", return_value=settings):
            assert make_call.main(["+1"], placer=placer) == 1


class TestCheckOpenAI:

    def test_list_models(self):
        settings = RealtimeSettings(api_key="sk-test", organization="org-1")
        http = MagicMock()
        http.get.return_value.json.return_value = {"data": [{"id": "gpt-4o"}, {"id": "dall-e-3"}]}

        models = check_openai.list_models(settings, session=http)

        assert models == ["dall-e-3", "gpt-4o"]
        headers = http.get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer sk-test"
        assert headers["OpenAI-Organization"] == "org-1"

    def test_describe_http_error(self):
        response = MagicMock(status_code=401, reason="Unauthorized")
        response.json.return_value = {"error": {"message": "Incorrect API key provided"}}
        error = requests.HTTPError(response=response)

        assert check_openai.describe_http_error(error) == "HTTP 401 Unauthorized: Incorrect API key provided"

    def test_main_reports_model_availability(self, settings, capsys):
        with patch("check_openai.load_settings", return_value=settings), patch(
            "check_openai.list_models", return_value=[settings.realtime.model]
        ):
            assert check_openai.main([]) == 0

        assert "is available" in capsys.readouterr().out

    def test_main_http_error(self, settings):
        response = MagicMock(status_code=401, reason="Unauthorized")
        response.json.return_value = {"error": {"message": "bad key"}}
        with patch("check_openai.load_settings", return_value=settings), patch(
            "check_openai.list_models", side_effect=requests.HTTPError(response=response)
        ):
            assert check_openai.main([]) == 1

    @pytest.mark.asyncio
    async def test_check_realtime(self, realtime_settings):
        upstream = FakeUpstreamSocket()
        upstream.push(json.dumps({"type": "session.created"}))
        upstream.push(json.dumps({"type": "session.updated"}))
        connector = FakeConnector([upstream], session_update=build_session_update(realtime_settings))

        result = await check_openai.check_realtime(connector)

        assert result == "session.updated"
        assert json.loads(upstream.sent[0])["type"] == "session.update"
        assert upstream.close_calls == [(1000, "")]
