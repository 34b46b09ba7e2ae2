"""
Connectivity check for the OpenAI API credentials used by the relay.

Lists the models visible to the configured key, reports whether the realtime model
is among them and, with --realtime, opens one Realtime API WebSocket and waits for
the session to be configured.

Usage:
    python check_openai.py [--realtime]
"""

import argparse
import asyncio
import json
import sys

import requests

from app.bot.realtime_api import RealtimeConnector, handshake_status
from app.config.constants import MESSAGE_TYPE_ERROR, MESSAGE_TYPE_SESSION_UPDATED
from app.config.settings import ConfigurationError, RealtimeSettings, load_settings

MODELS_URL = "https://api.openai.com/v1/models"
REQUEST_TIMEOUT = 15  # seconds
SESSION_TIMEOUT = 10  # seconds


def list_models(settings: RealtimeSettings, session=None):
    """Return the ids of the models visible to the configured key."""
    http = session or requests
    headers = {"Authorization": f"Bearer {settings.api_key}"}
    if settings.organization:
        headers["OpenAI-Organization"] = settings.organization
    response = http.get(MODELS_URL, headers=headers, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return sorted(model["id"] for model in response.json().get("data", []))


def describe_http_error(error: requests.HTTPError) -> str:
    response = error.response
    if response is None:
        return str(error)
    try:
        message = response.json().get("error", {}).get("message")
    except ValueError:
        message = None
    return f"HTTP {response.status_code} {response.reason}: {message or response.text[:200]}"


async def _first_session_reply(client) -> str:
    async for message in client:
        event_type = json.loads(message).get("type")
        if event_type in (MESSAGE_TYPE_SESSION_UPDATED, MESSAGE_TYPE_ERROR):
            return event_type
    return "closed"


async def check_realtime(connector: RealtimeConnector) -> str:
    """Open one Realtime session and return the type of the first reply to session.update."""
    client = await connector()
    try:
        await client.send_session_update(connector.session_update())
        return await asyncio.wait_for(_first_session_reply(client), timeout=SESSION_TIMEOUT)
    finally:
        await client.close()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Check OpenAI API access for the relay")
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Also open a Realtime API WebSocket and configure a session",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    try:
        settings = load_settings().realtime
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    print("Testing OpenAI API access...")
    print(f"Organization ID: {settings.organization or '(none)'}")
    print("-------------------")

    try:
        models = list_models(settings)
    except requests.HTTPError as e:
        print(f"Error listing models: {describe_http_error(e)}")
        return 1
    except requests.RequestException as e:
        print(f"Error listing models: {e}")
        return 1

    print(f"{len(models)} models available")
    if settings.model in models:
        print(f"Realtime model {settings.model} is available")
    else:
        print(f"Realtime model {settings.model} is NOT available to this key")

    if not args.realtime:
        return 0

    try:
        result = asyncio.run(check_realtime(RealtimeConnector(settings)))
    except Exception as e:
        status = handshake_status(e)
        detail = f"HTTP {status}" if status else f"{type(e).__name__}: {e}"
        print(f"Realtime API check failed: {detail}")
        return 1

    print(f"Realtime API check: {result}")
    return 0 if result == MESSAGE_TYPE_SESSION_UPDATED else 1


if __name__ == "__main__":
    sys.exit(main())
