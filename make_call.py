"""
Place a single outbound call that connects the callee to the AI assistant.

The call's TwiML opens a media stream to wss://<DOMAIN>/media-stream, so the relay
server must be running and reachable at DOMAIN.

Usage:
    python make_call.py +15551234567 [--from +15557654321]
"""

import argparse
import sys

from app.config.logging_config import configure_logging
from app.config.settings import ConfigurationError, load_settings
from app.services.telephony import (
    TelephonyNotConfiguredError,
    build_call_placer,
    status_callback_url_for,
)

logger = configure_logging()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Place an outbound AI assistant call")
    parser.add_argument("to", help="Destination phone number in E.164 format")
    parser.add_argument(
        "--from",
        dest="from_number",
        default=None,
        help="Caller ID (default: PHONE_NUMBER_FROM env var)",
    )
    return parser.parse_args(argv)


def main(argv=None, placer=None):
    args = parse_args(argv)

    try:
        settings = load_settings()
        placer = placer or build_call_placer(settings.twilio)
    except (ConfigurationError, TelephonyNotConfiguredError) as e:
        print(f"Error: {e}")
        return 1

    from_number = args.from_number or settings.twilio.phone_number_from
    callback_url = status_callback_url_for(settings.twilio.domain)

    print(f"Making call from {from_number} to {args.to}")
    try:
        call_sid = placer.place_call(args.to, from_number, callback_url)
    except Exception as e:
        logger.error(f"Error making call: {e}")
        print(f"Error making call: {e}")
        return 1

    print(f"Outbound call initiated to {args.to}, SID: {call_sid}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
