"""
Run script for starting the Twilio Realtime Call Relay server.

This script validates the configuration and starts the FastAPI server with WebSocket
settings suited to real-time audio streaming between Twilio and OpenAI.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn

sys.path.append(str(Path(__file__).parent))

from app.config.logging_config import configure_logging
from app.config.settings import ConfigurationError, load_settings

logger = configure_logging()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the Twilio Realtime Call Relay server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: PORT env var or 5050)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the server to (default: HOST env var or 0.0.0.0)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point: validate settings, then start uvicorn."""
    args = parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Error: {e}")
        print("Set it in the environment or in a .env file next to run.py")
        sys.exit(1)

    host = args.host or settings.host
    port = args.port or settings.port
    log_level = args.log_level or settings.log_level

    logger.info(f"Starting server on http://{host}:{port}")
    logger.info(f"Log level: {log_level}")
    logger.info(f"Realtime model: {settings.realtime.model}")
    logger.info(f"Telephony configured: {settings.twilio.is_configured}")

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        log_level=log_level.lower(),
        # Use HTTP/1.1 for lower overhead than HTTP/2
        http="h11",
        # Disable access logs for lower overhead, we have our own logging
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
