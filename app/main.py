"""
FastAPI server relaying Twilio phone calls to the OpenAI Realtime API.

This module initializes and configures the FastAPI application that Twilio talks to:
the TwiML webhook for inbound calls, the outbound call endpoint, the call status
callback and the media stream WebSocket that carries the call audio.

Settings are loaded once when the application is created; a missing OPENAI_API_KEY
aborts startup with a ConfigurationError.
"""

from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, WebSocket
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.config.constants import MEDIA_STREAM_PATH
from app.config.logging_config import configure_logging
from app.config.settings import Settings, load_settings
from app.services.telephony import (
    CallPlacer,
    TelephonyNotConfiguredError,
    build_call_placer,
    build_stream_twiml,
    empty_twiml,
    status_callback_url_for,
    stream_url_for,
)
from app.websocket_manager import WebSocketManager

APP_NAME = "Twilio Realtime Call Relay"
APP_DESCRIPTION = "Relays Twilio Media Streams phone calls to the OpenAI Realtime API"
APP_VERSION = "1.0.0"


class OutboundCallRequest(BaseModel):
    to: Optional[str] = None


class OutboundCallResponse(BaseModel):
    call_sid: str
    to: str


def _xml_response(xml: str) -> Response:
    return Response(content=xml, media_type="application/xml")


def _public_host(request: Request, settings: Settings) -> str:
    if settings.twilio.domain:
        return settings.twilio.domain
    # Fallback to the request host. Behind a proxy, prefer setting DOMAIN.
    return request.headers.get("host") or request.url.netloc


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_call_placer(request: Request) -> CallPlacer:
    settings: Settings = request.app.state.settings
    try:
        return build_call_placer(settings.twilio)
    except TelephonyNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


def create_app(
    settings: Optional[Settings] = None,
    websocket_manager: Optional[WebSocketManager] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings. Loaded from the environment when omitted.
        websocket_manager: Media stream manager. Built from the settings when omitted.
    """
    settings = settings or load_settings()
    logger = configure_logging(settings.log_level)

    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
    )
    app.state.settings = settings
    app.state.websocket_manager = websocket_manager or WebSocketManager(settings)

    @app.get("/")
    async def root():
        """Basic information about the service and its endpoints."""
        return {
            "name": APP_NAME,
            "description": APP_DESCRIPTION,
            "version": APP_VERSION,
            "endpoints": {
                "/incoming-call": "TwiML webhook connecting inbound calls to the media stream",
                "/call": "Place an outbound call",
                "/status-callback": "Twilio call status callback",
                MEDIA_STREAM_PATH: "Twilio Media Streams WebSocket",
                "/health": "Health check endpoint",
            },
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint for load balancers and monitoring."""
        current: Settings = request.app.state.settings
        return {
            "status": "healthy",
            "openai_api_key_configured": bool(current.realtime.api_key),
            "telephony_configured": current.twilio.is_configured,
            "active_calls": request.app.state.websocket_manager.active_calls,
        }

    @app.api_route("/incoming-call", methods=["GET", "POST"])
    async def incoming_call(request: Request, current: Settings = Depends(get_settings)):
        """Answer an inbound call with TwiML that opens the media stream."""
        stream_url = stream_url_for(_public_host(request, current))
        logger.info(f"Incoming call, connecting media stream to {stream_url}")
        return _xml_response(build_stream_twiml(stream_url))

    @app.post("/call", response_model=OutboundCallResponse)
    async def make_call(
        payload: OutboundCallRequest,
        request: Request,
        current: Settings = Depends(get_settings),
        placer: CallPlacer = Depends(get_call_placer),
    ):
        """Place an outbound call that connects the callee to the assistant."""
        to = (payload.to or "").strip()
        if not to:
            raise HTTPException(status_code=400, detail="Phone number is required")

        callback_url = status_callback_url_for(_public_host(request, current))
        try:
            call_sid = await run_in_threadpool(
                placer.place_call, to, current.twilio.phone_number_from, callback_url
            )
        except Exception as e:
            logger.error(f"Failed to initiate outbound call to {to}: {e}")
            raise HTTPException(status_code=500, detail=str(e)) from e
        return OutboundCallResponse(call_sid=call_sid, to=to)

    @app.post("/status-callback")
    @app.post("/status")
    async def status_callback(request: Request):
        """Log call lifecycle updates. Always answers 200 so Twilio does not retry."""
        try:
            form = await request.form()
            fields = dict(form)
            logger.info(
                f"Call {fields.get('CallSid')} status: {fields.get('CallStatus')} "
                f"(duration {fields.get('CallDuration')})"
            )
            logger.debug(f"Status callback payload: {fields}")
        except Exception as e:
            logger.error(f"Error in status callback: {e}")
        return _xml_response(empty_twiml())

    @app.websocket(MEDIA_STREAM_PATH)
    async def media_stream(websocket: WebSocket):
        """WebSocket endpoint carrying the call audio from Twilio Media Streams."""
        await websocket.app.state.websocket_manager.handle_websocket(websocket)

    logger.info(f"{APP_NAME} configured (model {settings.realtime.model})")
    return app


app = create_app()
