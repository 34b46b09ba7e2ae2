"""
Twilio Realtime Call Relay - Twilio Media Streams to OpenAI Realtime API Bridge

This application lets a phone caller talk to an AI voice assistant. Twilio streams
the call audio over a WebSocket to this server, which relays it to OpenAI's Realtime
API and streams the synthesized speech back into the call.

Architecture Overview:
- FastAPI server exposing the TwiML webhooks and the media stream WebSocket
- One CallRelay per call, forwarding audio in both directions
- Upstream reconnection with bounded exponential backoff
- Outbound calls placed through the Twilio SDK behind a small interface

Key Components:
- bot: The per-call relay, the Realtime API connector and the backoff state machine
- config: Constants, settings loaded from the environment and logging setup
- models: Pydantic message schemas and per-call session state
- services: Twilio call placement and TwiML rendering
- websocket_manager: Accepts media WebSockets and runs one relay per call

Getting Started:
1. Set up environment variables (or a .env file):
   - OPENAI_API_KEY: Your OpenAI API key (required)
   - TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, PHONE_NUMBER_FROM: for outbound calls
   - DOMAIN: Public host name Twilio can reach, e.g. abc123.ngrok.app
   - PORT / HOST / LOG_LEVEL: server options

2. Start the server:
   ```bash
   python run.py
   ```

3. Point your Twilio number's voice webhook to https://<DOMAIN>/incoming-call
"""
