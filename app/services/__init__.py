"""
Services module for external telephony integrations.

Key components:
- telephony: The CallPlacer interface, its Twilio implementation and the TwiML
  that connects a call to the media stream WebSocket.

Usage example:
```python
from app.services.telephony import build_call_placer, status_callback_url_for

placer = build_call_placer(settings.twilio)
call_sid = placer.place_call(
    "+15551234567",
    settings.twilio.phone_number_from,
    status_callback_url_for(settings.twilio.domain),
)
```
"""
