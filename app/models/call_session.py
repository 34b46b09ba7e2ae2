"""
Call session state management for Twilio media stream connections.

This module provides the CallSession record kept by each relay and the
CallSessionManager registry that tracks live sessions for health reporting.
A session lives from the moment the media WebSocket is accepted until both the
inbound and the upstream connection are closed.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class SessionState(str, Enum):
    """Lifecycle of a single call session."""

    PENDING = "pending"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class CallSession:
    """
    State of one relayed phone call.

    The stream identifier is unknown until Twilio sends the start event; the
    counters are only used for logging when the session ends.
    """

    connection_id: str
    stream_sid: Optional[str] = None
    call_sid: Optional[str] = None
    state: SessionState = SessionState.PENDING
    started_at: float = field(default_factory=time.monotonic)
    frames_forwarded: int = 0
    frames_dropped: int = 0
    deltas_forwarded: int = 0

    @property
    def is_closing(self) -> bool:
        return self.state in (SessionState.CLOSING, SessionState.CLOSED)

    def activate(self, stream_sid: str, call_sid: Optional[str] = None) -> None:
        self.stream_sid = stream_sid
        self.call_sid = call_sid
        if not self.is_closing:
            self.state = SessionState.ACTIVE

    def begin_closing(self) -> bool:
        """Move to CLOSING. Returns False if the session was already closing."""
        if self.is_closing:
            return False
        self.state = SessionState.CLOSING
        return True

    def mark_closed(self) -> None:
        self.state = SessionState.CLOSED

    @property
    def duration(self) -> float:
        return time.monotonic() - self.started_at


class CallSessionManager:
    """
    Registry of live call sessions.

    Sessions never share relay state; the registry only exists so the health
    endpoint can report how many calls are in progress.
    """

    def __init__(self):
        """Initialize an empty dictionary of active sessions."""
        self.active_sessions: Dict[str, CallSession] = {}

    def add_session(self, session: CallSession) -> None:
        self.active_sessions[session.connection_id] = session

    def get_session(self, connection_id: str) -> Optional[CallSession]:
        return self.active_sessions.get(connection_id)

    def remove_session(self, connection_id: str) -> None:
        self.active_sessions.pop(connection_id, None)

    def __len__(self) -> int:
        return len(self.active_sessions)
