"""
Backoff policy for the upstream Realtime API connection.

ReconnectState is a small state machine driven by three events: a connection
attempt starting, a connection succeeding and a connection failing. It holds no
I/O of its own so the relay can drive it and tests can exercise it directly.

    CONNECTING --success--> OPEN --error--> BACKING_OFF --retry--> CONNECTING
    CONNECTING --error----> BACKING_OFF
    any        --error with the retry budget exhausted--> FAILED
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.config.constants import DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY, DEFAULT_MAX_RETRIES


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    BACKING_OFF = "backing_off"
    FAILED = "failed"


@dataclass
class ReconnectState:
    """
    Attempt counter and exponential backoff for one call's upstream leg.

    ``attempt`` counts consecutive failures since the last successful open. After
    ``max_retries`` consecutive failures the state becomes FAILED and no delay is
    returned any more.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    attempt: int = 0
    state: ConnectionState = ConnectionState.CONNECTING

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    @property
    def failed(self) -> bool:
        return self.state is ConnectionState.FAILED

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after ``attempt`` earlier failures."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def begin_attempt(self) -> None:
        if self.failed:
            raise RuntimeError("Cannot reconnect after the retry budget is exhausted")
        self.state = ConnectionState.CONNECTING

    def on_connect_success(self) -> None:
        self.attempt = 0
        self.state = ConnectionState.OPEN

    def on_connect_error(self) -> Optional[float]:
        """
        Record a failed attempt or an unexpected close.

        Returns:
            The delay in seconds before the next attempt, or None when the
            retry budget is exhausted and the state is FAILED.
        """
        if self.failed:
            return None
        if self.attempt + 1 >= self.max_retries:
            self.attempt += 1
            self.state = ConnectionState.FAILED
            return None
        delay = self.delay_for(self.attempt)
        self.attempt += 1
        self.state = ConnectionState.BACKING_OFF
        return delay
