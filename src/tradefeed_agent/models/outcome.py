"""
Connection Outcomes
===================

Named results of one physical connection attempt and the retry actions
derived from them.

Each attempt produces exactly ONE ConnectionOutcome. It is the sole
input to the backoff policy, which maps it to a RetryAction.

Outcome Taxonomy:
    Recoverable-Immediate:
        SELF_TIMEOUT       - idle watchdog fired, says nothing about server health
    Recoverable-Delayed:
        TRANSPORT_TIMEOUT  - connect/read timeout at the transport layer
        NOT_MODIFIED       - HTTP 304
        RATE_LIMITED       - HTTP 420 / 429
        SERVER_ERROR       - HTTP 5xx
    Fatal:
        CLIENT_ERROR       - any other non-2xx status
        FATAL_TRANSPORT    - any other transport failure
    Healthy:
        OPENED             - 2xx stream, data flowing or ended cleanly
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConnectionOutcome(str, Enum):
    """
    Classified result of one connection attempt.

    Attributes:
        OPENED: 2xx response; ends only when the stream breaks
        SELF_TIMEOUT: Idle watchdog aborted the attempt
        TRANSPORT_TIMEOUT: Network-level connect/read timeout
        NOT_MODIFIED: HTTP 304
        RATE_LIMITED: HTTP 420 or 429
        SERVER_ERROR: HTTP 5xx
        CLIENT_ERROR: Any other non-2xx status
        FATAL_TRANSPORT: Any other transport failure
    """

    OPENED = "OPENED"
    SELF_TIMEOUT = "SELF_TIMEOUT"
    TRANSPORT_TIMEOUT = "TRANSPORT_TIMEOUT"
    NOT_MODIFIED = "NOT_MODIFIED"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    FATAL_TRANSPORT = "FATAL_TRANSPORT"

    @classmethod
    def from_status(cls, status_code: int) -> "ConnectionOutcome":
        """
        Classify an HTTP status code.

        Args:
            status_code: Status of the streaming response

        Returns:
            OPENED for 2xx, otherwise the matching failure outcome
        """
        if 200 <= status_code < 300:
            return cls.OPENED
        if status_code == 304:
            return cls.NOT_MODIFIED
        if status_code in (420, 429):
            return cls.RATE_LIMITED
        if 500 <= status_code < 600:
            return cls.SERVER_ERROR
        return cls.CLIENT_ERROR

    @property
    def is_fatal(self) -> bool:
        """Whether retrying cannot fix this outcome."""
        return self in (ConnectionOutcome.CLIENT_ERROR, ConnectionOutcome.FATAL_TRANSPORT)


class RetryAction(str, Enum):
    """What the engine does after an outcome."""

    CONTINUE = "CONTINUE"
    RETRY_IMMEDIATELY = "RETRY_IMMEDIATELY"
    RETRY_AFTER_DELAY = "RETRY_AFTER_DELAY"
    TERMINATE = "TERMINATE"


@dataclass(frozen=True, slots=True)
class SessionResult:
    """
    Terminal report of one StreamSession.

    Attributes:
        outcome: The single classified outcome of the attempt
        status_code: HTTP status, if a response was received
        chunks_received: Raw chunks read (heartbeats included)
        records_forwarded: Records handed to the dispatcher
        heartbeats: Chunks classified as heartbeats
        error: Description of the transport error, if any
    """

    outcome: ConnectionOutcome
    status_code: Optional[int] = None
    chunks_received: int = 0
    records_forwarded: int = 0
    heartbeats: int = 0
    error: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"SessionResult({self.outcome.value}, status={self.status_code}, "
            f"chunks={self.chunks_received}, records={self.records_forwarded})"
        )
