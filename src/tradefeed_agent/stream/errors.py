"""
Stream Errors
=============

Exceptions raised across the stream engine boundary.

    - TransportTimeoutError: connect/read timeout at the transport layer
    - TransportFailureError: any other transport-level failure
    - StreamFatalError: the single fatal-shutdown signal raised by the engine
"""

from typing import Optional

from tradefeed_agent.models.outcome import SessionResult


class StreamError(Exception):
    """Base class for stream engine errors."""


class TransportTimeoutError(StreamError):
    """Network-level timeout, distinct from the idle watchdog."""


class TransportFailureError(StreamError):
    """Transport failure that retrying cannot fix."""


class StreamFatalError(StreamError):
    """
    Unrecoverable stream failure.

    Raised exactly once by StreamEngine.run() when the backoff policy
    decides to terminate, or when the connection opener itself fails.

    Attributes:
        result: Terminal SessionResult, if a session produced one
    """

    def __init__(self, message: str, result: Optional[SessionResult] = None) -> None:
        super().__init__(message)
        self.result = result
