"""
Data Models
===========

Data model for the TradeFeedAgent stream engine.

This module re-exports all data models for convenient access.

Models:
    Wire:
        - StreamRecord, RecordData: Schema of one JSON record on the feed

    Events:
        - Heartbeat, Record: Result of classifying one raw chunk

    Outcomes:
        - ConnectionOutcome: Classified result of one connection attempt
        - RetryAction: Engine action chosen by the backoff policy
        - SessionResult: Terminal report of one session
"""

from tradefeed_agent.models.event import HEARTBEAT, Heartbeat, ParsedEvent, RawChunk, Record
from tradefeed_agent.models.outcome import ConnectionOutcome, RetryAction, SessionResult
from tradefeed_agent.models.record import RecordData, StreamRecord

__all__ = [
    # Wire
    "StreamRecord",
    "RecordData",
    # Events
    "RawChunk",
    "ParsedEvent",
    "Heartbeat",
    "HEARTBEAT",
    "Record",
    # Outcomes
    "ConnectionOutcome",
    "RetryAction",
    "SessionResult",
]
