"""
Frame Classifier
================

Turns one raw chunk from the stream into a ParsedEvent.

The upstream feed emits periodic keep-alive chunks (blank lines, partial
or non-JSON data) that cannot be told apart from noise without a
dedicated marker. Anything that does not validate as a StreamRecord is
therefore a Heartbeat.

Design Rules:
    - Pure function: no I/O, no logging, no state
    - Decode failures are NOT errors and are never logged as failures
    - Every CR, LF, '@' and '#' in textual fields becomes one space
"""

from typing import Any

from pydantic import ValidationError

from tradefeed_agent.models.event import HEARTBEAT, ParsedEvent, RawChunk, Record
from tradefeed_agent.models.record import StreamRecord


_SANITIZE_TABLE = str.maketrans({"\r": " ", "\n": " ", "@": " ", "#": " "})


def sanitize_text(text: str) -> str:
    """
    Replace each CR, LF, '@' and '#' with a single space.

    Args:
        text: Raw textual field

    Returns:
        Sanitized text of the same length
    """
    return text.translate(_SANITIZE_TABLE)


def _sanitize_value(value: Any) -> Any:
    """Sanitize every string inside a decoded JSON value."""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {key: _sanitize_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_sanitize_value(item) for item in value]
    return value


def classify(chunk: RawChunk) -> ParsedEvent:
    """
    Classify one raw chunk as a heartbeat or a record.

    Args:
        chunk: Bytes or text delivered by the transport

    Returns:
        Record with sanitized payload, or HEARTBEAT if the chunk
        does not decode to a record with a `data.text` field
    """
    if not chunk or not chunk.strip():
        return HEARTBEAT

    try:
        record = StreamRecord.model_validate_json(chunk)
    except (ValidationError, ValueError):
        # Keep-alive or fragment
        return HEARTBEAT

    data = _sanitize_value(record.data.model_dump())
    return Record(
        text=data["text"],
        record_id=None if record.data.id is None else str(record.data.id),
        data=data,
    )
