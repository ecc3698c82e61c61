"""
Parsed Events
=============

Result of classifying one raw chunk from the stream.

    - Heartbeat: keep-alive, carries no payload, only resets the watchdog
    - Record: sanitized payload forwarded to the event consumer

Design Rules:
    - Both types are immutable
    - Record text is ALREADY sanitized (no CR, LF, '@' or '#')
    - Record.data is the full decoded `data` object, sanitized the same way
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


RawChunk = Union[bytes, str]


@dataclass(frozen=True, slots=True)
class Heartbeat:
    """Keep-alive chunk with no actionable payload."""


@dataclass(frozen=True, slots=True)
class Record:
    """
    Decoded, sanitized record.

    Attributes:
        text: Sanitized textual payload
        record_id: Upstream identifier, if present
        data: Full decoded `data` object with every string sanitized
    """

    text: str
    record_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        preview = self.text if len(self.text) <= 40 else self.text[:37] + "..."
        return f"Record(id={self.record_id}, text={preview!r})"


ParsedEvent = Union[Heartbeat, Record]

HEARTBEAT = Heartbeat()
