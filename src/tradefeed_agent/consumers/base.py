"""
Event Consumers
===============

Sinks for sanitized records coming off the stream.

This module provides the EventConsumer protocol and the default
LoggingEventConsumer. Payload analysis (entity/sentiment extraction,
price lookups, alerting) lives in consumers outside this package.

Design Rules:
    - A consumer receives one Record at a time
    - A consumer contains its own errors; anything it raises is logged
      by the dispatcher and goes no further
"""

import logging
from typing import Protocol

from tradefeed_agent.models.event import Record


logger = logging.getLogger(__name__)


class EventConsumer(Protocol):
    """
    Protocol for event consumers.

    All implementations must provide an async `consume` method that
    takes a sanitized Record.
    """

    async def consume(self, record: Record) -> None:
        """
        Handle one record.

        Args:
            record: Sanitized record from the stream
        """
        ...


class LoggingEventConsumer:
    """
    Default consumer that logs every record.

    Attributes:
        level: Logging level used for each record
        consumed: Number of records seen
    """

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level
        self.consumed: int = 0

    async def consume(self, record: Record) -> None:
        self.consumed += 1
        logger.log(self.level, f"Record {record.record_id}: {record.text}")
