"""
Event Buffer
============

Async-safe bounded queue between the stream session and the event consumer.

The session puts records without waiting; the dispatcher drains them at
the consumer's pace. A slow consumer therefore never stalls the read
loop or starves the idle watchdog.

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - put_nowait() never blocks
    - Exposes minimal metrics for observability
    - Does NOT process or modify records
"""

import asyncio
import logging

from tradefeed_agent.models.event import Record


logger = logging.getLogger(__name__)


class EventBuffer:
    """
    Bounded drop-oldest queue of records.

    Attributes:
        maxsize: Maximum number of records to buffer
        dropped_count: Number of records dropped due to overflow

    Example:
        buffer = EventBuffer(maxsize=1000)

        # Producer (stream session)
        buffer.put_nowait(record)

        # Consumer (dispatcher)
        record = await buffer.get()
    """

    def __init__(self, maxsize: int = 1000) -> None:
        """
        Initialize event buffer.

        Args:
            maxsize: Maximum records to buffer. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._queue: asyncio.Queue[Record] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of records in buffer."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of records dropped due to overflow."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total records ever put into buffer."""
        return self._total_put

    def put_nowait(self, record: Record) -> None:
        """
        Add record to buffer, dropping oldest if full.

        Args:
            record: Record to add
        """
        self._total_put += 1

        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._queue.task_done()
                self._dropped_count += 1
                logger.warning(
                    f"Event buffer full, dropped oldest record. "
                    f"Total dropped: {self._dropped_count}"
                )
            except asyncio.QueueEmpty:
                pass

        self._queue.put_nowait(record)

    async def get(self) -> Record:
        """Wait for the next record."""
        return await self._queue.get()

    def task_done(self) -> None:
        """Mark the last record returned by get() as handled."""
        self._queue.task_done()

    async def join(self) -> None:
        """Wait until every buffered record has been handled."""
        await self._queue.join()

    def clear(self) -> int:
        """
        Clear all records from buffer.

        Returns:
            Number of records cleared.
        """
        cleared = 0
        while True:
            try:
                self._queue.get_nowait()
                self._queue.task_done()
                cleared += 1
            except asyncio.QueueEmpty:
                break
        return cleared

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, dropped_count, total_put
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
