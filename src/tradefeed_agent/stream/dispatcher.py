"""
Event Dispatcher
================

Fire-and-forget delivery of records to the external event consumer.

The stream session calls submit() and returns to reading immediately.
A single worker task drains the EventBuffer and hands records to the
consumer one at a time.

Design Rules:
    - submit() never blocks and never raises on consumer trouble
    - Consumer exceptions are logged and counted, never propagated
    - One record in flight at a time
"""

import asyncio
import logging
from typing import Optional

from tradefeed_agent.consumers.base import EventConsumer
from tradefeed_agent.models.event import Record
from tradefeed_agent.stream.buffer import EventBuffer


logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Drains an EventBuffer into an EventConsumer.

    Attributes:
        consumer: External sink for sanitized records
        buffer: Queue between session and consumer
        delivered: Records the consumer accepted
        failed: Records whose consumer call raised

    Example:
        dispatcher = EventDispatcher(LoggingEventConsumer())
        await dispatcher.start()

        dispatcher.submit(record)

        await dispatcher.stop()
    """

    def __init__(
        self,
        consumer: EventConsumer,
        buffer: Optional[EventBuffer] = None,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            consumer: Sink accepting one record at a time
            buffer: Buffer to drain (a default EventBuffer if None)
        """
        self.consumer = consumer
        self.buffer = buffer if buffer is not None else EventBuffer()

        self.delivered: int = 0
        self.failed: int = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        """Whether the worker task is alive."""
        return self._task is not None and not self._task.done()

    def submit(self, record: Record) -> None:
        """Queue a record for delivery without waiting."""
        self.buffer.put_nowait(record)

    async def start(self) -> None:
        """Start the worker task. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="event_dispatcher")
        logger.info("EventDispatcher started")

    async def stop(self, drain_timeout: float = 0.0) -> None:
        """
        Stop the worker task.

        Args:
            drain_timeout: Seconds to wait for buffered records to be
                delivered before cancelling (0 = cancel immediately)
        """
        if self._task is None:
            return

        if drain_timeout > 0:
            try:
                await asyncio.wait_for(self.buffer.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"EventDispatcher drain timed out, "
                    f"{self.buffer.size} records undelivered"
                )

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        discarded = self.buffer.clear()
        if discarded:
            logger.warning(f"EventDispatcher stopped, discarded {discarded} records")
        logger.info("EventDispatcher stopped")

    async def _run(self) -> None:
        """Worker loop: deliver records one at a time."""
        while True:
            record = await self.buffer.get()
            try:
                await self.consumer.consume(record)
                self.delivered += 1
            except Exception as e:
                self.failed += 1
                logger.error(f"Event consumer failed on {record!r}: {e}")
            finally:
                self.buffer.task_done()

    def metrics(self) -> dict:
        """Dispatcher and buffer counters."""
        return {
            "delivered": self.delivered,
            "failed": self.failed,
            **self.buffer.metrics(),
        }
