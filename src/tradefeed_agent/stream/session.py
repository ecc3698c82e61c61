"""
Stream Session
==============

One physical connection attempt against the streaming endpoint.

Lifecycle:
    1. Connecting  - watchdog armed (covers the wait for response headers)
    2. Classify    - 2xx enters Streaming; anything else disarms the
                     watchdog and reports its outcome
    3. Streaming   - per chunk: rearm watchdog, classify, submit records
    4. Terminal    - exactly one SessionResult; watchdog disarmed and
                     response closed

The attempt and the idle watchdog run as two tasks racing to completion.
Whichever finishes first decides the outcome and the loser is cancelled:
a fired watchdog cancels the attempt (closing the socket) and yields
SELF_TIMEOUT.

Design Rules:
    - Rearming the watchdog is ALWAYS the first action on a chunk
    - Records are submitted without waiting for the consumer
    - No record is submitted once the watchdog has fired
    - A session never restarts itself; that belongs to StreamEngine
"""

import asyncio
import logging
from typing import Callable, Optional

from tradefeed_agent.models.event import Record
from tradefeed_agent.models.outcome import ConnectionOutcome, SessionResult
from tradefeed_agent.stream.classifier import classify
from tradefeed_agent.stream.dispatcher import EventDispatcher
from tradefeed_agent.stream.errors import TransportFailureError, TransportTimeoutError
from tradefeed_agent.stream.opener import ConnectionOpener, StreamRequest, StreamResponse
from tradefeed_agent.stream.watchdog import DEFAULT_IDLE_TIMEOUT_SEC, Clock, IdleWatchdog


logger = logging.getLogger(__name__)


class StreamSession:
    """
    Single connection attempt with idle watchdog.

    Attributes:
        request: Pre-authorized request descriptor
        idle_timeout: Seconds without any chunk before self-abort
        streaming: Whether the session is currently reading a 2xx body

    Example:
        session = StreamSession(opener, request, dispatcher)
        result = await session.run()

        if result.outcome is ConnectionOutcome.SELF_TIMEOUT:
            ...
    """

    def __init__(
        self,
        opener: ConnectionOpener,
        request: StreamRequest,
        dispatcher: EventDispatcher,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SEC,
        on_activity: Optional[Callable[[], None]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Initialize session.

        Args:
            opener: Opens the streaming response
            request: Pre-authorized request descriptor
            dispatcher: Receives decoded records (non-blocking)
            idle_timeout: Idle window in seconds
            on_activity: Called on every chunk, after the watchdog rearm
            clock: Time source for the watchdog (defaults to the running loop)
        """
        self.request = request
        self.idle_timeout = idle_timeout

        self._opener = opener
        self._dispatcher = dispatcher
        self._on_activity = on_activity
        self._watchdog = IdleWatchdog(timeout=idle_timeout, clock=clock)

        self._streaming: bool = False
        self._status_code: Optional[int] = None
        self._chunks: int = 0
        self._records: int = 0
        self._heartbeats: int = 0

    @property
    def streaming(self) -> bool:
        """Whether the session is reading a 2xx body."""
        return self._streaming

    @property
    def watchdog(self) -> IdleWatchdog:
        """The session's idle watchdog."""
        return self._watchdog

    async def run(self) -> SessionResult:
        """
        Run the attempt to its terminal outcome.

        Returns:
            SessionResult with exactly one ConnectionOutcome

        Raises:
            asyncio.CancelledError: if the caller cancels the session;
                both internal tasks are cancelled first
        """
        self._watchdog.arm()

        attempt = asyncio.create_task(self._attempt(), name="stream_attempt")
        watch = asyncio.create_task(self._watchdog.expired(), name="idle_watchdog")

        try:
            done, _ = await asyncio.wait(
                {attempt, watch},
                return_when=asyncio.FIRST_COMPLETED,
            )

            if attempt in done:
                # An attempt that raised reports its error even if the
                # watchdog fired in the same tick
                if attempt.exception() is not None or not self._watchdog.fired:
                    return attempt.result()

            logger.warning(
                f"No data for {self.idle_timeout:.0f}s, aborting connection"
            )
            await self._cancel(attempt)
            return self._result(ConnectionOutcome.SELF_TIMEOUT)
        finally:
            self._watchdog.disarm()
            self._streaming = False
            await self._cancel(watch, attempt)

    async def _attempt(self) -> SessionResult:
        """Open the request, classify the response, read until the end."""
        try:
            async with self._opener.open(self.request) as response:
                self._status_code = response.status_code
                outcome = ConnectionOutcome.from_status(response.status_code)

                if outcome is not ConnectionOutcome.OPENED:
                    self._watchdog.disarm()
                    logger.warning(
                        f"Stream rejected: HTTP {response.status_code} ({outcome.value})"
                    )
                    return self._result(outcome)

                logger.info(f"Stream opened: HTTP {response.status_code}")
                self._streaming = True
                await self._read(response)

            logger.warning("Stream ended by server")
            return self._result(ConnectionOutcome.OPENED)

        except (TransportTimeoutError, TimeoutError) as e:
            logger.warning(f"Transport timeout: {e}")
            return self._result(ConnectionOutcome.TRANSPORT_TIMEOUT, error=str(e))
        except (TransportFailureError, OSError) as e:
            logger.error(f"Transport failure: {e}")
            return self._result(ConnectionOutcome.FATAL_TRANSPORT, error=str(e))
        finally:
            self._streaming = False

    async def _read(self, response: StreamResponse) -> None:
        """Read chunks until the body ends or the watchdog wins."""
        async for chunk in response.aiter_chunks():
            if self._watchdog.fired:
                break

            self._watchdog.rearm()
            self._chunks += 1
            if self._on_activity is not None:
                self._on_activity()

            event = classify(chunk)
            if isinstance(event, Record):
                self._records += 1
                self._dispatcher.submit(event)
            else:
                self._heartbeats += 1

    def _result(
        self,
        outcome: ConnectionOutcome,
        error: Optional[str] = None,
    ) -> SessionResult:
        return SessionResult(
            outcome=outcome,
            status_code=self._status_code,
            chunks_received=self._chunks,
            records_forwarded=self._records,
            heartbeats=self._heartbeats,
            error=error,
        )

    @staticmethod
    async def _cancel(*tasks: asyncio.Task) -> None:
        """
        Cancel tasks and wait for them to unwind.

        Every task is cancelled before any is awaited. asyncio.wait() never
        swallows a cancellation aimed at the caller, so a session cancelled
        while cleaning up still stops.
        """
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                logger.debug(f"{task.get_name()} raised while cancelling: {task.exception()}")
