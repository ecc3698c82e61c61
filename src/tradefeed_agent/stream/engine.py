"""
Stream Engine
=============

Outer control loop that keeps the feed connected indefinitely.

The engine repeatedly runs a StreamSession, feeds its terminal outcome
to the BackoffPolicy, and acts on the decision:

    CONTINUE / RETRY_IMMEDIATELY  -> open a new session now
    RETRY_AFTER_DELAY             -> wait, then open a new session
    TERMINATE                     -> raise StreamFatalError (once)

Design Rules:
    - Exactly one physical connection at a time
    - The engine owns the single BackoffState for its whole lifetime
    - Every chunk resets the backoff (an OPENED decision)
    - Backoff waits are interruptible by stop()
    - stop() also cancels an in-flight session; nothing leaks past it
    - Immediate reconnects are spaced by at least min_reconnect_interval
      from the previous session start, so a 2xx that closes at once
      cannot spin the loop
    - No maximum attempt count
"""

import asyncio
import logging
from typing import Dict, Optional

from tradefeed_agent.backoff.policy import (
    INITIAL_STATE,
    BackoffPolicy,
    BackoffState,
)
from tradefeed_agent.models.outcome import ConnectionOutcome, RetryAction, SessionResult
from tradefeed_agent.stream.dispatcher import EventDispatcher
from tradefeed_agent.stream.errors import StreamFatalError
from tradefeed_agent.stream.opener import ConnectionOpener, StreamRequest
from tradefeed_agent.stream.session import StreamSession
from tradefeed_agent.stream.watchdog import DEFAULT_IDLE_TIMEOUT_SEC, Clock


logger = logging.getLogger(__name__)


DEFAULT_MIN_RECONNECT_INTERVAL_SEC = 1.0


class EngineMetrics:
    """Metrics for StreamEngine observability."""

    __slots__ = (
        "sessions_started",
        "reconnect_count",
        "chunks_received",
        "records_forwarded",
        "heartbeats",
        "outcome_counts",
        "last_outcome",
        "last_status_code",
        "last_error",
        "last_delay",
    )

    def __init__(self) -> None:
        self.sessions_started: int = 0
        self.reconnect_count: int = 0
        self.chunks_received: int = 0
        self.records_forwarded: int = 0
        self.heartbeats: int = 0
        self.outcome_counts: Dict[str, int] = {}
        self.last_outcome: Optional[str] = None
        self.last_status_code: Optional[int] = None
        self.last_error: Optional[str] = None
        self.last_delay: float = 0.0

    def record(self, result: SessionResult) -> None:
        """Fold one session's terminal report into the totals."""
        self.chunks_received += result.chunks_received
        self.records_forwarded += result.records_forwarded
        self.heartbeats += result.heartbeats
        key = result.outcome.value
        self.outcome_counts[key] = self.outcome_counts.get(key, 0) + 1
        self.last_outcome = key
        self.last_status_code = result.status_code
        self.last_error = result.error

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "sessions_started": self.sessions_started,
            "reconnect_count": self.reconnect_count,
            "chunks_received": self.chunks_received,
            "records_forwarded": self.records_forwarded,
            "heartbeats": self.heartbeats,
            "outcome_counts": dict(self.outcome_counts),
            "last_outcome": self.last_outcome,
            "last_status_code": self.last_status_code,
            "last_error": self.last_error,
            "last_delay": self.last_delay,
        }


class StreamEngine:
    """
    Resilient stream-consumption engine.

    Attributes:
        request: Pre-authorized request descriptor
        policy: Backoff policy deciding every reconnect
        idle_timeout: Watchdog window for each session
        backoff_state: Current shared backoff value
        connected: Whether a session is reading a 2xx body
        metrics: Operational metrics

    Example:
        engine = StreamEngine(
            opener=HttpxConnectionOpener(),
            request=StreamRequest(url=url, bearer_token=token),
            dispatcher=dispatcher,
        )

        task = asyncio.create_task(engine.run())

        # Later, stop gracefully
        await engine.stop()
        await task
    """

    def __init__(
        self,
        opener: ConnectionOpener,
        request: StreamRequest,
        dispatcher: EventDispatcher,
        policy: Optional[BackoffPolicy] = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SEC,
        drain_timeout: float = 0.0,
        min_reconnect_interval: float = DEFAULT_MIN_RECONNECT_INTERVAL_SEC,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Initialize stream engine.

        Args:
            opener: Opens one streaming response per session
            request: Pre-authorized request descriptor
            dispatcher: Delivers records to the event consumer
            policy: Backoff policy (defaults to the standard constants)
            idle_timeout: Idle watchdog window in seconds
            drain_timeout: Seconds to deliver buffered records on exit
            min_reconnect_interval: Minimum seconds between the starts of
                two sessions when reconnecting without backoff
            clock: Time source for the watchdogs and session timing
                (defaults to the running loop)
        """
        self.request = request
        self.policy = policy if policy is not None else BackoffPolicy()
        self.idle_timeout = idle_timeout
        self.drain_timeout = drain_timeout
        self.min_reconnect_interval = min_reconnect_interval

        self._opener = opener
        self._dispatcher = dispatcher
        self._clock = clock

        self._state: BackoffState = INITIAL_STATE
        self._session: Optional[StreamSession] = None
        self._session_task: Optional[asyncio.Task] = None
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.metrics = EngineMetrics()

    @property
    def backoff_state(self) -> BackoffState:
        """Current shared backoff value."""
        return self._state

    @property
    def connected(self) -> bool:
        """Whether a session is currently reading a 2xx body."""
        return self._session is not None and self._session.streaming

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """
        Keep the stream connected until stopped or a fatal outcome.

        Raises:
            StreamFatalError: when the policy decides TERMINATE, or when
                opening/reading the stream fails unexpectedly
        """
        self._running = True
        self._stop_event.clear()
        await self._dispatcher.start()

        logger.info(f"StreamEngine starting: {self.request.url}")

        try:
            while self._running:
                started = self._now()
                result = await self._run_session()
                if result is None:
                    break

                self.metrics.record(result)
                decision = self.policy.decide(result.outcome, self._state)
                self._state = decision.state
                self.metrics.last_delay = decision.delay

                if decision.action is RetryAction.TERMINATE:
                    logger.error(f"Fatal stream outcome, giving up: {result!r}")
                    raise StreamFatalError(
                        f"stream terminated: {result.outcome.value}"
                        + (f" (HTTP {result.status_code})" if result.status_code else "")
                        + (f": {result.error}" if result.error else ""),
                        result=result,
                    )

                self.metrics.reconnect_count += 1

                if decision.action is RetryAction.RETRY_AFTER_DELAY:
                    logger.warning(
                        f"{result.outcome.value}, reconnecting in {decision.delay:.2f}s "
                        f"(attempt {self.metrics.reconnect_count})"
                    )
                    if await self._wait(decision.delay):
                        break
                else:
                    pause = self.min_reconnect_interval - (self._now() - started)
                    if pause > 0:
                        logger.warning(
                            f"{result.outcome.value} after a short session, reconnecting "
                            f"in {pause:.2f}s (attempt {self.metrics.reconnect_count})"
                        )
                        if await self._wait(pause):
                            break
                    else:
                        logger.warning(
                            f"{result.outcome.value}, reconnecting now "
                            f"(attempt {self.metrics.reconnect_count})"
                        )
                        await asyncio.sleep(0)
        finally:
            self._running = False
            self._session = None
            await self._dispatcher.stop(drain_timeout=self.drain_timeout)
            logger.info("StreamEngine stopped")

    async def stop(self) -> None:
        """
        Stop the engine gracefully.

        Interrupts a pending backoff wait and cancels an in-flight session.
        """
        logger.info("StreamEngine stopping...")
        self._running = False
        self._stop_event.set()

        if self._session_task is not None and not self._session_task.done():
            self._session_task.cancel()

    async def _run_session(self) -> Optional[SessionResult]:
        """Run one session; None if it was cancelled by stop()."""
        self._session = StreamSession(
            opener=self._opener,
            request=self.request,
            dispatcher=self._dispatcher,
            idle_timeout=self.idle_timeout,
            on_activity=self._on_activity,
            clock=self._clock,
        )
        self.metrics.sessions_started += 1
        self._session_task = asyncio.create_task(
            self._session.run(),
            name="stream_session",
        )

        try:
            return await self._session_task
        except asyncio.CancelledError:
            if self._running:
                raise
            logger.info("Stream session cancelled by stop()")
            return None
        except Exception as e:
            logger.exception("Stream session failed unexpectedly")
            raise StreamFatalError(f"stream session failed: {e}") from e
        finally:
            self._session_task = None
            self._session = None

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock.time()
        return asyncio.get_running_loop().time()

    def _on_activity(self) -> None:
        """Any chunk proves the connection healthy: reset the backoff."""
        if self._state.delay:
            self._state = self.policy.decide(ConnectionOutcome.OPENED, self._state).state

    async def _wait(self, delay: float) -> bool:
        """
        Wait out a backoff delay.

        Returns:
            True if stop() was requested during the wait
        """
        stop = asyncio.create_task(self._stop_event.wait(), name="engine_stop_wait")
        try:
            done, _ = await asyncio.wait({stop}, timeout=delay)
            return stop in done
        finally:
            if not stop.done():
                stop.cancel()
                await asyncio.wait({stop})
