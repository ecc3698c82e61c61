"""
Idle Watchdog
=============

Rearmable idle timer that aborts a half-dead connection.

The watchdog holds a single timer handle scheduled on a clock. When the
handle runs, the watchdog is marked as fired and the future awaited by
`expired()` is resolved; the session racing that future against the
connection attempt then cancels the attempt.

A clock is any object with `time()` and `call_at(when, callback)`, the
running event loop being the default. Tests pass a manual clock and
advance simulated time instead of sleeping.

Design Rules:
    - At most ONE pending timer handle at any instant
    - rearm() cancels the pending handle before scheduling its replacement
    - disarm() leaves no pending handle behind
    - Cancelling a task blocked in expired() always takes effect
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol


logger = logging.getLogger(__name__)


DEFAULT_IDLE_TIMEOUT_SEC = 90.0


class TimerHandle(Protocol):
    """Cancellable scheduled callback."""

    def cancel(self) -> None:
        ...


class Clock(Protocol):
    """
    Protocol for watchdog time sources.

    asyncio event loops satisfy it as they are.
    """

    def time(self) -> float:
        ...

    def call_at(self, when: float, callback: Callable[..., Any]) -> TimerHandle:
        ...


class IdleWatchdog:
    """
    Rearmable idle timer.

    Attributes:
        timeout: Default idle window in seconds
        deadline: Clock time of the pending fire, or None when disarmed
        fired: Whether the watchdog has fired since it was last armed

    Example:
        watchdog = IdleWatchdog(timeout=90.0)
        watchdog.arm()

        watch_task = asyncio.create_task(watchdog.expired())
        # ... on every chunk:
        watchdog.rearm()
    """

    def __init__(
        self,
        timeout: float = DEFAULT_IDLE_TIMEOUT_SEC,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Initialize watchdog.

        Args:
            timeout: Default idle window in seconds. Must be > 0.
            clock: Time source and scheduler (defaults to the running loop)
        """
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.timeout = timeout
        self._clock = clock
        self._deadline: Optional[float] = None
        self._handle: Optional[TimerHandle] = None
        self._fired: bool = False
        self._waiter: Optional[asyncio.Future] = None

    @property
    def deadline(self) -> Optional[float]:
        """Clock time of the pending fire, or None when disarmed."""
        return self._deadline

    @property
    def armed(self) -> bool:
        """Whether a fire is pending."""
        return self._handle is not None

    @property
    def fired(self) -> bool:
        """Whether the watchdog fired since it was last armed."""
        return self._fired

    def _get_clock(self) -> Clock:
        if self._clock is not None:
            return self._clock
        return asyncio.get_running_loop()

    def arm(self, timeout: Optional[float] = None) -> None:
        """
        Schedule a single fire after `timeout` seconds.

        Any pending fire is cancelled first.

        Args:
            timeout: Idle window; defaults to the configured timeout
        """
        clock = self._get_clock()
        window = self.timeout if timeout is None else timeout

        self._cancel_handle()
        self._fired = False
        self._deadline = clock.time() + window
        self._handle = clock.call_at(self._deadline, self._fire)

    def rearm(self, timeout: Optional[float] = None) -> None:
        """Cancel any pending fire and schedule a new one from now."""
        self.arm(timeout)

    def disarm(self) -> None:
        """Cancel any pending fire with no replacement."""
        self._cancel_handle()
        self._deadline = None

    def remaining(self) -> Optional[float]:
        """Seconds until the pending fire, or None when disarmed."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._get_clock().time())

    async def expired(self) -> None:
        """
        Wait until the deadline passes without a rearm.

        Blocks indefinitely while disarmed. Returns immediately if the
        watchdog already fired since it was last armed.
        """
        if self._fired:
            return

        if self._waiter is None or self._waiter.done():
            self._waiter = asyncio.get_running_loop().create_future()
        # Shielded so cancelling one waiter leaves the others waiting
        await asyncio.shield(self._waiter)

    def _fire(self) -> None:
        self._handle = None
        self._deadline = None
        self._fired = True
        logger.debug("Idle watchdog fired")

        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
