"""
Test Configuration
==================

Pytest fixtures and test doubles for TradeFeedAgent.

FakeOpener / FakeResponse stand in for the network. A response plays a
script of items:
    - bytes / str : a raw chunk
    - float       : pause for that many seconds
    - Exception   : raised from the chunk iterator
    - callable    : called in place (e.g. to advance a ManualClock)
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import List, Optional

import pytest

from tradefeed_agent.backoff import BackoffPolicy, BackoffSettings
from tradefeed_agent.models.event import Record
from tradefeed_agent.stream.dispatcher import EventDispatcher
from tradefeed_agent.stream.opener import StreamRequest


STREAM_URL = "https://stream.example.com/2/tweets/search/stream"


def record_line(text: str, record_id: str = "1") -> bytes:
    """Encode one record the way the feed sends it."""
    return json.dumps({"data": {"id": record_id, "text": text}}).encode()


class FakeResponse:
    """Scripted streaming response."""

    def __init__(self, status_code: int = 200, script: tuple = (), hang: bool = False) -> None:
        self.status_code = status_code
        self.script = list(script)
        self.hang = hang
        self.closed = False

    async def aiter_chunks(self):
        for item in self.script:
            if isinstance(item, float):
                await asyncio.sleep(item)
            elif isinstance(item, BaseException):
                raise item
            elif callable(item):
                item()
            else:
                yield item
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class FakeOpener:
    """
    Scripted connection opener.

    Each attempt consumes the next entry: a FakeResponse, or an
    exception raised on open. `open_delay` delays the response headers.
    """

    def __init__(self, attempts: list, open_delay: float = 0.0) -> None:
        self.attempts = list(attempts)
        self.open_delay = open_delay
        self.opened = 0
        self.responses: List[FakeResponse] = []
        self.requests: List[StreamRequest] = []

    @asynccontextmanager
    async def open(self, request: StreamRequest):
        self.opened += 1
        self.requests.append(request)
        if self.open_delay:
            await asyncio.sleep(self.open_delay)

        entry = self.attempts.pop(0) if self.attempts else FakeResponse(hang=True)
        if isinstance(entry, BaseException):
            raise entry

        self.responses.append(entry)
        try:
            yield entry
        finally:
            await entry.aclose()


class ManualTimer:
    """Handle returned by ManualClock.call_at()."""

    def __init__(self, when: float, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """
    Simulated clock for the idle watchdog and engine timing.

    Time only moves on advance(), which runs every due callback in
    deadline order.
    """

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now
        self.timers: List[ManualTimer] = []

    def time(self) -> float:
        return self.now

    def call_at(self, when: float, callback) -> ManualTimer:
        timer = ManualTimer(when, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (t for t in self.pending if t.when <= self.now),
            key=lambda t: t.when,
        )
        self.timers = [t for t in self.pending if t not in due]
        for timer in due:
            if not timer.cancelled:
                timer.callback()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def leftover_tasks() -> list:
    """Session-internal tasks still alive."""
    names = {"stream_attempt", "idle_watchdog", "stream_session", "engine_stop_wait"}
    return [
        t for t in asyncio.all_tasks()
        if t.get_name() in names and not t.done()
    ]


class CollectingConsumer:
    """Consumer that records everything it receives."""

    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.records: List[Record] = []
        self.fail_on = fail_on

    async def consume(self, record: Record) -> None:
        if self.fail_on is not None and record.text == self.fail_on:
            raise RuntimeError("consumer blew up")
        self.records.append(record)


@pytest.fixture
def stream_request() -> StreamRequest:
    """Pre-authorized request descriptor."""
    return StreamRequest(url=STREAM_URL, bearer_token="test-token")


@pytest.fixture
def consumer() -> CollectingConsumer:
    return CollectingConsumer()


@pytest.fixture
def dispatcher(consumer) -> EventDispatcher:
    """Dispatcher that is not started: submitted records stay buffered."""
    return EventDispatcher(consumer)


@pytest.fixture
def fast_policy() -> BackoffPolicy:
    """Backoff policy with the standard shape scaled down to milliseconds."""
    return BackoffPolicy(
        BackoffSettings(
            linear_step_sec=0.01,
            linear_cap_sec=0.05,
            not_modified_delay_sec=0.01,
            rate_limit_base_sec=0.01,
            server_error_base_sec=0.01,
            server_error_cap_sec=0.08,
        )
    )


@pytest.fixture
def sample_record_line() -> bytes:
    """A record whose text needs sanitizing."""
    return record_line("Hello\n@World #tag\r", record_id="1228393702244134912")
