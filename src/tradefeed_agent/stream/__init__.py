"""
Stream Module
=============

Resilient consumption of a long-lived HTTP streaming feed.

This module provides the ingestion layer for TradeFeedAgent:
    - classify: Raw chunk -> Heartbeat | Record (sanitized)
    - IdleWatchdog: Rearmable idle timer racing the connection attempt
    - HttpxConnectionOpener: Opens the pre-authorized streaming request
    - StreamSession: One physical connection attempt -> one outcome
    - StreamEngine: Reconnect loop driven by the BackoffPolicy
    - EventBuffer / EventDispatcher: Non-blocking hand-off to the consumer

Example:
    from tradefeed_agent.consumers import LoggingEventConsumer
    from tradefeed_agent.stream import (
        EventDispatcher,
        HttpxConnectionOpener,
        StreamEngine,
        StreamRequest,
    )

    engine = StreamEngine(
        opener=HttpxConnectionOpener(),
        request=StreamRequest(url=url, bearer_token=token),
        dispatcher=EventDispatcher(LoggingEventConsumer()),
    )

    # Runs until stop() or a fatal outcome (StreamFatalError)
    task = asyncio.create_task(engine.run())
"""

from tradefeed_agent.stream.buffer import EventBuffer
from tradefeed_agent.stream.classifier import classify, sanitize_text
from tradefeed_agent.stream.dispatcher import EventDispatcher
from tradefeed_agent.stream.engine import EngineMetrics, StreamEngine
from tradefeed_agent.stream.errors import (
    StreamError,
    StreamFatalError,
    TransportFailureError,
    TransportTimeoutError,
)
from tradefeed_agent.stream.opener import (
    ConnectionOpener,
    HttpxConnectionOpener,
    StreamRequest,
    StreamResponse,
)
from tradefeed_agent.stream.session import StreamSession
from tradefeed_agent.stream.watchdog import DEFAULT_IDLE_TIMEOUT_SEC, Clock, IdleWatchdog


__all__ = [
    "classify",
    "sanitize_text",
    "EventBuffer",
    "EventDispatcher",
    "EngineMetrics",
    "StreamEngine",
    "StreamError",
    "StreamFatalError",
    "TransportFailureError",
    "TransportTimeoutError",
    "ConnectionOpener",
    "HttpxConnectionOpener",
    "StreamRequest",
    "StreamResponse",
    "StreamSession",
    "DEFAULT_IDLE_TIMEOUT_SEC",
    "Clock",
    "IdleWatchdog",
]
