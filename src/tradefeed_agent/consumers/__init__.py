"""
Consumers Module
================

External sinks for records forwarded by the stream engine.

Components:
    - EventConsumer: Protocol every sink implements
    - LoggingEventConsumer: Default sink that logs each record
"""

from tradefeed_agent.consumers.base import EventConsumer, LoggingEventConsumer

__all__ = [
    "EventConsumer",
    "LoggingEventConsumer",
]
