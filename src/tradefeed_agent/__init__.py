"""
TradeFeedAgent
==============

Resilient consumer for a long-lived HTTP streaming feed of JSON events.

This package keeps a single streaming connection alive indefinitely:
it detects idle connections with a watchdog, classifies every failure
into a named outcome, reconnects with outcome-specific backoff, and hands
each sanitized record to an external event consumer.

Components:
    - models: Outcomes, parsed events and the record wire schema
    - backoff: Pure reconnect backoff policy
    - stream: Classifier, watchdog, opener, session and engine
    - consumers: Event consumer protocol and default logging sink

Example:
    from tradefeed_agent.config import settings

    # Engine is started via FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "TradeFeed Project"

__all__ = [
    "__version__",
]
