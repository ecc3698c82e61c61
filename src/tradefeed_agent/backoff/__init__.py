"""
Backoff Module
==============

Reconnect backoff policy for the stream engine.

Components:
    - BackoffPolicy: Pure outcome -> (delay, state, action) mapping
    - BackoffState: The single shared backoff value
    - BackoffSettings: Configurable constants
"""

from tradefeed_agent.backoff.policy import (
    INITIAL_STATE,
    BackoffDecision,
    BackoffPolicy,
    BackoffSettings,
    BackoffState,
)

__all__ = [
    "INITIAL_STATE",
    "BackoffDecision",
    "BackoffPolicy",
    "BackoffSettings",
    "BackoffState",
]
