"""
Reconnect Backoff Policy
========================

Deterministic mapping from a ConnectionOutcome to a reconnect delay and
a retry action.

This module implements the rules for how long to wait before reopening
the stream:

    Outcome             New backoff                          Action
    OPENED              0                                    CONTINUE
    SELF_TIMEOUT        0                                    RETRY_IMMEDIATELY
    TRANSPORT_TIMEOUT   state + 0.25s, capped at 16s         RETRY_AFTER_DELAY
    NOT_MODIFIED        60s                                  RETRY_AFTER_DELAY
    RATE_LIMITED        60s if state is 0, else state x 2    RETRY_AFTER_DELAY
    SERVER_ERROR        5s if state is 0, else state x 2,    RETRY_AFTER_DELAY
                        capped at 320s
    CLIENT_ERROR        unchanged                            TERMINATE
    FATAL_TRANSPORT     unchanged                            TERMINATE

Key Features:
    - Pure: decide() never touches timers, sockets or globals
    - ONE shared backoff value across all outcome kinds
    - Rate-limit doubling is deliberately uncapped
    - Constants configurable through BackoffSettings
"""

import logging
from dataclasses import dataclass

from tradefeed_agent.models.outcome import ConnectionOutcome, RetryAction


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackoffSettings:
    """
    Backoff constants.

    Loaded from configuration file.
    """

    # Transport timeouts: linear ramp
    linear_step_sec: float = 0.25
    linear_cap_sec: float = 16.0

    # HTTP 304
    not_modified_delay_sec: float = 60.0

    # HTTP 420/429: exponential, uncapped
    rate_limit_base_sec: float = 60.0

    # HTTP 5xx: exponential, capped
    server_error_base_sec: float = 5.0
    server_error_cap_sec: float = 320.0


@dataclass(frozen=True, slots=True)
class BackoffState:
    """
    The single reconnect delay carried across attempts.

    Attributes:
        delay: Current backoff magnitude in seconds (>= 0)
    """

    delay: float = 0.0

    def __post_init__(self) -> None:
        if self.delay < 0:
            raise ValueError("backoff delay must be >= 0")


@dataclass(frozen=True, slots=True)
class BackoffDecision:
    """Result of a policy decision."""

    delay: float
    state: BackoffState
    action: RetryAction

    def __repr__(self) -> str:
        return f"BackoffDecision({self.action.value}, delay={self.delay:.2f}s)"


INITIAL_STATE = BackoffState()


class BackoffPolicy:
    """
    Reconnect backoff policy.

    Maps each ConnectionOutcome and the current BackoffState to the next
    state, the delay to wait, and the action the engine must take. The
    state is passed in and returned by value; the policy itself holds
    only constants.

    Example:
        policy = BackoffPolicy()
        state = INITIAL_STATE

        decision = policy.decide(ConnectionOutcome.SERVER_ERROR, state)
        state = decision.state  # delay == 5.0
    """

    def __init__(self, settings: BackoffSettings = BackoffSettings()) -> None:
        """
        Initialize backoff policy.

        Args:
            settings: Backoff constants
        """
        self.settings = settings

    def decide(self, outcome: ConnectionOutcome, state: BackoffState) -> BackoffDecision:
        """
        Compute the next backoff state and action for an outcome.

        Args:
            outcome: Classified result of a connection attempt
            state: Backoff state before this outcome

        Returns:
            BackoffDecision with the delay to wait, the new state and the action
        """
        s = self.settings
        previous = state.delay

        if outcome is ConnectionOutcome.OPENED:
            return BackoffDecision(0.0, INITIAL_STATE, RetryAction.CONTINUE)

        if outcome is ConnectionOutcome.SELF_TIMEOUT:
            return BackoffDecision(0.0, INITIAL_STATE, RetryAction.RETRY_IMMEDIATELY)

        if outcome is ConnectionOutcome.TRANSPORT_TIMEOUT:
            delay = min(previous + s.linear_step_sec, s.linear_cap_sec)
            return self._retry_after(delay)

        if outcome is ConnectionOutcome.NOT_MODIFIED:
            return self._retry_after(s.not_modified_delay_sec)

        if outcome is ConnectionOutcome.RATE_LIMITED:
            delay = s.rate_limit_base_sec if previous == 0 else previous * 2
            return self._retry_after(delay)

        if outcome is ConnectionOutcome.SERVER_ERROR:
            if previous == 0:
                delay = s.server_error_base_sec
            else:
                delay = min(previous * 2, s.server_error_cap_sec)
            return self._retry_after(delay)

        # CLIENT_ERROR, FATAL_TRANSPORT
        return BackoffDecision(0.0, state, RetryAction.TERMINATE)

    @staticmethod
    def _retry_after(delay: float) -> BackoffDecision:
        return BackoffDecision(delay, BackoffState(delay), RetryAction.RETRY_AFTER_DELAY)
