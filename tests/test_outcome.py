"""
Connection Outcome Tests
========================
"""

import pytest

from tradefeed_agent.models.outcome import ConnectionOutcome, SessionResult


class TestFromStatus:
    """HTTP status classification."""

    @pytest.mark.parametrize(
        "status, expected",
        [
            (200, ConnectionOutcome.OPENED),
            (204, ConnectionOutcome.OPENED),
            (299, ConnectionOutcome.OPENED),
            (304, ConnectionOutcome.NOT_MODIFIED),
            (420, ConnectionOutcome.RATE_LIMITED),
            (429, ConnectionOutcome.RATE_LIMITED),
            (500, ConnectionOutcome.SERVER_ERROR),
            (503, ConnectionOutcome.SERVER_ERROR),
            (599, ConnectionOutcome.SERVER_ERROR),
            (301, ConnectionOutcome.CLIENT_ERROR),
            (400, ConnectionOutcome.CLIENT_ERROR),
            (401, ConnectionOutcome.CLIENT_ERROR),
            (403, ConnectionOutcome.CLIENT_ERROR),
            (404, ConnectionOutcome.CLIENT_ERROR),
        ],
    )
    def test_mapping(self, status, expected):
        assert ConnectionOutcome.from_status(status) is expected

    def test_fatal_outcomes(self):
        fatal = {o for o in ConnectionOutcome if o.is_fatal}
        assert fatal == {ConnectionOutcome.CLIENT_ERROR, ConnectionOutcome.FATAL_TRANSPORT}


class TestSessionResult:

    def test_defaults(self):
        result = SessionResult(ConnectionOutcome.SELF_TIMEOUT)
        assert result.status_code is None
        assert result.records_forwarded == 0
        assert "SELF_TIMEOUT" in repr(result)
