"""
Frame Classifier Tests
======================

Heartbeat detection and text sanitization.
"""

import json

import pytest

from tradefeed_agent.models.event import HEARTBEAT, Heartbeat, Record
from tradefeed_agent.stream.classifier import classify, sanitize_text


class TestHeartbeats:
    """Anything that is not a record is a heartbeat."""

    @pytest.mark.parametrize(
        "chunk",
        [
            b"",
            b"\r\n",
            "   ",
            b"not json at all",
            b'{"data": {"te',
            b'{"foo": 1}',
            b'{"data": {}}',
            b'{"data": {"text": 42}}',
            b'{"data": "flat"}',
            b"[1, 2, 3]",
            b"\xff\xfe\xfd",
        ],
    )
    def test_undecodable_chunk_is_heartbeat(self, chunk):
        """Malformed, partial or incomplete chunks classify as heartbeats."""
        assert isinstance(classify(chunk), Heartbeat)

    def test_heartbeat_is_singleton_value(self):
        assert classify(b"") == HEARTBEAT


class TestRecords:
    """Decodable records carry sanitized payloads."""

    def test_sanitizes_text(self, sample_record_line):
        """Each CR, LF, '@' and '#' becomes one space."""
        event = classify(sample_record_line)

        assert isinstance(event, Record)
        assert event.text == "Hello  World  tag "
        assert event.record_id == "1228393702244134912"

    def test_accepts_text_chunks(self):
        event = classify('{"data": {"text": "plain"}}')
        assert isinstance(event, Record)
        assert event.text == "plain"
        assert event.record_id is None

    def test_numeric_id_is_stringified(self):
        event = classify(b'{"data": {"id": 123, "text": "x"}}')
        assert event.record_id == "123"

    def test_sanitizes_every_textual_field(self):
        """Extra fields in data are preserved and sanitized too."""
        chunk = json.dumps({
            "data": {
                "id": "7",
                "text": "#a",
                "author": "@someone",
                "entities": {"hashtags": ["#x", "#y"], "count": 2},
            },
            "matching_rules": [{"id": "r1"}],
        })
        event = classify(chunk)

        assert event.data["text"] == " a"
        assert event.data["author"] == " someone"
        assert event.data["entities"] == {"hashtags": [" x", " y"], "count": 2}

    def test_surrounding_whitespace_is_tolerated(self):
        event = classify(b'  {"data": {"text": "hi"}}\r\n')
        assert isinstance(event, Record)


class TestSanitizeText:

    def test_crlf_becomes_two_spaces(self):
        assert sanitize_text("a\r\nb") == "a  b"

    def test_length_is_preserved(self):
        text = "@@##\r\n\n\rabc"
        assert len(sanitize_text(text)) == len(text)

    def test_other_characters_untouched(self):
        text = "Tariffs $HOG -5% (E.U.) \t ok"
        assert sanitize_text(text) == text
