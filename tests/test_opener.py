"""
HTTPX Connection Opener Tests
=============================

Uses respx to mock the streaming endpoint.
"""

import httpx
import pytest
import respx

from tradefeed_agent.models.outcome import ConnectionOutcome
from tradefeed_agent.stream.errors import TransportFailureError, TransportTimeoutError
from tradefeed_agent.stream.opener import HttpxConnectionOpener, StreamRequest
from tradefeed_agent.stream.session import StreamSession

from conftest import STREAM_URL


BODY = (
    b'{"data": {"id": "1", "text": "first #one"}}\r\n'
    b"\r\n"
    b'{"data": {"id": "2", "text": "second"}}\r\n'
)


class TestStreamRequest:

    def test_headers_include_bearer_token(self):
        request = StreamRequest(url=STREAM_URL, bearer_token="abc", headers={"X-Trace": "1"})
        assert request.build_headers() == {"X-Trace": "1", "Authorization": "Bearer abc"}

    def test_no_token_no_authorization(self):
        assert "Authorization" not in StreamRequest(url=STREAM_URL).build_headers()

    def test_repr_hides_token(self):
        assert "secret" not in repr(StreamRequest(url=STREAM_URL, bearer_token="secret"))


class TestHttpxConnectionOpener:

    @pytest.mark.asyncio
    async def test_streams_body_as_lines(self, stream_request):
        opener = HttpxConnectionOpener()
        with respx.mock:
            route = respx.get(STREAM_URL).mock(return_value=httpx.Response(200, content=BODY))

            async with opener.open(stream_request) as response:
                assert response.status_code == 200
                chunks = [chunk async for chunk in response.aiter_chunks()]

        await opener.aclose()

        assert [c for c in chunks if c] == [
            '{"data": {"id": "1", "text": "first #one"}}',
            '{"data": {"id": "2", "text": "second"}}',
        ]
        assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_error_status_is_exposed(self, stream_request):
        opener = HttpxConnectionOpener()
        with respx.mock:
            respx.get(STREAM_URL).mock(return_value=httpx.Response(429))

            async with opener.open(stream_request) as response:
                assert response.status_code == 429

        await opener.aclose()

    @pytest.mark.asyncio
    async def test_connect_timeout_translated(self, stream_request):
        opener = HttpxConnectionOpener()
        with respx.mock:
            respx.get(STREAM_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

            with pytest.raises(TransportTimeoutError):
                async with opener.open(stream_request):
                    pass

        await opener.aclose()

    @pytest.mark.asyncio
    async def test_connect_error_translated(self, stream_request):
        opener = HttpxConnectionOpener()
        with respx.mock:
            respx.get(STREAM_URL).mock(side_effect=httpx.ConnectError("refused"))

            with pytest.raises(TransportFailureError):
                async with opener.open(stream_request):
                    pass

        await opener.aclose()

    @pytest.mark.asyncio
    async def test_external_client_not_closed(self):
        client = httpx.AsyncClient()
        opener = HttpxConnectionOpener(client=client)

        await opener.aclose()

        assert not client.is_closed
        await client.aclose()


class TestSessionOverHttpx:
    """A full session against a mocked endpoint."""

    @pytest.mark.asyncio
    async def test_records_forwarded(self, stream_request, dispatcher):
        opener = HttpxConnectionOpener()
        with respx.mock:
            respx.get(STREAM_URL).mock(return_value=httpx.Response(200, content=BODY))

            session = StreamSession(opener, stream_request, dispatcher, idle_timeout=5.0)
            result = await session.run()

        await opener.aclose()

        assert result.outcome is ConnectionOutcome.OPENED
        assert result.records_forwarded == 2
        first = await dispatcher.buffer.get()
        assert first.text == "first  one"

    @pytest.mark.asyncio
    async def test_server_error(self, stream_request, dispatcher):
        opener = HttpxConnectionOpener()
        with respx.mock:
            respx.get(STREAM_URL).mock(return_value=httpx.Response(503))

            result = await StreamSession(opener, stream_request, dispatcher).run()

        await opener.aclose()

        assert result.outcome is ConnectionOutcome.SERVER_ERROR
        assert result.status_code == 503
