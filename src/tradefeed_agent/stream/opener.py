"""
Connection Opener
=================

Boundary between the stream engine and the network.

This module provides:
    - StreamRequest: pre-authorized request descriptor (URL + bearer token)
    - StreamResponse: protocol for an open streaming response
    - ConnectionOpener: protocol for anything that can open one
    - HttpxConnectionOpener: httpx implementation

The engine never authenticates. It receives a StreamRequest whose bearer
token is already valid and hands it to the opener on every attempt.

Design Rules:
    - The response body is framed into lines so a record split across
      TCP chunks is reassembled before classification
    - httpx timeouts become TransportTimeoutError
    - Every other httpx transport error becomes TransportFailureError
    - Leaving the `open()` context closes the response and its socket
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Dict, Optional, Protocol

import httpx

from tradefeed_agent.models.event import RawChunk
from tradefeed_agent.stream.errors import TransportFailureError, TransportTimeoutError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamRequest:
    """
    Pre-authorized streaming request.

    Attributes:
        url: Streaming endpoint
        bearer_token: Already-valid bearer credential (may be empty)
        headers: Extra request headers
    """

    url: str
    bearer_token: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    def build_headers(self) -> Dict[str, str]:
        """Headers to send, including Authorization when a token is set."""
        headers = dict(self.headers)
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers

    def __repr__(self) -> str:
        """Repr that never prints the credential."""
        return f"StreamRequest(url={self.url!r})"


class StreamResponse(Protocol):
    """
    Protocol for an open streaming response.

    Implementations expose the status code, an async sequence of raw
    chunks, and a way to cancel the in-flight read.
    """

    @property
    def status_code(self) -> int:
        ...

    def aiter_chunks(self) -> AsyncIterator[RawChunk]:
        ...

    async def aclose(self) -> None:
        ...


class ConnectionOpener(Protocol):
    """
    Protocol for connection openers.

    `open()` returns an async context manager yielding a StreamResponse.
    It may raise TransportTimeoutError or TransportFailureError, both on
    entry and while chunks are iterated.
    """

    def open(self, request: StreamRequest) -> AsyncContextManager[StreamResponse]:
        ...


class HttpxStreamResponse:
    """StreamResponse backed by an httpx.Response opened in stream mode."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def aiter_chunks(self) -> AsyncIterator[RawChunk]:
        """Yield one chunk per line of the body (blank keep-alives included)."""
        try:
            async for line in self._response.aiter_lines():
                yield line
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"{type(e).__name__}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailureError(f"{type(e).__name__}: {e}") from e

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpxConnectionOpener:
    """
    Connection opener built on httpx.AsyncClient.

    The read timeout is disabled by default: idle detection belongs to
    the IdleWatchdog, and a transport read timeout would race it.

    Attributes:
        connect_timeout: Seconds allowed to establish the connection
        read_timeout: Seconds allowed between bytes (None = disabled)

    Example:
        opener = HttpxConnectionOpener(connect_timeout=30.0)
        request = StreamRequest(url=url, bearer_token=token)

        async with opener.open(request) as response:
            async for chunk in response.aiter_chunks():
                ...

        await opener.aclose()
    """

    def __init__(
        self,
        connect_timeout: float = 30.0,
        read_timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize opener.

        Args:
            connect_timeout: Connect/write/pool timeout in seconds
            read_timeout: Read timeout in seconds (None = disabled)
            client: Pre-built client (ownership stays with the caller)
        """
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=connect_timeout,
                read=read_timeout,
                write=connect_timeout,
                pool=connect_timeout,
            ),
            follow_redirects=True,
        )

    @asynccontextmanager
    async def open(self, request: StreamRequest) -> AsyncIterator[HttpxStreamResponse]:
        """
        Open the streaming request.

        Args:
            request: Pre-authorized request descriptor

        Yields:
            HttpxStreamResponse; closed on exit
        """
        logger.debug(f"Opening stream: {request.url}")
        try:
            async with self._client.stream(
                "GET",
                request.url,
                headers=request.build_headers(),
            ) as response:
                yield HttpxStreamResponse(response)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"{type(e).__name__}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailureError(f"{type(e).__name__}: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying client if this opener created it."""
        if self._owns_client:
            await self._client.aclose()
