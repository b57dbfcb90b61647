"""Outbound channels: where relayed bytes reach the client.

A channel is opened at most once and closed at most once. Opening commits a
``200`` status and the SSE headers; there is no way to change the status
afterwards, which is why every failure is reported inside the stream.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, BinaryIO

import anyio
from starlette.types import Send

from agentcore_proxy.common.errors import ChannelClosedError

STREAM_STATUS = 200
SSE_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


class ChannelState(str, Enum):
    """Lifecycle of an outbound channel."""

    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"


class OutboundChannel:
    """Base channel enforcing open-once / close-once / no-write-after-close.

    Subclasses implement ``_send_head``, ``_send_body`` and ``_send_end``.
    Each of them may suspend until the consumer accepts the data.
    """

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = dict(SSE_HEADERS if headers is None else headers)
        self.state = ChannelState.PENDING

    @property
    def is_open(self) -> bool:
        return self.state is ChannelState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state is ChannelState.CLOSED

    async def open(self) -> None:
        if self.state is ChannelState.CLOSED:
            raise ChannelClosedError("Outbound channel is already closed")
        if self.state is ChannelState.OPEN:
            return
        # Mark open first: a failed head write must not be retried.
        self.state = ChannelState.OPEN
        await self._send_head(STREAM_STATUS, self.headers)

    async def write(self, data: bytes) -> None:
        if self.state is ChannelState.CLOSED:
            raise ChannelClosedError("Write after close on outbound channel")
        if self.state is ChannelState.PENDING:
            await self.open()
        await self._send_body(data)

    async def close(self) -> None:
        if self.state is ChannelState.CLOSED:
            return
        was_open = self.state is ChannelState.OPEN
        self.state = ChannelState.CLOSED
        await self._send_end(was_open)

    async def _send_head(self, status: int, headers: dict[str, str]) -> None:
        raise NotImplementedError

    async def _send_body(self, data: bytes) -> None:
        raise NotImplementedError

    async def _send_end(self, was_open: bool) -> None:
        raise NotImplementedError


class ASGIOutboundChannel(OutboundChannel):
    """Channel over an ASGI ``send`` callable.

    The server's ``send`` returns only once it can take more data, so each
    write is a flow-control point for the relay.
    """

    def __init__(self, send: Send, headers: dict[str, str] | None = None) -> None:
        super().__init__(headers)
        self._send = send

    async def _send_head(self, status: int, headers: dict[str, str]) -> None:
        await self._send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [
                    (name.lower().encode("latin-1"), value.encode("latin-1"))
                    for name, value in headers.items()
                ],
            }
        )

    async def _send_body(self, data: bytes) -> None:
        await self._send({"type": "http.response.body", "body": data, "more_body": True})

    async def _send_end(self, was_open: bool) -> None:
        if not was_open:
            # An ASGI response must start before it can end.
            await self._send_head(STREAM_STATUS, self.headers)
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


class FileOutboundChannel(OutboundChannel):
    """Channel writing to a binary file object, flushing after every chunk.

    With ``include_head`` the status line and headers are written first, as
    ``curl -i`` would show them.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        include_head: bool = False,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(headers)
        self._file: Any = anyio.wrap_file(fileobj)
        self._include_head = include_head

    async def _send_head(self, status: int, headers: dict[str, str]) -> None:
        if not self._include_head:
            return
        lines = [f"HTTP/1.1 {status} OK"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        await self._file.write(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))
        await self._file.flush()

    async def _send_body(self, data: bytes) -> None:
        await self._file.write(data)
        await self._file.flush()

    async def _send_end(self, was_open: bool) -> None:
        await self._file.flush()
