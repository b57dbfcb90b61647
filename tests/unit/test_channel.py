"""Tests for outbound channel lifecycle rules and transports."""

import io

import pytest

from agentcore_proxy.common.errors import ChannelClosedError
from agentcore_proxy.pipeline.channel import (
    SSE_HEADERS,
    ASGIOutboundChannel,
    ChannelState,
    FileOutboundChannel,
)
from tests.mocks import RecordingChannel


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_open_is_idempotent(self):
        channel = RecordingChannel()
        await channel.open()
        await channel.open()

        assert channel.open_count == 1
        assert channel.state is ChannelState.OPEN

    @pytest.mark.asyncio
    async def test_open_commits_200_and_sse_headers(self):
        channel = RecordingChannel()
        await channel.open()

        _, status, headers = channel.events[0]
        assert status == 200
        assert headers["Content-Type"] == "text/event-stream"
        assert headers["Cache-Control"] == "no-cache"
        assert headers["X-Accel-Buffering"] == "no"

    @pytest.mark.asyncio
    async def test_write_before_open_opens(self):
        channel = RecordingChannel()
        await channel.write(b"data: {}\n\n")

        assert [event[0] for event in channel.events] == ["open", "write"]

    @pytest.mark.asyncio
    async def test_close_happens_once(self):
        channel = RecordingChannel()
        await channel.open()
        await channel.close()
        await channel.close()

        assert channel.close_count == 1
        assert channel.is_closed

    @pytest.mark.asyncio
    async def test_write_after_close_raises(self):
        channel = RecordingChannel()
        await channel.open()
        await channel.close()

        with pytest.raises(ChannelClosedError):
            await channel.write(b"late")
        assert channel.writes == []

    @pytest.mark.asyncio
    async def test_open_after_close_raises(self):
        channel = RecordingChannel()
        await channel.close()

        with pytest.raises(ChannelClosedError):
            await channel.open()


class TestASGIChannel:
    @pytest.mark.asyncio
    async def test_message_sequence(self):
        messages = []

        async def send(message):
            messages.append(message)

        channel = ASGIOutboundChannel(send)
        await channel.open()
        await channel.write(b"data: a\n\n")
        await channel.close()

        assert messages[0]["type"] == "http.response.start"
        assert messages[0]["status"] == 200
        assert (b"content-type", b"text/event-stream") in messages[0]["headers"]
        assert (b"x-accel-buffering", b"no") in messages[0]["headers"]
        assert messages[1] == {
            "type": "http.response.body",
            "body": b"data: a\n\n",
            "more_body": True,
        }
        assert messages[2] == {"type": "http.response.body", "body": b"", "more_body": False}

    @pytest.mark.asyncio
    async def test_close_without_open_still_starts_response(self):
        messages = []

        async def send(message):
            messages.append(message)

        await ASGIOutboundChannel(send).close()

        assert [m["type"] for m in messages] == ["http.response.start", "http.response.body"]
        assert messages[-1]["more_body"] is False

    @pytest.mark.asyncio
    async def test_failed_head_is_not_resent(self):
        calls = 0

        async def send(message):
            nonlocal calls
            calls += 1
            raise OSError("disconnected")

        channel = ASGIOutboundChannel(send)
        with pytest.raises(OSError):
            await channel.open()
        await channel.open()

        assert calls == 1


class TestFileChannel:
    @pytest.mark.asyncio
    async def test_writes_body_only(self):
        buffer = io.BytesIO()
        channel = FileOutboundChannel(buffer)
        await channel.write(b"data: a\n\n")
        await channel.close()

        assert buffer.getvalue() == b"data: a\n\n"

    @pytest.mark.asyncio
    async def test_include_head(self):
        buffer = io.BytesIO()
        channel = FileOutboundChannel(buffer, include_head=True)
        await channel.write(b"data: a\n\n")
        await channel.close()

        output = buffer.getvalue()
        assert output.startswith(b"HTTP/1.1 200 OK\r\n")
        for name, value in SSE_HEADERS.items():
            assert f"{name}: {value}".encode() in output
        assert output.endswith(b"\r\n\r\ndata: a\n\n")
