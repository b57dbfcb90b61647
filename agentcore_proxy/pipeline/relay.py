"""Byte relay from the backend stream to the outbound channel."""

from __future__ import annotations

from dataclasses import dataclass

from agentcore_proxy.common.errors import ChannelClosedError, RelayIOError
from agentcore_proxy.pipeline.channel import OutboundChannel
from agentcore_proxy.pipeline.invoker import BackendStream
from agentcore_proxy.utils.logging import get_logger

logger = get_logger("agentcore_proxy.pipeline.relay")


@dataclass
class RelayResult:
    chunks: int = 0
    bytes: int = 0


async def relay(
    source: BackendStream,
    channel: OutboundChannel,
    result: RelayResult | None = None,
) -> RelayResult:
    """Forward every chunk from ``source`` to ``channel`` in arrival order.

    The next chunk is not read until the channel has accepted the previous
    one, so a slow client pauses the backend read instead of growing a
    buffer. Chunks are written as received; the backend already emits SSE
    records.

    The channel is opened before the first read, so the client gets the
    response headers while the backend is still producing. It is left open
    on both success and failure: closing it (after the error frame, on
    failure) is the caller's job. ``source`` is always closed.

    Args:
        source: Backend byte stream
        channel: Open (or pending) outbound channel
        result: Counter to update in place, so partial progress survives a
            failure

    Raises:
        RelayIOError: Reading from the backend or writing to the client failed
    """
    result = result if result is not None else RelayResult()
    try:
        try:
            await channel.open()
        except Exception as exc:
            raise RelayIOError(f"Opening the client stream failed: {exc}") from exc

        iterator = source.__aiter__()
        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except Exception as exc:
                raise RelayIOError(
                    f"Backend stream failed after {result.chunks} chunks: {exc}"
                ) from exc

            if not chunk:
                continue

            try:
                await channel.write(chunk)
            except ChannelClosedError:
                raise
            except Exception as exc:
                raise RelayIOError(f"Client stream write failed: {exc}") from exc

            result.chunks += 1
            result.bytes += len(chunk)
    finally:
        try:
            await source.aclose()
        except Exception:
            logger.opt(exception=True).warning("Failed to close backend stream")

    return result
