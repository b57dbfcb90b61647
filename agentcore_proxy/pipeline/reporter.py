"""Failure reporting inside the event stream.

Error records share the framing of backend records and are told apart by
their top-level ``error`` key::

    data: {"error": "<message>", "code": "<category>"}

The message is the underlying error text, passed through verbatim.
"""

from __future__ import annotations

import json

from agentcore_proxy.common.errors import ReportingFailure, error_code, error_message
from agentcore_proxy.pipeline.channel import OutboundChannel
from agentcore_proxy.utils.logging import get_logger

logger = get_logger("agentcore_proxy.pipeline.reporter")


def format_error_frame(exc: BaseException) -> bytes:
    """Render ``exc`` as one SSE error record."""
    payload = {"error": error_message(exc), "code": error_code(exc)}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


class FailureReporter:
    """Writes one diagnostic frame and closes the channel, whatever happens."""

    async def report(self, channel: OutboundChannel, exc: BaseException) -> bool:
        """Report ``exc`` on ``channel`` and close it.

        Opens the channel first when needed. A failure while writing the
        frame or closing the channel is logged and dropped.

        Returns:
            True when the error frame was written
        """
        delivered = False
        try:
            if not channel.is_open:
                await channel.open()
            await channel.write(format_error_frame(exc))
            delivered = True
        except Exception as write_exc:
            failure = ReportingFailure(f"Error stream write failed: {write_exc}")
            logger.warning(f"{failure.message} (while reporting {error_code(exc)})")
        finally:
            try:
                await channel.close()
            except Exception as close_exc:
                logger.warning(f"Closing the outbound channel failed: {close_exc}")
        return delivered
