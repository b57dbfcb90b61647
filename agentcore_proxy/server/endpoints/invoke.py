"""Streaming proxy endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from agentcore_proxy.common.models import InvocationRecord
from agentcore_proxy.pipeline.channel import SSE_HEADERS, STREAM_STATUS, ASGIOutboundChannel
from agentcore_proxy.pipeline.proxy import StreamingProxy
from agentcore_proxy.utils.logging import get_logger

if TYPE_CHECKING:
    from agentcore_proxy.server.applications import ProxyApplication

logger = get_logger("agentcore_proxy.server.endpoints.invoke")


class ProxyStreamResponse(Response):
    """ASGI response that runs the proxy pipeline against the raw ``send``.

    Unlike ``StreamingResponse`` the status line and headers are not sent up
    front: the pipeline opens the channel itself once the backend has
    answered (or when it has a failure to report). The status is always 200.
    """

    media_type = SSE_HEADERS["Content-Type"]

    def __init__(
        self,
        proxy: StreamingProxy,
        record: InvocationRecord,
        request_id: str | None = None,
    ) -> None:
        self.proxy = proxy
        self.record = record
        self.request_id = request_id
        self.status_code = STREAM_STATUS
        self.background = None
        self.init_headers(SSE_HEADERS)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        headers = dict(SSE_HEADERS)
        if self.request_id:
            headers["X-Request-ID"] = self.request_id
        channel = ASGIOutboundChannel(send, headers=headers)
        await self.proxy.handle(self.record, channel, request_id=self.request_id)


async def invoke_endpoint(app: ProxyApplication, request: Request) -> Response:
    """Relay one prompt to the agent runtime as a Server-Sent-Events stream.

    Accepts ``POST`` with ``{"prompt": ..., "sessionId": ...}`` and ``GET``
    with ``?prompt=...&sessionId=...``; anything else falls back to the
    default prompt.
    """
    request_id = request.headers.get("x-request-id") or uuid4().hex
    record = await InvocationRecord.from_request(request)
    logger.debug(f"{request.method} {request.url.path} accepted (request_id={request_id})")
    return ProxyStreamResponse(app.proxy, record, request_id=request_id)
