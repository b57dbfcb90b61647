"""Backend invocation against a Bedrock AgentCore runtime.

The proxy calls the ``InvokeAgentRuntime`` REST operation directly over a
shared ``httpx.AsyncClient`` so that the response body can be consumed chunk
by chunk as it arrives, and read only as fast as the client drains it.
Requests are signed with SigV4 using credentials from the boto3 default
chain.

Invocation is at-most-once: agent runs are billable and mutate session
state, so nothing here retries.
"""

from __future__ import annotations

import json
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote, urlencode

import anyio
import boto3
import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError

from agentcore_proxy.common.errors import (
    BackendAuthorizationError,
    BackendUnavailable,
    ProxyError,
)
from agentcore_proxy.common.models import (
    BackendInvocation,
    BackendTarget,
    InvocationRequest,
)
from agentcore_proxy.settings import BackendSettings
from agentcore_proxy.utils.logging import get_logger

logger = get_logger("agentcore_proxy.pipeline.invoker")

SERVICE_NAME = "bedrock-agentcore"
SESSION_ID_HEADER = "X-Amzn-Bedrock-AgentCore-Runtime-Session-Id"
_AUTH_STATUS_CODES = frozenset({401, 403})


class BackendStream(Protocol):
    """Readable byte stream returned by a backend invocation."""

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class AgentBackend(Protocol):
    """Anything that can start an agent run and hand back its output stream."""

    async def invoke(self, invocation: BackendInvocation) -> BackendStream: ...


class HttpxBackendStream:
    """Body of a streaming ``httpx`` response, chunk boundaries preserved.

    The request asks for an uncompressed body, which is relayed raw. A body
    the runtime compresses anyway is decoded before it is relayed.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def content_type(self) -> str:
        return self._response.headers.get("content-type", "")

    @property
    def is_encoded(self) -> bool:
        encoding = self._response.headers.get("content-encoding", "identity")
        return encoding.strip().lower() not in ("", "identity")

    async def __aiter__(self) -> AsyncIterator[bytes]:
        chunks = self._response.aiter_bytes() if self.is_encoded else self._response.aiter_raw()
        async for chunk in chunks:
            yield chunk

    async def aclose(self) -> None:
        await self._response.aclose()


def create_http_client(settings: BackendSettings) -> httpx.AsyncClient:
    """Build the process-wide client used for every backend call."""
    timeout = httpx.Timeout(
        connect=settings.connect_timeout,
        read=settings.read_timeout,
        write=settings.connect_timeout,
        pool=settings.connect_timeout,
    )
    return httpx.AsyncClient(timeout=timeout)


def _extract_error_message(response: httpx.Response, body: bytes) -> str:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("Message")
        if message:
            return str(message)
    text = body.decode("utf-8", errors="replace").strip()
    if text:
        return text
    error_type = response.headers.get("x-amzn-errortype", "").split(":", 1)[0]
    return error_type or f"AgentCore returned HTTP {response.status_code}"


class AgentCoreBackend:
    """Calls ``InvokeAgentRuntime`` and returns the live response stream.

    Args:
        client: Shared HTTP client; owned by the caller
        region: AWS region of the runtime
        endpoint_url: Override for the data-plane endpoint
        credentials: Explicit botocore credentials; resolved from the boto3
            default chain when omitted
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        region: str,
        endpoint_url: str | None = None,
        credentials: Any = None,
    ) -> None:
        self._client = client
        self._region = region
        self._endpoint_url = (
            endpoint_url or f"https://{SERVICE_NAME}.{region}.amazonaws.com"
        ).rstrip("/")
        self._credentials = credentials
        self._session = boto3.Session(region_name=region) if credentials is None else None

    @classmethod
    def from_settings(
        cls, client: httpx.AsyncClient, settings: BackendSettings
    ) -> AgentCoreBackend:
        return cls(client, settings.region, endpoint_url=settings.endpoint_url)

    def _frozen_credentials(self) -> Any:
        try:
            credentials = self._credentials or self._session.get_credentials()
            if credentials is None:
                raise BackendAuthorizationError("Unable to locate AWS credentials")
            return credentials.get_frozen_credentials()
        except BotoCoreError as exc:
            raise BackendAuthorizationError(str(exc)) from exc

    def build_request(
        self, invocation: BackendInvocation, credentials: Any
    ) -> httpx.Request:
        """Build the signed ``InvokeAgentRuntime`` request."""
        target = invocation.target
        url = (
            f"{self._endpoint_url}/runtimes/{quote(target.runtime_arn, safe='')}"
            f"/invocations?{urlencode({'qualifier': target.qualifier})}"
        )
        body = invocation.payload()
        aws_request = AWSRequest(
            method="POST",
            url=url,
            data=body,
            headers={
                "Content-Type": "application/json",
                "Accept": "text/event-stream, application/json",
                "Accept-Encoding": "identity",
                SESSION_ID_HEADER: invocation.session_id,
            },
        )
        SigV4Auth(credentials, SERVICE_NAME, self._region).add_auth(aws_request)
        return self._client.build_request(
            "POST", url, content=body, headers=dict(aws_request.headers.items())
        )

    async def invoke(self, invocation: BackendInvocation) -> HttpxBackendStream:
        credentials = await anyio.to_thread.run_sync(self._frozen_credentials)
        request = self.build_request(invocation, credentials)

        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise BackendUnavailable(f"AgentCore request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"AgentCore is unreachable: {exc}") from exc

        if response.is_success and response.status_code != 204:
            return HttpxBackendStream(response)

        try:
            body = await response.aread()
        except httpx.HTTPError:
            body = b""
        finally:
            await response.aclose()

        if response.status_code == 204:
            raise BackendUnavailable("AgentCore returned no response stream")

        message = _extract_error_message(response, body)
        if response.status_code in _AUTH_STATUS_CODES:
            raise BackendAuthorizationError(message)
        raise BackendUnavailable(message)


@dataclass
class BackendInvoker:
    """Issues exactly one backend call per request."""

    backend: AgentBackend
    target: BackendTarget

    async def invoke(self, request: InvocationRequest) -> BackendStream:
        invocation = BackendInvocation(request=request, target=self.target)
        logger.info(
            f"Calling AgentCore runtime {self.target.runtime_arn} "
            f"(qualifier={self.target.qualifier}, session={request.session_id})"
        )
        started = time.perf_counter()
        try:
            stream = await self.backend.invoke(invocation)
        except ProxyError:
            raise
        except Exception as exc:
            raise BackendUnavailable(str(exc) or type(exc).__name__) from exc

        if stream is None:
            raise BackendUnavailable("AgentCore returned no response stream")

        logger.info(
            f"Received response in {time.perf_counter() - started:.2f}s, "
            "initiating stream transfer"
        )
        return stream
