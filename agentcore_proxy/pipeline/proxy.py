"""The streaming-proxy pipeline.

One ``ProxyPipeline`` handles one client request end to end::

    normalize -> assign session -> invoke backend -> relay -> close
                     \\______________ any failure ______________/
                                        |
                                 report + close

Its progress is an explicit state machine:

    IDLE     -> INVOKING | CLOSED
    INVOKING -> RELAYING | CLOSED
    RELAYING -> CLOSED
    CLOSED   -> (terminal)

``StreamingProxy`` holds the process-wide collaborators (backend client,
target, stats) and creates a fresh pipeline per request, so no mutable state
is shared between requests.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from agentcore_proxy.common.errors import RelayIOError, error_code
from agentcore_proxy.common.models import BackendTarget, InvocationRecord
from agentcore_proxy.pipeline.channel import OutboundChannel
from agentcore_proxy.pipeline.invoker import AgentBackend, BackendInvoker
from agentcore_proxy.pipeline.normalizer import classify, normalize
from agentcore_proxy.pipeline.relay import RelayResult, relay
from agentcore_proxy.pipeline.reporter import FailureReporter
from agentcore_proxy.pipeline.session import assign_session_id
from agentcore_proxy.pipeline.stats import RelayStatsRegistry, relay_stats_registry
from agentcore_proxy.settings import DEFAULT_PROMPT
from agentcore_proxy.utils.logging import get_logger

logger = get_logger("agentcore_proxy.pipeline.proxy")
_tracer = trace.get_tracer("agentcore_proxy.pipeline.proxy")


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    IDLE = "idle"
    INVOKING = "invoking"
    RELAYING = "relaying"
    CLOSED = "closed"


_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.INVOKING, PipelineState.CLOSED}),
    PipelineState.INVOKING: frozenset({PipelineState.RELAYING, PipelineState.CLOSED}),
    PipelineState.RELAYING: frozenset({PipelineState.CLOSED}),
    PipelineState.CLOSED: frozenset(),
}


class ProxyPipeline:
    """Runs one request through the pipeline against one outbound channel."""

    def __init__(
        self,
        invoker: BackendInvoker,
        channel: OutboundChannel,
        reporter: FailureReporter,
        default_prompt: str = DEFAULT_PROMPT,
    ) -> None:
        self.invoker = invoker
        self.channel = channel
        self.reporter = reporter
        self.default_prompt = default_prompt
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]
        self.result = RelayResult()
        self.session_id: str | None = None
        self.error: BaseException | None = None

    def _transition(self, new_state: PipelineState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal pipeline transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    async def run(self, record: InvocationRecord) -> RelayResult:
        """Run the pipeline to completion. Never raises for request failures."""
        try:
            client_request = normalize(record, self.default_prompt)
            request = assign_session_id(client_request)
            self.session_id = request.session_id
            logger.info(
                f"Parsed request parameters: shape={classify(record).value}, "
                f"session={request.session_id}, prompt_chars={len(request.prompt)}"
            )

            self._transition(PipelineState.INVOKING)
            stream = await self.invoker.invoke(request)

            self._transition(PipelineState.RELAYING)
            await relay(stream, self.channel, self.result)
        except Exception as exc:
            self.error = exc
            logger.opt(exception=exc).error(
                f"Request processing failed in state {self.state.value}: {exc}"
            )
            try:
                await self.reporter.report(self.channel, exc)
            finally:
                self._transition(PipelineState.CLOSED)
            return self.result

        self._transition(PipelineState.CLOSED)
        try:
            await self.channel.close()
        except Exception as exc:
            # The stream may be truncated; nothing more can be written to it.
            error = RelayIOError(f"Closing the client stream failed: {exc}")
            logger.error(f"{error.message} after {self.result.chunks} chunks")
            self.error = error
            return self.result
        logger.info(
            f"Stream transfer completed: {self.result.chunks} chunks, "
            f"{self.result.bytes} bytes"
        )
        return self.result


@dataclass
class StreamingProxy:
    """Process-wide entry point; one isolated pipeline per request.

    The backend (and the HTTP client behind it) is shared across requests
    and carries no per-request state.
    """

    backend: AgentBackend
    target: BackendTarget
    default_prompt: str = DEFAULT_PROMPT
    reporter: FailureReporter = field(default_factory=FailureReporter)
    stats: RelayStatsRegistry = field(default_factory=lambda: relay_stats_registry)

    def create_pipeline(self, channel: OutboundChannel) -> ProxyPipeline:
        return ProxyPipeline(
            invoker=BackendInvoker(backend=self.backend, target=self.target),
            channel=channel,
            reporter=self.reporter,
            default_prompt=self.default_prompt,
        )

    async def handle(
        self,
        record: InvocationRecord,
        channel: OutboundChannel,
        request_id: str | None = None,
    ) -> ProxyPipeline:
        """Proxy one request onto ``channel``; the channel is closed on return."""
        pipeline = self.create_pipeline(channel)
        request_id = request_id or uuid4().hex

        with logger.contextualize(request_id=request_id), _tracer.start_as_current_span(
            "agentcore_proxy.stream"
        ) as span:
            span.set_attribute("agentcore_proxy.request_id", request_id)
            span.set_attribute("agentcore_proxy.runtime_arn", self.target.runtime_arn)
            logger.debug(f"Incoming request: {json.dumps(record.model_dump())}")

            started = time.perf_counter()
            result = await pipeline.run(record)
            latency_ms = (time.perf_counter() - started) * 1000

            outcome = "completed" if pipeline.error is None else error_code(pipeline.error)
            self.stats.record(outcome, latency_ms, chunks=result.chunks, nbytes=result.bytes)

            if pipeline.session_id:
                span.set_attribute("agentcore_proxy.session_id", pipeline.session_id)
            span.set_attribute("agentcore_proxy.stream.chunk_count", result.chunks)
            span.set_attribute("agentcore_proxy.stream.bytes", result.bytes)
            span.set_attribute("agentcore_proxy.stream.duration_ms", latency_ms)
            if pipeline.error is None:
                span.set_status(Status(StatusCode.OK))
            else:
                span.set_attribute("agentcore_proxy.error_type", type(pipeline.error).__name__)
                span.set_status(Status(StatusCode.ERROR, str(pipeline.error)))

        return pipeline
