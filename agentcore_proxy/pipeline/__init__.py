"""The streaming-proxy pipeline: normalize, assign session, invoke, relay, report."""

from agentcore_proxy.pipeline.proxy import PipelineState, ProxyPipeline, StreamingProxy

__all__ = ["PipelineState", "ProxyPipeline", "StreamingProxy"]
