"""agentcore-proxy: a streaming SSE proxy in front of a Bedrock AgentCore runtime."""

from agentcore_proxy.__version__ import __version__

__all__ = ["__version__"]
