"""HTTP endpoints served by the proxy application."""

from agentcore_proxy.server.endpoints.health import health_endpoint
from agentcore_proxy.server.endpoints.invoke import invoke_endpoint

__all__ = ["health_endpoint", "invoke_endpoint"]
