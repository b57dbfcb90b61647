"""Starlette application wiring for the streaming proxy."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from agentcore_proxy.common.models import BackendTarget
from agentcore_proxy.pipeline.invoker import AgentCoreBackend, create_http_client
from agentcore_proxy.pipeline.proxy import StreamingProxy
from agentcore_proxy.server.endpoints import health_endpoint, invoke_endpoint
from agentcore_proxy.settings import Settings, app_settings
from agentcore_proxy.utils.logging import configure_logging, get_logger

logger = get_logger("agentcore_proxy.server.applications")

Endpoint = Callable[[Any, Request], Awaitable[Response]]


class ProxyApplication(Starlette):
    """Starlette app serving the proxy.

    Without an injected ``proxy`` the app builds the real AgentCore backend
    from ``settings`` and raises ``ConfigurationError`` right away when
    ``AGENT_ARN`` is missing. The HTTP client it creates is shared by all
    requests and closed on shutdown.
    """

    def __init__(
        self,
        proxy: StreamingProxy | None = None,
        settings: Settings | None = None,
        debug: bool = False,
    ) -> None:
        self.settings = settings or app_settings
        self._http_client: httpx.AsyncClient | None = None

        if proxy is None:
            proxy = self._build_proxy()
        self.proxy = proxy
        self.started_at = time.monotonic()

        routes = [
            Route("/", self._bind(invoke_endpoint), methods=["GET", "POST"]),
            Route("/invocations", self._bind(invoke_endpoint), methods=["GET", "POST"]),
            Route("/health", self._bind(health_endpoint), methods=["GET"]),
        ]
        super().__init__(debug=debug, routes=routes, lifespan=self._lifespan)

    def _build_proxy(self) -> StreamingProxy:
        backend_settings = self.settings.backend
        runtime_arn = backend_settings.require_agent_arn()
        self._http_client = create_http_client(backend_settings)
        return StreamingProxy(
            backend=AgentCoreBackend.from_settings(self._http_client, backend_settings),
            target=BackendTarget(runtime_arn=runtime_arn, qualifier=backend_settings.qualifier),
            default_prompt=self.settings.server.default_prompt,
        )

    def _bind(self, endpoint: Endpoint) -> Callable[[Request], Awaitable[Response]]:
        async def handler(request: Request) -> Response:
            return await endpoint(self, request)

        handler.__name__ = endpoint.__name__
        return handler

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        logger.info(
            f"Proxy ready for {self.proxy.target.runtime_arn} "
            f"(qualifier={self.proxy.target.qualifier})"
        )
        try:
            yield
        finally:
            if self._http_client is not None:
                await self._http_client.aclose()
                logger.info("Backend HTTP client closed")


def create_app(
    settings: Settings | None = None,
    proxy: StreamingProxy | None = None,
    debug: bool = False,
) -> ProxyApplication:
    """Configure logging and build the application."""
    settings = settings or app_settings
    configure_logging(settings.logging.level, settings.logging.json_output)
    return ProxyApplication(proxy=proxy, settings=settings, debug=debug)
