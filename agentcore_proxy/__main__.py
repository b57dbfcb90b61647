"""agentcore-proxy command line.

Usage:
  python -m agentcore_proxy serve --port 8080
  python -m agentcore_proxy invoke --prompt "Hello" --session-id my-session
  python -m agentcore_proxy invoke --event event.json --include-headers

``invoke`` pushes a single request through the same pipeline the server uses
and writes the event stream to stdout, either from an API Gateway proxy
event file or from a prompt given on the command line.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from agentcore_proxy.__version__ import get_version
from agentcore_proxy.common.errors import ConfigurationError
from agentcore_proxy.common.models import BackendTarget, InvocationRecord
from agentcore_proxy.pipeline.channel import FileOutboundChannel
from agentcore_proxy.pipeline.invoker import AgentCoreBackend, create_http_client
from agentcore_proxy.pipeline.proxy import StreamingProxy
from agentcore_proxy.settings import Settings, app_settings
from agentcore_proxy.utils.logging import configure_logging, get_logger

log = get_logger("agentcore_proxy.cli")


def load_record(args: argparse.Namespace) -> InvocationRecord:
    """Build the inbound record from ``--event`` or ``--prompt``."""
    if args.event:
        with open(args.event, encoding="utf-8") as fh:
            event: dict[str, Any] = json.load(fh)
        return InvocationRecord.from_event(event)

    query: dict[str, str] = {}
    if args.prompt:
        query["prompt"] = args.prompt
    if args.session_id:
        query["sessionId"] = args.session_id
    return InvocationRecord(method="GET", query=query)


async def run_invoke(args: argparse.Namespace, settings: Settings) -> int:
    runtime_arn = settings.backend.require_agent_arn()
    record = load_record(args)

    async with create_http_client(settings.backend) as client:
        proxy = StreamingProxy(
            backend=AgentCoreBackend.from_settings(client, settings.backend),
            target=BackendTarget(runtime_arn=runtime_arn, qualifier=settings.backend.qualifier),
            default_prompt=settings.server.default_prompt,
        )
        channel = FileOutboundChannel(sys.stdout.buffer, include_head=args.include_headers)
        pipeline = await proxy.handle(record, channel)

    return 0 if pipeline.error is None else 1


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="agentcore-proxy",
        description="Streaming SSE proxy for a Bedrock AgentCore runtime",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    p.add_argument("--log-level", default=None, help="Override AGENTCORE_PROXY_LOG_LEVEL")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP proxy server")
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Bind port")

    invoke = sub.add_parser("invoke", help="Proxy one request and print the stream")
    source = invoke.add_mutually_exclusive_group()
    source.add_argument("--event", help="Path to an API Gateway proxy event JSON file")
    source.add_argument("--prompt", help="Prompt text")
    invoke.add_argument("--session-id", help="Session id (with --prompt)")
    invoke.add_argument(
        "--include-headers", action="store_true", help="Print status line and headers first"
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = app_settings
    level = args.log_level or settings.logging.level
    configure_logging(level, settings.logging.json_output)

    try:
        if args.command == "serve":
            from agentcore_proxy.server.applications import ProxyApplication
            from agentcore_proxy.utils.server_runner import run_server

            app = ProxyApplication(settings=settings)
            run_server(
                app,
                host=args.host or settings.server.host,
                port=args.port or settings.server.port,
                log_level=level,
            )
            return 0
        return asyncio.run(run_invoke(args, settings))
    except ConfigurationError as exc:
        log.error(exc.message)
        return 2
    except KeyboardInterrupt:
        log.info("Interrupted, exiting")
        return 130


if __name__ == "__main__":
    sys.exit(main())
