"""Server startup and shutdown utilities.

This module provides utilities for starting uvicorn servers with proper
signal handling and graceful shutdown.
"""

import signal
import sys
from typing import Any

import uvicorn

from agentcore_proxy.utils.logging import get_logger

logger = get_logger("agentcore_proxy.utils.server_runner")


def setup_signal_handlers() -> None:
    """Register signal handlers for graceful shutdown.

    Registers handlers for SIGINT (Ctrl+C) and SIGTERM (container stop).
    In-flight streams are abandoned; the backend runs they started are not
    cancelled.
    """

    def handle_shutdown(signum: int, frame: Any) -> None:
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    logger.debug("Signal handlers registered for graceful shutdown")


def run_server(app: Any, host: str, port: int, log_level: str = "info") -> None:
    """Run uvicorn with graceful shutdown handling.

    Args:
        app: ASGI application to serve
        host: Host address to bind to
        port: Port number to bind to
        log_level: uvicorn's own log level
    """
    setup_signal_handlers()

    logger.info(f"Starting uvicorn server at {host}:{port}...")
    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
    except KeyboardInterrupt:
        logger.info("Server interrupted, shutting down...")
    finally:
        logger.info("Server stopped")
