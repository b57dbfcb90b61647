"""Error taxonomy for the streaming proxy.

Every failure inside a pipeline run ends the request and is surfaced to the
client as an SSE error record, never as an HTTP status (the 200 status is
committed once the stream starts). ``code`` is the stable, machine-readable
category written next to the human-readable message.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for all proxy failures."""

    code = "internal_error"

    def __init__(self, message: str = "Internal server error") -> None:
        self.message = message
        super().__init__(message)


class MalformedRequest(ProxyError):
    """Inbound body is present but not the expected JSON shape."""

    code = "malformed_request"


class BackendAuthorizationError(ProxyError):
    """The process identity may not invoke the target runtime."""

    code = "backend_authorization"


class BackendUnavailable(ProxyError):
    """Backend unreachable, timed out, faulted or returned no stream."""

    code = "backend_unavailable"


class RelayIOError(ProxyError):
    """Transfer failed after streaming began."""

    code = "relay_io"


class ReportingFailure(ProxyError):
    """A failure raised while reporting another failure. Never escalated."""

    code = "reporting_failure"


class ChannelClosedError(ProxyError):
    """Write attempted on an outbound channel that is already closed."""

    code = "channel_closed"


class ConfigurationError(ProxyError):
    """Startup configuration is missing or invalid."""

    code = "configuration"


def error_code(exc: BaseException) -> str:
    """Return the error-frame code for any exception."""
    if isinstance(exc, ProxyError):
        return exc.code
    return ProxyError.code


def error_message(exc: BaseException) -> str:
    """Return the client-facing message, passed through verbatim."""
    if isinstance(exc, ProxyError):
        return exc.message
    return str(exc) or type(exc).__name__
