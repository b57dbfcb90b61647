"""Session identity assignment."""

from __future__ import annotations

from uuid import uuid4

from agentcore_proxy.common.models import ClientRequest, InvocationRequest


def new_session_id() -> str:
    return str(uuid4())


def assign_session_id(request: ClientRequest) -> InvocationRequest:
    """Return the request with a session id, generating one when absent or empty.

    A caller-supplied id is passed through unchanged; the backend decides
    whether it is acceptable.
    """
    return InvocationRequest(
        prompt=request.prompt,
        session_id=request.session_id or new_session_id(),
    )
