"""Request normalization.

The inbound record can take one of several shapes. ``classify`` decides the
shape from a fixed precedence table and ``normalize`` runs the parse strategy
registered for it:

    ==============  ====================================  ===============
    shape           condition                             source
    ==============  ====================================  ===============
    BASE64_BODY     body present and flagged base64       decoded body
    JSON_BODY       body present                          body
    QUERY           no body, non-empty ``prompt`` param   query params
    DEFAULT         anything else                         fixed prompt
    ==============  ====================================  ===============

Once a body is present it must parse; a broken body raises
``MalformedRequest`` instead of falling through to the query or default
shapes.
"""

from __future__ import annotations

import base64
import json
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from agentcore_proxy.common.errors import MalformedRequest
from agentcore_proxy.common.models import ClientRequest, InvocationRecord


class InboundShape(str, Enum):
    """Recognised inbound request shapes, in precedence order."""

    BASE64_BODY = "base64_body"
    JSON_BODY = "json_body"
    QUERY = "query"
    DEFAULT = "default"


def classify(record: InvocationRecord) -> InboundShape:
    """Pick the inbound shape; the first matching row wins."""
    if record.body and record.is_base64_encoded:
        return InboundShape.BASE64_BODY
    if record.body:
        return InboundShape.JSON_BODY
    if record.query.get("prompt"):
        return InboundShape.QUERY
    return InboundShape.DEFAULT


def _parse_structured(text: str) -> ClientRequest:
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedRequest(f"Request body is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedRequest("Request body must be a JSON object")

    try:
        return ClientRequest.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in exc.errors()
        )
        raise MalformedRequest(f"Invalid request fields: {fields}") from exc


def _from_base64_body(record: InvocationRecord, default_prompt: str) -> ClientRequest:
    try:
        data = base64.b64decode(record.body or "", validate=True)
    except ValueError as exc:
        raise MalformedRequest(f"Request body is not valid base64: {exc}") from exc
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedRequest(f"Request body is not valid UTF-8: {exc}") from exc
    return _parse_structured(text)


def _from_json_body(record: InvocationRecord, default_prompt: str) -> ClientRequest:
    return _parse_structured(record.body or "")


def _from_query(record: InvocationRecord, default_prompt: str) -> ClientRequest:
    return ClientRequest(
        prompt=record.query["prompt"],
        session_id=record.query.get("sessionId") or None,
    )


def _from_default(record: InvocationRecord, default_prompt: str) -> ClientRequest:
    return ClientRequest(prompt=default_prompt)


_STRATEGIES: dict[InboundShape, Callable[[InvocationRecord, str], ClientRequest]] = {
    InboundShape.BASE64_BODY: _from_base64_body,
    InboundShape.JSON_BODY: _from_json_body,
    InboundShape.QUERY: _from_query,
    InboundShape.DEFAULT: _from_default,
}


def normalize(record: InvocationRecord, default_prompt: str) -> ClientRequest:
    """Extract the client request from an inbound record.

    Raises:
        MalformedRequest: A body is present but cannot be parsed
    """
    return _STRATEGIES[classify(record)](record, default_prompt)
