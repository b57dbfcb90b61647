"""Pydantic models for the records that flow through one pipeline run."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.requests import Request


class InvocationRecord(BaseModel):
    """One synchronous invocation as handed over by the edge gateway.

    Header names are stored lower-cased. ``body`` is ``None`` when the
    request carried no body; an empty string is treated the same way by the
    normalizer.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    is_base64_encoded: bool = False
    query: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> InvocationRecord:
        """Build a record from an API Gateway proxy event.

        Every field of the event may be missing or null.
        """
        headers = event.get("headers") or {}
        query = event.get("queryStringParameters") or {}
        return cls(
            method=event.get("httpMethod") or "GET",
            headers={str(k).lower(): str(v) for k, v in headers.items()},
            body=event.get("body"),
            is_base64_encoded=bool(event.get("isBase64Encoded")),
            query={str(k): str(v) for k, v in query.items() if v is not None},
        )

    @classmethod
    async def from_request(cls, request: Request) -> InvocationRecord:
        """Build a record from a Starlette request.

        A body sent with ``Content-Transfer-Encoding: base64`` is flagged as
        binary-encoded and decoded by the normalizer. A body that is not
        UTF-8 is handed over base64-encoded, as the edge gateway does for
        binary payloads, so the normalizer rejects it instead of guessing.
        """
        raw = await request.body()
        encoding = request.headers.get("content-transfer-encoding", "")
        is_base64 = encoding.strip().lower() == "base64"
        body: str | None = None
        if raw:
            try:
                body = raw.decode("utf-8")
            except UnicodeDecodeError:
                if is_base64:
                    # Non-ASCII text never passes base64 validation.
                    body = raw.decode("latin-1")
                else:
                    body = base64.b64encode(raw).decode("ascii")
                    is_base64 = True
        return cls(
            method=request.method,
            headers={k.lower(): v for k, v in request.headers.items()},
            body=body,
            is_base64_encoded=is_base64,
            query=dict(request.query_params),
        )


class ClientRequest(BaseModel):
    """The caller's request as parsed from the inbound record."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore"
    )

    prompt: str = Field(min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")

    @field_validator("session_id", mode="before")
    @classmethod
    def _numeric_session_id(cls, value: Any) -> Any:
        # Numeric ids are passed on as text; the backend decides what it accepts.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class InvocationRequest(BaseModel):
    """A client request with its session identifier guaranteed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: str = Field(min_length=1)
    session_id: str = Field(min_length=1, alias="sessionId")


@dataclass(frozen=True)
class BackendTarget:
    """Stable reference to the runtime to call.

    The ``DEFAULT`` qualifier resolves to whichever runtime version is the
    current default endpoint at call time.
    """

    runtime_arn: str
    qualifier: str = "DEFAULT"


@dataclass(frozen=True)
class BackendInvocation:
    """An invocation request bound to its target; consumed exactly once."""

    request: InvocationRequest
    target: BackendTarget

    @property
    def session_id(self) -> str:
        return self.request.session_id

    def payload(self) -> bytes:
        return json.dumps(
            {"prompt": self.request.prompt}, ensure_ascii=False
        ).encode("utf-8")
