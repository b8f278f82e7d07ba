"""Outermost middleware: give every HTTP request an ``X-Request-ID``.

A client-supplied id is kept when it parses as a UUID and silently replaced
otherwise. The id is readable through :func:`get_request_id`, bound to the
structlog context for the request's log lines and echoed on the response.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from rollcall.foundation.application import (
    MIDDLEWARE_PRIORITY_REQUEST_ID,
    MiddlewareContribution,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Id of the request being served; ``""`` outside a request."""
    return _request_id.get()


def extract_header(headers: Iterable[tuple[bytes, bytes]], name: bytes) -> str:
    """First value of ``name`` (lower-case) among raw ASGI headers, or ``""``."""
    return next((v.decode("latin-1") for k, v in headers if k.lower() == name), "")


def _accepted(candidate: str) -> str:
    try:
        return str(UUID(candidate))
    except ValueError:
        return str(uuid4())


class RequestIdMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _accepted(extract_header(scope.get("headers", []), b"x-request-id"))
        token = _request_id.set(request_id)
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = [*message.get("headers", []), (b"x-request-id", request_id.encode())]
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        finally:
            _request_id.reset(token)
            structlog.contextvars.unbind_contextvars("request_id")


contribution = MiddlewareContribution(RequestIdMiddleware, priority=MIDDLEWARE_PRIORITY_REQUEST_ID)
