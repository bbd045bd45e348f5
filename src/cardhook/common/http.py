"""Request context and header encoding utilities."""

from __future__ import annotations

import uuid

import structlog

from starlette.requests import Request
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp


def wire_header(text: str) -> str:
    """Map header text to the str Starlette writes out as its UTF-8 bytes.

    Starlette encodes outbound header values as latin-1, one byte per
    character. Surrogate escapes from undecodable input bytes are restored.
    """
    return text.encode("utf-8", "surrogateescape").decode("latin-1")


def set_request_id(value: str | None) -> None:
    """Bind the request id into the logging context."""
    if value is not None:
        structlog.contextvars.bind_contextvars(request_id=value)


def set_api_key_id(value: str | None) -> None:
    """Bind the verified partner API key id into the logging context."""
    if value is not None:
        structlog.contextvars.bind_contextvars(api_key_id=value)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to each request/response and context."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self._header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers.setdefault(self._header_name, request_id)
            return response
        finally:
            structlog.contextvars.clear_contextvars()
