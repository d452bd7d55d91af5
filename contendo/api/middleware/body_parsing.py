"""Bounded request body reading and decoding.

Bodies of JSON and URL-encoded form requests are decoded once here and made
available as ``request.state.body``. Requests whose declared or actual body
size exceeds the limit are rejected with 413 before any later stage runs;
streamed bodies are read only up to the first chunk past the limit. JSON
that cannot be decoded is rejected with 400.

The raw bytes stay readable downstream: they are cached on the request and
``BaseHTTPMiddleware`` replays the cached body to the wrapped application.
"""

from collections.abc import Awaitable, Callable
from urllib.parse import parse_qsl

import orjson
from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp

from contendo.api.constants import (
    FORM_CONTENT_TYPE,
    JSON_CONTENT_TYPES,
    MALFORMED_BODY_MESSAGE,
    PAYLOAD_TOO_LARGE_MESSAGE,
    REQUEST_BODY_METHODS,
)
from contendo.core.types import JsonValue

HTTP_400_BAD_REQUEST = 400
HTTP_413_REQUEST_ENTITY_TOO_LARGE = 413


class MalformedBodyError(ValueError):
    """Raised when a request body does not match its declared content type."""


def get_media_type(content_type: str | None) -> str:
    """Return the bare media type of a Content-Type header value.

    Args:
        content_type: Header value such as ``application/json; charset=utf-8``.

    Returns:
        str: Lower-cased media type, or an empty string when absent.
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def decode_body(media_type: str, raw: bytes) -> JsonValue:
    """Decode a request body according to its media type.

    Args:
        media_type: Bare media type of the request.
        raw: Body bytes.

    Returns:
        JsonValue: Decoded JSON value, a dict of form fields, or an empty dict for
            empty bodies and content types that are not decoded.

    Raises:
        MalformedBodyError: If a JSON body is not valid JSON or a form body is
            not valid UTF-8.
    """
    if not raw:
        return {}

    if media_type in JSON_CONTENT_TYPES or media_type.endswith("+json"):
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise MalformedBodyError(str(e)) from e

    if media_type == FORM_CONTENT_TYPE:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedBodyError(str(e)) from e
        # Repeated keys keep their last value
        return dict(parse_qsl(text, keep_blank_values=True))

    return {}


class BodyParsingMiddleware(BaseHTTPMiddleware):
    """Read, size-check and decode request bodies.

    Args:
        app: The ASGI application to wrap.
        max_body_bytes: Largest accepted body in bytes.
    """

    def __init__(self, app: ASGIApp, *, max_body_bytes: int) -> None:
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    def _declared_length(self, request: Request) -> int | None:
        value = request.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    async def _read_bounded(self, request: Request) -> tuple[bytes | None, int]:
        """Read the body, stopping at the first chunk that crosses the limit.

        Returns:
            tuple[bytes | None, int]: The body, or None when it is too large,
                and the number of bytes received.
        """
        chunks: list[bytes] = []
        size = 0
        async for chunk in request.stream():
            size += len(chunk)
            if size > self.max_body_bytes:
                return None, size
            chunks.append(chunk)

        raw = b"".join(chunks)
        # Request.body() and BaseHTTPMiddleware replay the cached bytes downstream
        request._body = raw  # noqa: SLF001
        return raw, size

    def _too_large(self, request: Request, size: int) -> Response:
        logger.warning(
            "Request body exceeds limit",
            method=request.method,
            path=request.url.path,
            body_size=size,
            max_body_bytes=self.max_body_bytes,
        )
        return PlainTextResponse(
            PAYLOAD_TOO_LARGE_MESSAGE, status_code=HTTP_413_REQUEST_ENTITY_TOO_LARGE
        )

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Decode the body into ``request.state.body`` or reject the request."""
        if request.method not in REQUEST_BODY_METHODS:
            request.state.body = {}
            return await call_next(request)

        declared = self._declared_length(request)
        if declared is not None and declared > self.max_body_bytes:
            return self._too_large(request, declared)

        raw, size = await self._read_bounded(request)
        if raw is None:
            return self._too_large(request, size)

        media_type = get_media_type(request.headers.get("content-type"))
        try:
            request.state.body = decode_body(media_type, raw)
        except MalformedBodyError as e:
            logger.warning(
                "Malformed request body",
                method=request.method,
                path=request.url.path,
                content_type=media_type,
                error_message=str(e),
            )
            return PlainTextResponse(
                MALFORMED_BODY_MESSAGE, status_code=HTTP_400_BAD_REQUEST
            )

        return await call_next(request)
