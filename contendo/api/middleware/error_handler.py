"""Centralized error handling for the request pipeline.

Two mechanisms produce the error envelope:

- ``ErrorBoundaryMiddleware`` is the last stage of the pipeline and wraps
  routing directly. Any exception a route provider lets escape is logged with
  the request's correlation ID and turned into a generic 500 response.
- The exception handlers registered by ``register_exception_handlers``
  convert ``HTTPException``, request validation errors and ``ContendoError``
  subclasses raised by route providers into envelopes with their own status
  codes. The handler for bare ``Exception`` runs in Starlette's outermost
  error middleware and covers failures raised by the earlier stages.

Messages of client errors reach the caller unchanged. Server errors always
reach the caller as ``Internal server error``; the details go to the log only.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from contendo.api.constants import INTERNAL_SERVER_ERROR_MESSAGE
from contendo.api.schemas.errors import ErrorEnvelope
from contendo.api.utils.responses import ORJSONResponse
from contendo.core.context import RequestContext
from contendo.core.error_context import sanitize_error_context, sanitize_headers
from contendo.core.exceptions import (
    BusinessRuleError,
    ContendoError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

CLIENT_ERROR_STATUS: dict[type[ContendoError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BusinessRuleError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_correlation_id(request: Request) -> str | None:
    """Return the correlation ID of a request, if one was assigned."""
    return getattr(request.state, "correlation_id", None) or (
        RequestContext.get_correlation_id()
    )


def error_response(
    request: Request,
    status_code: int,
    message: str,
    *,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> Response:
    """Build an error envelope response for ``request``.

    Args:
        request: The request that failed.
        status_code: HTTP status of the response.
        message: Message placed in the envelope.
        details: Optional field-level details.
        headers: Optional extra response headers.

    Returns:
        Response: ORJSONResponse carrying the envelope.
    """
    envelope = ErrorEnvelope(
        message=message,
        correlation_id=get_correlation_id(request),
        details=details,
    )
    return ORJSONResponse(
        status_code=status_code,
        content=envelope.to_content(),
        headers=headers,
    )


def log_server_error(request: Request, exc: BaseException, message: str) -> None:
    """Log a server-side failure with its traceback and sanitized context."""
    error_context = sanitize_error_context(
        exc,
        {
            "request_method": request.method,
            "request_path": str(request.url.path),
            "request_headers": sanitize_headers(dict(request.headers)),
        },
    )
    logger.opt(exception=exc).error(
        message,
        correlation_id=get_correlation_id(request),
        **error_context,
    )


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Terminal pipeline stage converting unhandled failures to a 500 envelope."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Run routing and contain any exception it raises.

        Args:
            request: The incoming request.
            call_next: Routing and the matched route provider.

        Returns:
            Response: The routed response, or the 500 envelope.
        """
        try:
            return await call_next(request)
        except Exception as exc:
            log_server_error(request, exc, "Unhandled request error")
            return error_response(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                INTERNAL_SERVER_ERROR_MESSAGE,
            )


async def contendo_error_handler(request: Request, exc: Exception) -> Response:
    """Handle ContendoError exceptions raised by route providers.

    Client error types keep their message and get their own status code.
    Any other ContendoError is a server error.

    Args:
        request: The request that caused the exception
        exc: The ContendoError exception to handle

    Returns:
        Response: ORJSONResponse with the error envelope

    Raises:
        TypeError: If exc is not a ContendoError instance
    """
    if not isinstance(exc, ContendoError):
        raise TypeError(f"Expected ContendoError, got {type(exc).__name__}")

    status_code = next(
        (code for cls, code in CLIENT_ERROR_STATUS.items() if isinstance(exc, cls)),
        None,
    )
    if status_code is None:
        log_server_error(request, exc, "Unhandled application error")
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            INTERNAL_SERVER_ERROR_MESSAGE,
        )

    error_context = sanitize_error_context(
        exc,
        {
            "request_method": request.method,
            "request_path": str(request.url.path),
            "error_code": exc.error_code,
        },
    )
    logger.warning(
        "Handling {exception_type}: {message}",
        exception_type=type(exc).__name__,
        message=exc.message,
        correlation_id=get_correlation_id(request),
        status_code=status_code,
        **error_context,
    )

    details = exc.context if isinstance(exc, ValidationError) and exc.context else None
    return error_response(request, status_code, exc.message, details=details)


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI RequestValidationError exceptions.

    Field-level errors are grouped by field path in ``details``.

    Args:
        request: The request that caused the exception
        exc: The RequestValidationError exception to handle

    Returns:
        Response: ORJSONResponse with validation error details

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # ['body', 'email'] -> 'email'
        field_path = error.get("loc", ())
        field_name = ".".join(str(loc) for loc in field_path[1:] if loc != "__root__")
        field_errors.setdefault(field_name or "root", []).append(
            error.get("msg", "Invalid value")
        )

    logger.warning(
        "Request validation failed",
        correlation_id=get_correlation_id(request),
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        **sanitize_error_context(
            exc,
            {
                "path": str(request.url.path),
                "method": request.method,
                "validation_errors": field_errors,
            },
        ),
    )

    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        details={"validation_errors": field_errors},
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException, including unmatched routes.

    Args:
        request: The request that caused the exception
        exc: The HTTPException to handle

    Returns:
        Response: ORJSONResponse with the error envelope

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        log_server_error(request, exc, "HTTP server error")
        message = INTERNAL_SERVER_ERROR_MESSAGE
    else:
        logger.info(
            "HTTP exception",
            correlation_id=get_correlation_id(request),
            status=exc.status_code,
            method=request.method,
            path=str(request.url.path),
        )
        message = str(exc.detail)

    return error_response(request, exc.status_code, message, headers=exc.headers)


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle exceptions that escaped every other stage.

    Args:
        request: The request that caused the exception
        exc: The unhandled exception

    Returns:
        Response: ORJSONResponse with the generic error envelope
    """
    log_server_error(request, exc, "Unhandled exception")
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        INTERNAL_SERVER_ERROR_MESSAGE,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(ContendoError, contendo_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.debug("Exception handlers registered")
