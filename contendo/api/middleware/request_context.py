"""Request context middleware for correlation IDs.

Every request gets a freshly generated correlation ID. It is stored in the
request context variable and on ``request.state``, bound to every log record
emitted while the request is handled, and returned to the caller in the
``X-Correlation-ID`` response header. When tracing is active the ID is also
recorded as the ``correlation_id`` attribute of the request's server span.

An ``X-Correlation-ID`` sent by the client is ignored, so an ID always
identifies exactly one request in the logs.
"""

from loguru import logger
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from contendo.api.constants import CORRELATION_ID_HEADER
from contendo.core.context import RequestContext, generate_correlation_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to create the correlation context of each request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request inside a new correlation context.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with correlation ID header.
        """
        correlation_id = generate_correlation_id()

        RequestContext.set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        # contextualize removes the binding again when the request ends
        with logger.contextualize(correlation_id=correlation_id):
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
