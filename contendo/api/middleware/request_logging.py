"""HTTP access logging with request timing.

Each request outside the excluded paths is logged when it starts and when it
completes, with method, path, client address, status code, duration and
sizes. Requests slower than the configured threshold additionally produce a
warning. The stage runs inside the correlation context, so every entry
carries the request's correlation ID.
"""

import time
from collections.abc import Awaitable, Callable, Mapping

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from contendo.api.constants import MAX_USER_AGENT_LENGTH, REQUEST_ID_HEADER
from contendo.api.utils.client import get_client_ip
from contendo.core.config import LogConfig
from contendo.core.constants import MILLISECONDS_PER_SECOND
from contendo.core.context import generate_request_id


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
        trust_proxy_headers: Whether to log forwarded client addresses.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        log_config: LogConfig,
        trust_proxy_headers: bool = False,
    ) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)
        self.excluded_prefixes = tuple(
            f"{prefix.rstrip('/')}/" for prefix in log_config.excluded_path_prefixes
        )
        self.trust_proxy_headers = trust_proxy_headers

    def is_excluded(self, path: str) -> bool:
        """Whether requests to ``path`` are left out of the access log."""
        return path in self.excluded_paths or path.startswith(self.excluded_prefixes)

    @staticmethod
    def _get_user_agent(request: Request) -> str:
        ua = request.headers.get("user-agent", "")
        # Truncate extremely long user agents to prevent log pollution
        return ua[:MAX_USER_AGENT_LENGTH] if ua else "unknown"

    @staticmethod
    def _get_size(headers: Mapping[str, str]) -> int:
        value = headers.get("content-length")
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError:
            return 0

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The response from the application.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after logging.
        """
        if self.is_excluded(request.url.path):
            return await call_next(request)

        request_id = generate_request_id()

        with logger.contextualize(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_host=get_client_ip(
                request, trust_proxy_headers=self.trust_proxy_headers
            ),
            user_agent=self._get_user_agent(request),
            request_size=self._get_size(request.headers),
        ):
            logger.info(
                "Request started",
                query_params=(
                    dict(request.query_params) if request.query_params else None
                ),
            )

            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                elapsed = time.perf_counter() - start_time
                duration_ms = elapsed * MILLISECONDS_PER_SECOND
                logger.error(
                    "Request failed",
                    duration_ms=round(duration_ms, 2),
                    error_type=type(exc).__name__,
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND

            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                response_size=self._get_size(response.headers),
            )

            response.headers[REQUEST_ID_HEADER] = request_id

            if duration_ms > self.log_config.slow_request_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    duration_ms=round(duration_ms, 2),
                    threshold_ms=self.log_config.slow_request_threshold_ms,
                )

            return response
