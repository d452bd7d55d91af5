"""Per-client rate limiting middleware.

Requests at or below the configured path prefix are counted against the
client's fixed window. The request that pushes the count past the limit is
answered here with a 429 and never reaches the later stages.

Standard ``RateLimit-*`` headers are attached to every limited-path
response; the legacy ``X-RateLimit-*`` headers are never sent.
"""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp

from contendo.api.constants import (
    RATE_LIMIT_LIMIT_HEADER,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
    RETRY_AFTER_HEADER,
)
from contendo.api.utils.client import get_client_ip
from contendo.infrastructure.rate_limit_store import (
    FixedWindowRateLimiter,
    RateLimitDecision,
)

HTTP_429_TOO_MANY_REQUESTS = 429


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed their request budget.

    Args:
        app: The ASGI application to wrap.
        limiter: Shared counter table.
        message: Body of the rejection response.
        path_prefix: Only paths equal to or below this prefix are limited.
        trust_proxy_headers: Whether to key on forwarded client addresses.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: FixedWindowRateLimiter,
        message: str,
        path_prefix: str = "/api",
        trust_proxy_headers: bool = False,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.message = message
        self.path_prefix = path_prefix.rstrip("/")
        self.trust_proxy_headers = trust_proxy_headers

    def applies_to(self, path: str) -> bool:
        """Whether requests to ``path`` are rate limited."""
        return path == self.path_prefix or path.startswith(f"{self.path_prefix}/")

    @staticmethod
    def _apply_headers(response: Response, decision: RateLimitDecision) -> None:
        response.headers[RATE_LIMIT_LIMIT_HEADER] = str(decision.limit)
        response.headers[RATE_LIMIT_REMAINING_HEADER] = str(decision.remaining)
        response.headers[RATE_LIMIT_RESET_HEADER] = str(decision.reset_after)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Count the request and either reject it or pass it on."""
        if not self.applies_to(request.url.path):
            return await call_next(request)

        client_ip = get_client_ip(request, trust_proxy_headers=self.trust_proxy_headers)
        decision = await self.limiter.hit(client_ip)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded",
                client_host=client_ip,
                method=request.method,
                path=request.url.path,
                limit=decision.limit,
            )
            response: Response = PlainTextResponse(
                self.message, status_code=HTTP_429_TOO_MANY_REQUESTS
            )
            self._apply_headers(response, decision)
            response.headers[RETRY_AFTER_HEADER] = str(decision.reset_after)
            return response

        response = await call_next(request)
        self._apply_headers(response, decision)
        return response
