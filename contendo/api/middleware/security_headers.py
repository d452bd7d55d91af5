"""Security headers middleware for adding common security headers to responses."""

from collections.abc import Awaitable, Callable, Mapping, Sequence

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from contendo.api.constants import CONTENT_SECURITY_POLICY
from contendo.core.constants import DEFAULT_HSTS_MAX_AGE

STATIC_SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "0",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
}


def build_content_security_policy(directives: Mapping[str, Sequence[str]]) -> str:
    """Render CSP directives as a header value.

    Args:
        directives: Directive name to list of sources.

    Returns:
        str: Value such as ``default-src 'self'; img-src 'self' data:``.
    """
    return "; ".join(
        f"{name} {' '.join(sources)}" for name, sources in directives.items()
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    This is the outermost stage, so the headers are present on every
    response, including rejections produced by later stages.

    Args:
        app: The ASGI application to wrap.
        content_security_policy: CSP directives (defaults to the platform policy).
        hsts_enabled: Whether to include HSTS header.
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
        hsts_include_subdomains: Whether to include subdomains in HSTS.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        content_security_policy: Mapping[str, Sequence[str]] | None = None,
        hsts_enabled: bool = True,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        hsts_include_subdomains: bool = True,
    ) -> None:
        super().__init__(app)
        self.csp_header = build_content_security_policy(
            content_security_policy or CONTENT_SECURITY_POLICY
        )
        self.hsts_enabled = hsts_enabled
        self.hsts_max_age = hsts_max_age
        self.hsts_include_subdomains = hsts_include_subdomains

    def _build_hsts_header(self) -> str:
        """Build the Strict-Transport-Security header value."""
        parts = [f"max-age={self.hsts_max_age}"]
        if self.hsts_include_subdomains:
            parts.append("includeSubDomains")
        return "; ".join(parts)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The HTTP response with security headers added.
        """
        response = await call_next(request)

        response.headers["Content-Security-Policy"] = self.csp_header
        for name, value in STATIC_SECURITY_HEADERS.items():
            response.headers[name] = value

        if self.hsts_enabled:
            response.headers["Strict-Transport-Security"] = self._build_hsts_header()

        return response
