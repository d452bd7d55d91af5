"""Client identification helpers."""

from starlette.requests import Request


def get_client_ip(request: Request, *, trust_proxy_headers: bool) -> str:
    """Extract the client IP address of a request.

    Proxy headers are honoured only when ``trust_proxy_headers`` is set,
    which the application does in production where it runs behind a proxy.
    Trusting them elsewhere would let any client pick its own rate-limit key.

    Args:
        request: The incoming request.
        trust_proxy_headers: Whether X-Forwarded-For and X-Real-IP are trusted.

    Returns:
        str: The client IP address, or "unknown".
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # First entry is the original client
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host
    return "unknown"
