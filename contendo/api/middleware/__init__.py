"""FastAPI middleware package for cross-cutting request/response concerns.

Each module implements one stage of the request pipeline:

- **security_headers**: CSP, HSTS and related response headers
- **rate_limit**: Fixed-window limiting of ``/api`` requests per client
- **session**: Signed-cookie server-side sessions (``request.session``)
- **body_parsing**: Bounded body reading with JSON and form decoding
- **request_context**: Correlation ID creation and log binding
- **request_logging**: Access log with timing and slow-request warnings
- **error_handler**: Error boundary and exception handlers

The order in which the stages run is fixed in ``contendo.api.pipeline``.
"""
