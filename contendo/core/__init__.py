"""Core utilities shared by every layer of the Contendo platform.

This package holds the cross-cutting concerns that the API, domain and
infrastructure layers depend on:

- **config**: Pydantic settings with environment-aware defaults
- **context**: Correlation ID storage using contextvars
- **error_context**: Sanitization of data before it reaches logs
- **exceptions**: Structured exception hierarchy
- **logging**: Loguru configuration and standard library interception
- **observability**: OpenTelemetry tracing setup
- **timeutils**: Timestamp and uptime formatting
"""
