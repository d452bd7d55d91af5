"""Redaction of secrets in logged error context.

Server errors are logged together with the request they interrupted: method,
path, headers and whatever context the raised ``ContendoError`` carries. Any
value stored under a name that looks like a credential is replaced with the
redaction marker in the logged copy. The request itself is never modified.

A name is sensitive when it matches ``SECRET_NAME_PATTERN`` or contains one
of the names listed in ``log_config.sensitive_fields``. Header names follow
the same rule, so ``Authorization``, ``Cookie`` and ``X-Api-Key`` are all
redacted.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Final

from contendo.core.config import get_settings
from contendo.core.constants import REDACTED
from contendo.core.types import ErrorContext

SECRET_NAME_PATTERN: Final = re.compile(
    r"password|passwd|pwd|secret|token|api[_-]?key|auth|credential|"
    r"private[_-]?key|access[_-]?key|session|cookie|"
    r"ssn|cvv|cvc|card[_-]?number",
    re.IGNORECASE,
)

# Containers nested deeper than this are replaced as a whole
MAX_DEPTH: Final = 10

# Exception attributes that never go to the log
EXCLUDED_ERROR_ATTRIBUTES: Final = frozenset({"stack_trace", "cause"})


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> tuple[str, ...]:
    """Lower-cased sensitive names from the log configuration."""
    return tuple(name.lower() for name in get_settings().log_config.sensitive_fields)


def is_sensitive_field(field_name: str) -> bool:
    """Whether values stored under ``field_name`` must be redacted."""
    if SECRET_NAME_PATTERN.search(field_name):
        return True
    lowered = field_name.lower()
    return any(name in lowered for name in _get_sensitive_fields())


def redact(value: Any, field_name: str = "", depth: int = 0) -> Any:  # noqa: ANN401
    """Copy ``value`` with every secret replaced by the redaction marker.

    Args:
        value: Scalar or nested dict, list or tuple.
        field_name: Name the value is stored under, if any.
        depth: Nesting level of ``value``.

    Returns:
        Any: The redacted copy.
    """
    if depth > MAX_DEPTH or (field_name and is_sensitive_field(field_name)):
        return REDACTED

    if isinstance(value, Mapping):
        return redact_mapping(value, depth + 1)

    if isinstance(value, list | tuple):
        items = [redact(item, depth=depth + 1) for item in value]
        return items if isinstance(value, list) else tuple(items)

    return value


def redact_mapping(data: Mapping[str, Any], depth: int = 0) -> dict[str, Any]:
    """Redact each entry of ``data`` by its key."""
    return {str(key): redact(item, str(key), depth) for key, item in data.items()}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy request headers with credential-bearing ones redacted."""
    return {
        name: REDACTED if is_sensitive_field(name) else value
        for name, value in headers.items()
    }


def sanitize_error_context(
    error: BaseException, context: Mapping[str, Any] | None = None
) -> ErrorContext:
    """Describe ``error`` for a log record, with secrets redacted.

    Public attributes of the exception, such as a ``ContendoError``'s
    ``context``, are reported under ``error_attributes``.

    Args:
        error: The exception being logged.
        context: Request details to log alongside it.

    Returns:
        ErrorContext: Log-safe description of the failure.
    """
    error_context: ErrorContext = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **redact_mapping(context or {}),
    }

    attributes = {
        name: value
        for name, value in vars(error).items()
        if not name.startswith("_") and name not in EXCLUDED_ERROR_ATTRIBUTES
    }
    if attributes:
        error_context["error_attributes"] = redact_mapping(attributes)

    return error_context
