"""Type aliases for dynamic data structures throughout the application.

All types defined here describe JSON-serializable data or small callables
passed between layers.
"""

from collections.abc import Callable
from typing import Any

# JSON-compatible type that represents any valid JSON value
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Context dictionary for error details and debugging information
type ErrorContext = dict[str, Any]

# Source of monotonic time in seconds, injectable for tests
type Clock = Callable[[], float]

# Returns the formatted server uptime
type UptimeProvider = Callable[[], str]
