"""Error envelope returned for every failed request.

Every failure that reaches a caller, whether raised by a route provider,
detected by validation or caught by the error boundary, is rendered with the
same four fields. The correlation id lets support staff find the log entries
of the request; nothing else about the failure leaves the server.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from contendo.core.timeutils import utc_now_iso


class ErrorEnvelope(BaseModel):
    """Uniform error response body."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "status": "error",
                    "message": "Internal server error",
                    "timestamp": "2024-06-14T12:00:00.000Z",
                    "correlationId": "550e8400-e29b-41d4-a716-446655440000",
                }
            ]
        },
    )

    status: Literal["error"] = Field(
        default="error",
        description="Always 'error'",
    )

    message: str = Field(
        ...,
        description="Human-readable message, generic for server errors",
        examples=["Internal server error", "Not Found"],
    )

    timestamp: str = Field(
        default_factory=utc_now_iso,
        description="ISO 8601 time at which the error response was built",
    )

    correlation_id: str | None = Field(
        default=None,
        alias="correlationId",
        description="Correlation ID of the failed request",
    )

    details: dict[str, Any] | None = Field(
        default=None,
        description="Field-level details, only for request validation failures",
    )

    def to_content(self) -> dict[str, Any]:
        """Serialize for a response body, omitting ``details`` when unset."""
        exclude = {"details"} if self.details is None else None
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)
