"""Response models for infrastructure endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    status: Literal["healthy"] = "healthy"
    timestamp: str = Field(..., description="ISO 8601 time of the check")
    uptime: str = Field(..., examples=["0h 12m 5s"])


class ApiInfoResponse(BaseModel):
    """Body of ``GET /api``: a static description of the mounted prefixes."""

    name: str
    version: str
    endpoints: dict[str, str] = Field(
        ...,
        examples=[{"healthcare": "/api/healthcare", "training": "/api/training"}],
    )


class DevelopmentFallbackResponse(BaseModel):
    """Body returned for unmatched paths outside production."""

    message: str
    api: str
