"""Route providers for the business domains.

The bundled providers expose only service-level endpoints: a liveness ping
and a description listing the domains each one depends on. Domain-specific
routes are added by replacing a provider in the container.
"""

from collections.abc import Sequence

from fastapi import APIRouter
from pydantic import BaseModel, Field

from contendo.core.timeutils import utc_now_iso


class PingResponse(BaseModel):
    """Body of ``GET /api/<domain>/ping``."""

    service: str
    status: str = "ok"
    timestamp: str = Field(..., description="ISO 8601 time of the ping")


class ServiceDescription(BaseModel):
    """Body of ``GET /api/<domain>/``."""

    service: str
    description: str
    depends_on: list[str] = Field(default_factory=list)


class DomainRouteProvider:
    """Route provider for one business domain.

    Args:
        name: Domain name, also the last segment of its mount prefix.
        description: Human-readable summary of the domain.
        dependencies: Providers of the domains this one draws data from.
    """

    def __init__(
        self,
        name: str,
        description: str,
        dependencies: Sequence["DomainRouteProvider"] = (),
    ) -> None:
        self.name = name
        self.description = description
        self.dependencies = tuple(dependencies)

    def __repr__(self) -> str:
        return f"DomainRouteProvider(name={self.name!r})"

    def build_router(self) -> APIRouter:
        """Return the domain's router with paths relative to its prefix."""
        router = APIRouter(tags=[self.name])

        @router.get("/ping", response_model=PingResponse)
        async def ping() -> PingResponse:
            return PingResponse(service=self.name, timestamp=utc_now_iso())

        # The bare prefix would otherwise fall through to the /api catch-all
        @router.get("", response_model=ServiceDescription, include_in_schema=False)
        @router.get("/", response_model=ServiceDescription)
        async def describe() -> ServiceDescription:
            return ServiceDescription(
                service=self.name,
                description=self.description,
                depends_on=[dependency.name for dependency in self.dependencies],
            )

        return router
