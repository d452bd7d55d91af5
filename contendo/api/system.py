"""Infrastructure endpoints: health check and API index."""

from collections.abc import Mapping

from fastapi import APIRouter

from contendo.api.constants import API_PREFIX
from contendo.api.schemas.system import ApiInfoResponse, HealthResponse
from contendo.core.config import Settings
from contendo.core.timeutils import utc_now_iso
from contendo.core.types import UptimeProvider


class SystemRouteProvider:
    """Builds the router serving ``/health`` and ``/api``.

    ``/health`` lives outside the rate-limited prefix so that probes are
    never throttled; ``/api`` lives under it.

    Args:
        settings: Application settings.
        uptime: Callable returning the formatted server uptime.
        endpoints: Domain name to mount prefix, listed by ``GET /api``.
    """

    def __init__(
        self,
        settings: Settings,
        uptime: UptimeProvider,
        endpoints: Mapping[str, str],
    ) -> None:
        self.settings = settings
        self.uptime = uptime
        self.endpoints = dict(endpoints)

    def build_router(self) -> APIRouter:
        """Return the system router."""
        router = APIRouter(tags=["system"])

        @router.get("/health", response_model=HealthResponse)
        async def health() -> HealthResponse:
            """Health check endpoint for load balancers and orchestrators.

            Returns:
                HealthResponse: Status, current time and server uptime.
            """
            return HealthResponse(timestamp=utc_now_iso(), uptime=self.uptime())

        @router.get(API_PREFIX, response_model=ApiInfoResponse)
        async def api_info() -> ApiInfoResponse:
            """Describe the service and the mounted domain prefixes."""
            return ApiInfoResponse(
                name=self.settings.app_name,
                version=self.settings.app_version,
                endpoints=self.endpoints,
            )

        return router
