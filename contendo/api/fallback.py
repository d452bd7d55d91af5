"""Catch-all routes evaluated after every other route.

In production the server also delivers the pre-built client application: a
GET for any unmatched path returns the matching file of the bundle, or the
bundle's ``index.html`` so the client router can handle the path. Outside
production the client runs on its own dev server and unmatched paths get a
short JSON pointer to it.

Unmatched paths below ``/api`` are never answered with the client bundle;
they fail with a 404 error envelope in every mode.
"""

from pathlib import Path

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
from loguru import logger

from contendo.api.constants import API_PREFIX
from contendo.api.schemas.system import DevelopmentFallbackResponse
from contendo.core.config import Settings

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def resolve_bundle_file(dist_dir: Path, requested: str) -> Path | None:
    """Return the bundle file for a request path, if it exists.

    Paths that resolve outside ``dist_dir`` are rejected.

    Args:
        dist_dir: Resolved bundle directory.
        requested: Request path without the leading slash.

    Returns:
        Path | None: The file to serve, or None.
    """
    if not requested:
        return None
    candidate = (dist_dir / requested).resolve()
    if not candidate.is_relative_to(dist_dir) or not candidate.is_file():
        return None
    return candidate


class FallbackRouteProvider:
    """Builds the catch-all router for the current mode.

    Args:
        settings: Application settings.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.dist_dir = Path(settings.client_config.dist_dir).resolve()

    def build_router(self) -> APIRouter:
        """Return the fallback router."""
        router = APIRouter(include_in_schema=False)

        @router.api_route(f"{API_PREFIX}/{{api_path:path}}", methods=ALL_METHODS)
        async def unknown_api_route() -> None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

        if self.settings.is_production:
            self._add_client_bundle_route(router)
        else:
            self._add_development_route(router)
        return router

    def _add_client_bundle_route(self, router: APIRouter) -> None:
        index_path = self.dist_dir / self.settings.client_config.index_file

        @router.get("/{full_path:path}")
        async def client_app(full_path: str) -> FileResponse:
            bundle_file = resolve_bundle_file(self.dist_dir, full_path)
            if bundle_file is not None:
                return FileResponse(bundle_file)
            if not index_path.is_file():
                logger.error("Client bundle index missing", index_path=str(index_path))
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Client application bundle not found",
                )
            return FileResponse(index_path)

    def _add_development_route(self, router: APIRouter) -> None:
        dev_server_url = self.settings.client_config.dev_server_url
        api_url = f"{self.settings.public_base_url.rstrip('/')}{API_PREFIX}"

        @router.get("/{full_path:path}", response_model=DevelopmentFallbackResponse)
        async def development_pointer(full_path: str) -> DevelopmentFallbackResponse:
            _ = full_path
            return DevelopmentFallbackResponse(
                message=(
                    "Development mode - client app should be running on "
                    f"{dev_server_url}"
                ),
                api=api_url,
            )
