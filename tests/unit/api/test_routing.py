"""Unit tests for contendo/api/routing.py module."""

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from contendo.api.routing import RouterRegistry, validate_prefix
from contendo.core.exceptions import RouteConflictError


class StaticProvider:
    """Provider with one fixed route."""

    def __init__(self, path: str, methods: tuple[str, ...] = ("GET",)) -> None:
        self.path = path
        self.methods = methods
        self.builds = 0

    def build_router(self) -> APIRouter:
        self.builds += 1
        router = APIRouter()

        @router.api_route(self.path, methods=list(self.methods))
        async def endpoint() -> dict[str, str]:
            return {"path": self.path}

        return router


@pytest.mark.unit
class TestValidatePrefix:
    """Test cases for validate_prefix."""

    @pytest.mark.parametrize("prefix", ["/api/crm", "/api", "/x"])
    def test_valid(self, prefix: str) -> None:
        """Test absolute prefixes without a trailing slash pass."""
        validate_prefix(prefix)

    @pytest.mark.parametrize("prefix", ["", "/", "api/crm", "/api/crm/"])
    def test_invalid(self, prefix: str) -> None:
        """Test malformed prefixes are rejected."""
        with pytest.raises(RouteConflictError) as exc_info:
            validate_prefix(prefix)

        assert exc_info.value.context == {"prefix": prefix}


@pytest.mark.unit
class TestRouterRegistry:
    """Test cases for RouterRegistry."""

    def test_mounts_in_registration_order(self) -> None:
        """Test mounts are kept in the order they were added."""
        # Arrange
        registry = RouterRegistry()

        # Act
        registry.mount("/api/b", StaticProvider("/ping"))
        registry.mount("/api/a", StaticProvider("/ping"))

        # Assert
        assert registry.prefixes == ("/api/b", "/api/a")
        assert [mount.prefix for mount in registry.mounts] == ["/api/b", "/api/a"]

    def test_duplicate_prefix_rejected(self) -> None:
        """Test a prefix can only be mounted once."""
        registry = RouterRegistry()
        registry.mount("/api/crm", StaticProvider("/ping"))

        with pytest.raises(RouteConflictError, match="already mounted"):
            registry.mount("/api/crm", StaticProvider("/other"))

    def test_second_fallback_rejected(self) -> None:
        """Test only one fallback may be registered."""
        registry = RouterRegistry()
        registry.mount_fallback(StaticProvider("/{path:path}"))

        with pytest.raises(RouteConflictError):
            registry.mount_fallback(StaticProvider("/{path:path}"))

    def test_second_system_provider_rejected(self) -> None:
        """Test only one system provider may be registered."""
        registry = RouterRegistry()
        registry.mount_system(StaticProvider("/health"))

        with pytest.raises(RouteConflictError):
            registry.mount_system(StaticProvider("/health"))

    def test_apply_orders_routes(self) -> None:
        """Test domain routes come first, then system routes, then the fallback."""
        # Arrange
        registry = RouterRegistry()
        fallback = StaticProvider("/{path:path}")
        registry.mount_fallback(fallback)
        registry.mount_system(StaticProvider("/health"))
        registry.mount("/api/crm", StaticProvider("/ping"))
        registry.mount("/api/ai", StaticProvider("/ping"))
        app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)

        # Act
        registry.apply(app)

        # Assert
        paths = [route.path for route in app.routes if isinstance(route, APIRoute)]
        assert paths == ["/api/crm/ping", "/api/ai/ping", "/health", "/{path:path}"]
        assert fallback.builds == 1

    def test_apply_without_system_or_fallback(self) -> None:
        """Test a registry with only domain mounts applies cleanly."""
        registry = RouterRegistry()
        registry.mount("/api/crm", StaticProvider("/ping"))
        app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)

        registry.apply(app)

        paths = [route.path for route in app.routes if isinstance(route, APIRoute)]
        assert paths == ["/api/crm/ping"]
