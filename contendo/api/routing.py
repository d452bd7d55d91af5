"""Registry of route providers and their mount prefixes.

Domain services are opaque to the pipeline: each one is a route provider
that builds a FastAPI router, and the registry mounts it below a path
prefix. Routes are added to the application in a fixed order so that the
catch-all fallback is always evaluated last:

1. domain mounts, in registration order
2. the system router (``/health`` and ``/api``)
3. the fallback
"""

from dataclasses import dataclass
from typing import Protocol

from fastapi import APIRouter, FastAPI
from loguru import logger

from contendo.core.exceptions import RouteConflictError


class RouteProvider(Protocol):
    """Anything that can build a router for one part of the URL space."""

    def build_router(self) -> APIRouter:
        """Return a router with paths relative to the mount prefix."""
        ...


@dataclass(frozen=True)
class RouteMount:
    """A provider mounted below a path prefix."""

    prefix: str
    provider: RouteProvider


def validate_prefix(prefix: str) -> None:
    """Check that ``prefix`` is an absolute path without a trailing slash.

    Args:
        prefix: Candidate mount prefix such as ``/api/crm``.

    Raises:
        RouteConflictError: If the prefix is malformed.
    """
    if not prefix.startswith("/") or prefix == "/" or prefix.endswith("/"):
        raise RouteConflictError(
            f"Invalid mount prefix {prefix!r}: must start with '/' "
            "and must not end with '/'",
            context={"prefix": prefix},
        )


class RouterRegistry:
    """Collects route mounts and applies them to an application once."""

    def __init__(self) -> None:
        self._mounts: list[RouteMount] = []
        self._system: RouteProvider | None = None
        self._fallback: RouteProvider | None = None

    @property
    def mounts(self) -> tuple[RouteMount, ...]:
        """Domain mounts in registration order."""
        return tuple(self._mounts)

    @property
    def prefixes(self) -> tuple[str, ...]:
        """Mounted prefixes in registration order."""
        return tuple(mount.prefix for mount in self._mounts)

    def mount(self, prefix: str, provider: RouteProvider) -> RouteMount:
        """Mount ``provider`` below ``prefix``.

        Args:
            prefix: Path prefix, e.g. ``/api/healthcare``.
            provider: Route provider serving the prefix.

        Returns:
            RouteMount: The registered mount.

        Raises:
            RouteConflictError: If the prefix is malformed or already mounted.
        """
        validate_prefix(prefix)
        if prefix in self.prefixes:
            raise RouteConflictError(
                f"Prefix {prefix!r} is already mounted",
                context={"prefix": prefix},
            )
        route_mount = RouteMount(prefix=prefix, provider=provider)
        self._mounts.append(route_mount)
        return route_mount

    def mount_system(self, provider: RouteProvider) -> None:
        """Register the provider of the infrastructure endpoints.

        Raises:
            RouteConflictError: If a system provider is already registered.
        """
        if self._system is not None:
            raise RouteConflictError("System routes are already mounted")
        self._system = provider

    def mount_fallback(self, provider: RouteProvider) -> None:
        """Register the catch-all provider evaluated after every other route.

        Raises:
            RouteConflictError: If a fallback is already registered.
        """
        if self._fallback is not None:
            raise RouteConflictError("A fallback route is already mounted")
        self._fallback = provider

    def apply(self, app: FastAPI) -> None:
        """Add every registered router to ``app`` in evaluation order.

        Args:
            app: Application receiving the routes.
        """
        for route_mount in self._mounts:
            app.include_router(
                route_mount.provider.build_router(), prefix=route_mount.prefix
            )
            logger.debug("Mounted route provider", prefix=route_mount.prefix)

        if self._system is not None:
            app.include_router(self._system.build_router())

        if self._fallback is not None:
            app.include_router(self._fallback.build_router())
