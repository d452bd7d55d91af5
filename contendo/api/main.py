"""FastAPI application factory.

``create_app`` assembles one application instance:
- logging and tracing setup
- the middleware pipeline, built once from the fixed stage table
- exception handlers producing the error envelope
- domain mounts, system endpoints and the fallback, in that order
- a lifespan that purges expired sessions in the background

The process lifecycle (socket binding, signals, draining) is owned by
``contendo.api.server.LifecycleManager``, which calls this factory.
"""

import asyncio
import contextlib
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from contendo.api.fallback import FallbackRouteProvider
from contendo.api.middleware.error_handler import register_exception_handlers
from contendo.api.pipeline import PipelineDependencies, as_middleware, build_pipeline
from contendo.api.routing import RouterRegistry
from contendo.api.system import SystemRouteProvider
from contendo.api.utils.responses import ORJSONResponse
from contendo.core.config import Settings, get_settings
from contendo.core.logging import setup_logging
from contendo.core.observability import instrument_app, setup_tracing
from contendo.core.timeutils import format_uptime
from contendo.core.types import UptimeProvider
from contendo.domains.container import ServiceContainer, build_container
from contendo.infrastructure.session_store import InMemorySessionStore

SESSION_PURGE_INTERVAL_SECONDS = 60.0


async def purge_sessions_periodically(
    store: InMemorySessionStore, interval: float = SESSION_PURGE_INTERVAL_SECONDS
) -> None:
    """Remove expired session records every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = await store.purge_expired()
        if removed:
            logger.debug("Purged expired sessions", removed=removed)


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    container: ServiceContainer = app_instance.state.container
    purge_task: asyncio.Task[None] | None = None
    if isinstance(container.session_store, InMemorySessionStore):
        purge_task = asyncio.create_task(
            purge_sessions_periodically(container.session_store),
            name="session-purge",
        )

    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown initiated")
    if purge_task is not None:
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
    logger.info("Application shutdown complete")


def _uptime_since_creation() -> UptimeProvider:
    created = time.monotonic()
    return lambda: format_uptime(time.monotonic() - created)


def build_registry(
    settings: Settings, container: ServiceContainer, uptime: UptimeProvider
) -> RouterRegistry:
    """Register the domain, system and fallback providers.

    Args:
        settings: Application settings.
        container: Source of the domain providers.
        uptime: Uptime callable reported by ``/health``.

    Returns:
        RouterRegistry: Registry ready to be applied.
    """
    registry = RouterRegistry()
    for prefix, provider in container.domain_mounts():
        registry.mount(prefix, provider)

    registry.mount_system(
        SystemRouteProvider(
            settings,
            uptime,
            {
                mount.prefix.rsplit("/", 1)[-1]: mount.prefix
                for mount in registry.mounts
            },
        )
    )
    registry.mount_fallback(FallbackRouteProvider(settings))
    return registry


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
    uptime: UptimeProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        container: Optional dependency container. Built from settings if omitted.
        uptime: Optional uptime callable for ``/health``. Defaults to the time
            since the application was created.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()
    if container is None:
        container = build_container(settings)
    if uptime is None:
        uptime = _uptime_since_creation()

    setup_logging(settings)
    setup_tracing(settings)

    stages = build_pipeline(
        PipelineDependencies(
            settings=settings,
            rate_limiter=container.rate_limiter,
            session_store=container.session_store,
        )
    )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=None,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        middleware=as_middleware(stages),
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.container = container
    application.state.pipeline = stages

    register_exception_handlers(application)

    registry = build_registry(settings, container, uptime)
    registry.apply(application)
    application.state.routes = registry

    instrument_app(application, settings)

    logger.debug(
        "Application assembled",
        stages=[stage.name for stage in stages],
        mounts=list(registry.prefixes),
    )
    return application
