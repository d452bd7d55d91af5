"""Ordered composition of the request pipeline.

Every request passes through the stages below, outermost first::

    security_headers -> cors -> rate_limit -> session -> body_parsing
        -> request_context -> access_log -> error_boundary -> routing

A stage either hands the request on exactly once or answers it itself, in
which case no later stage runs. The order is a fixed table; there is no way
to insert, remove or reorder stages at runtime. The error boundary is always
the last stage, so it wraps routing directly and sees every failure raised
by a route provider while the correlation context is still active.
"""

from collections.abc import Callable
from dataclasses import dataclass

from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from contendo.api.constants import (
    CORRELATION_ID_HEADER,
    RATE_LIMIT_LIMIT_HEADER,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
    REQUEST_ID_HEADER,
    RETRY_AFTER_HEADER,
)
from contendo.api.middleware.body_parsing import BodyParsingMiddleware
from contendo.api.middleware.error_handler import ErrorBoundaryMiddleware
from contendo.api.middleware.rate_limit import RateLimitMiddleware
from contendo.api.middleware.request_context import RequestContextMiddleware
from contendo.api.middleware.request_logging import RequestLoggingMiddleware
from contendo.api.middleware.security_headers import SecurityHeadersMiddleware
from contendo.api.middleware.session import SessionMiddleware
from contendo.core.config import Settings
from contendo.infrastructure.rate_limit_store import FixedWindowRateLimiter
from contendo.infrastructure.session_store import SessionStore

EXPOSED_HEADERS = [
    CORRELATION_ID_HEADER,
    REQUEST_ID_HEADER,
    RATE_LIMIT_LIMIT_HEADER,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
    RETRY_AFTER_HEADER,
]


@dataclass(frozen=True)
class PipelineDependencies:
    """Shared state the pipeline stages are built with."""

    settings: Settings
    rate_limiter: FixedWindowRateLimiter
    session_store: SessionStore


@dataclass(frozen=True)
class MiddlewareStage:
    """One named stage of the pipeline."""

    name: str
    middleware: Middleware


def _security_headers(deps: PipelineDependencies) -> Middleware:
    return Middleware(
        SecurityHeadersMiddleware,
        hsts_enabled=deps.settings.is_production,
    )


def _cors(deps: PipelineDependencies) -> Middleware:
    return Middleware(
        CORSMiddleware,
        allow_origins=deps.settings.cors_allowed_origins or [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
    )


def _rate_limit(deps: PipelineDependencies) -> Middleware:
    config = deps.settings.rate_limit_config
    return Middleware(
        RateLimitMiddleware,
        limiter=deps.rate_limiter,
        message=config.message,
        path_prefix=config.path_prefix,
        trust_proxy_headers=deps.settings.is_production,
    )


def _session(deps: PipelineDependencies) -> Middleware:
    config = deps.settings.session_config
    return Middleware(
        SessionMiddleware,
        store=deps.session_store,
        secret=deps.settings.session_secret.get_secret_value(),
        cookie_name=config.cookie_name,
        max_age_seconds=config.max_age_seconds,
        secure=deps.settings.is_production,
        same_site=config.same_site,
    )


def _body_parsing(deps: PipelineDependencies) -> Middleware:
    return Middleware(
        BodyParsingMiddleware, max_body_bytes=deps.settings.max_body_bytes
    )


def _request_context(_: PipelineDependencies) -> Middleware:
    return Middleware(RequestContextMiddleware)


def _access_log(deps: PipelineDependencies) -> Middleware:
    return Middleware(
        RequestLoggingMiddleware,
        log_config=deps.settings.log_config,
        trust_proxy_headers=deps.settings.is_production,
    )


def _error_boundary(_: PipelineDependencies) -> Middleware:
    return Middleware(ErrorBoundaryMiddleware)


PIPELINE_ORDER: tuple[tuple[str, Callable[[PipelineDependencies], Middleware]], ...] = (
    ("security_headers", _security_headers),
    ("cors", _cors),
    ("rate_limit", _rate_limit),
    ("session", _session),
    ("body_parsing", _body_parsing),
    ("request_context", _request_context),
    ("access_log", _access_log),
    ("error_boundary", _error_boundary),
)


def build_pipeline(deps: PipelineDependencies) -> tuple[MiddlewareStage, ...]:
    """Instantiate every stage in declaration order.

    Args:
        deps: Settings and shared stores used by the stages.

    Returns:
        tuple[MiddlewareStage, ...]: The stages, outermost first.
    """
    return tuple(
        MiddlewareStage(name, factory(deps)) for name, factory in PIPELINE_ORDER
    )


def as_middleware(stages: tuple[MiddlewareStage, ...]) -> list[Middleware]:
    """Return the middleware list accepted by ``FastAPI(middleware=...)``.

    Starlette treats the first entry as the outermost layer, matching the
    declaration order of the stages.
    """
    return [stage.middleware for stage in stages]
