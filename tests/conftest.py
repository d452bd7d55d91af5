"""Root conftest.py for the Contendo test suite.

This file contains project-wide fixtures and pytest configuration.
"""

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest
from loguru import logger

from contendo.core.config import ObservabilityConfig, Settings, get_settings
from contendo.core.context import RequestContext
from contendo.core.error_context import _get_sensitive_fields
from contendo.core.logging import _state
from contendo.core.observability import _tracing_state

type SettingsFactory = Callable[..., Settings]
type LogRecords = list[dict[str, Any]]

PRODUCTION_SECRET = "test-production-secret"  # noqa: S105

SETTINGS_ENV_VARS = {
    "PORT",
    "API_HOST",
    "ENVIRONMENT",
    "DEBUG",
    "SESSION_SECRET",
    "CORS_ALLOWED_ORIGINS",
    "FRONTEND_URL",
    "PUBLIC_BASE_URL",
    "MAX_BODY_BYTES",
    "K_SERVICE",
    "AWS_EXECUTION_ENV",
}


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove environment variables that would leak into Settings."""
    for key in list(os.environ):
        if key.upper() in SETTINGS_ENV_VARS or "_CONFIG__" in key.upper():
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear cached settings before and after each test."""
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Clear the request context before and after each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture(autouse=True)
def logging_configured() -> Generator[None]:
    """Keep ``create_app`` from replacing the test log sinks.

    Tests that exercise ``setup_logging`` itself reset the flag.
    """
    previous = _state.configured
    _state.configured = True
    yield
    _state.configured = previous


@pytest.fixture(autouse=True)
def tracing_unconfigured() -> Generator[None]:
    """Let each test install its own tracer provider."""
    previous = _tracing_state.configured
    _tracing_state.configured = False
    yield
    _tracing_state.configured = previous


@pytest.fixture
def settings_factory() -> SettingsFactory:
    """Build Settings with tracing disabled and optional overrides.

    Production settings get a non-default session secret unless one is given.
    """

    def _create(**overrides: Any) -> Settings:  # noqa: ANN401
        values: dict[str, Any] = {
            "observability_config": ObservabilityConfig(enable_tracing=False),
        }
        if overrides.get("environment") == "production":
            values["session_secret"] = PRODUCTION_SECRET
        values.update(overrides)
        return Settings(**values)

    return _create


@pytest.fixture
def test_settings(settings_factory: SettingsFactory) -> Settings:
    """Development settings with tracing disabled."""
    return settings_factory()


@pytest.fixture
def log_records() -> Generator[LogRecords]:
    """Capture Loguru records emitted during the test."""
    records: LogRecords = []
    handler_id = logger.add(
        lambda message: records.append(message.record),  # type: ignore[attr-defined]
        level="DEBUG",
        format="{message}",
    )
    yield records
    logger.remove(handler_id)
