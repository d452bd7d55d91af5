"""Unit tests for RequestContextMiddleware."""

import uuid
from collections.abc import Callable
from typing import Any

import pytest
from fastapi import FastAPI, Request
from httpx import AsyncClient
from loguru import logger
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)
from opentelemetry.trace import SpanKind
from starlette.middleware import Middleware

from contendo.api.middleware.request_context import RequestContextMiddleware
from contendo.core.context import RequestContext


@pytest.fixture
def app() -> FastAPI:
    """Build an application reporting the correlation IDs it sees."""
    app = FastAPI(middleware=[Middleware(RequestContextMiddleware)])

    @app.get("/context")
    async def context(request: Request) -> dict[str, str | None]:
        logger.info("Inside route")
        return {
            "context": RequestContext.get_correlation_id(),
            "state": request.state.correlation_id,
        }

    return app


@pytest.mark.unit
class TestRequestContextMiddleware:
    """Test suite for RequestContextMiddleware."""

    async def test_assigns_correlation_id(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test the same ID is in the context, on state and in the header."""
        # Arrange
        client = client_for(app)

        # Act
        response = await client.get("/context")

        # Assert
        correlation_id = response.headers["X-Correlation-ID"]
        assert uuid.UUID(correlation_id).version == 4
        assert response.json() == {"context": correlation_id, "state": correlation_id}

    async def test_new_id_per_request(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test every request gets its own ID."""
        client = client_for(app)

        ids = {
            (await client.get("/context")).headers["X-Correlation-ID"]
            for _ in range(5)
        }

        assert len(ids) == 5

    async def test_inbound_header_ignored(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test a client-supplied correlation ID is not reused."""
        client = client_for(app)

        response = await client.get(
            "/context", headers={"X-Correlation-ID": "client-chosen"}
        )

        assert response.headers["X-Correlation-ID"] != "client-chosen"
        assert response.json()["context"] != "client-chosen"

    async def test_log_records_carry_correlation_id(
        self,
        app: FastAPI,
        client_for: Callable[[FastAPI], AsyncClient],
        log_records: list[dict[str, Any]],
    ) -> None:
        """Test logs emitted during the request are bound to its ID."""
        # Arrange
        client = client_for(app)

        # Act
        response = await client.get("/context")

        # Assert
        record = next(r for r in log_records if r["message"] == "Inside route")
        assert record["extra"]["correlation_id"] == response.headers["X-Correlation-ID"]

    async def test_binding_removed_after_request(
        self,
        app: FastAPI,
        client_for: Callable[[FastAPI], AsyncClient],
        log_records: list[dict[str, Any]],
    ) -> None:
        """Test logs after the request no longer carry its ID."""
        client = client_for(app)
        await client.get("/context")

        logger.info("After request")

        record = next(r for r in log_records if r["message"] == "After request")
        assert "correlation_id" not in record["extra"]

    async def test_server_span_carries_correlation_id(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test the traced server span records the request's correlation ID."""
        # Arrange
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
        client = client_for(app)

        # Act
        response = await client.get("/context")

        # Assert
        server_spans = [
            span
            for span in exporter.get_finished_spans()
            if span.kind is SpanKind.SERVER
        ]
        assert len(server_spans) == 1
        assert server_spans[0].attributes is not None
        assert (
            server_spans[0].attributes["correlation_id"]
            == response.headers["X-Correlation-ID"]
        )
