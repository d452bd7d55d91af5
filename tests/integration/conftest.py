"""Fixtures for integration tests.

The route providers defined here replace bundled domain providers in a
container, so tests can drive failing, slow or session-writing routes through
the complete pipeline.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable

import pytest
from fastapi import APIRouter, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from contendo.core.context import RequestContext
from contendo.domains.providers import DomainRouteProvider

type AppClientFactory = Callable[..., AsyncClient]


class FailingProvider(DomainRouteProvider):
    """Domain provider whose ``/start`` route always raises."""

    def build_router(self) -> APIRouter:
        router = super().build_router()

        @router.post("/start")
        async def start() -> None:
            raise RuntimeError("training backend unreachable")

        return router


class SessionProvider(DomainRouteProvider):
    """Domain provider that writes to the session on ``/login``."""

    def build_router(self) -> APIRouter:
        router = super().build_router()

        @router.post("/login")
        async def login(request: Request) -> dict[str, str]:
            request.session["user_id"] = "u-1"
            return {"status": "ok"}

        @router.get("/me")
        async def me(request: Request) -> dict[str, str | None]:
            return {"user_id": request.session.get("user_id")}

        return router


class SlowProvider(DomainRouteProvider):
    """Domain provider with a route that waits before answering.

    ``entered`` is set once a request is inside the route.
    """

    def __init__(self, name: str, delay: float) -> None:
        super().__init__(name, "Slow test routes")
        self.delay = delay
        self.entered = asyncio.Event()

    def build_router(self) -> APIRouter:
        router = super().build_router()

        @router.get("/wait")
        async def wait() -> dict[str, str | None]:
            self.entered.set()
            await asyncio.sleep(self.delay)
            return {"correlation_id": RequestContext.get_correlation_id()}

        return router


@pytest.fixture
async def client_for() -> AsyncGenerator[AppClientFactory]:
    """Factory creating in-process clients, optionally from a given address."""
    clients: list[AsyncClient] = []

    def _create(app: FastAPI, client_ip: str = "10.0.0.1") -> AsyncClient:
        client = AsyncClient(
            transport=ASGITransport(app=app, client=(client_ip, 40000)),
            base_url="http://test",
        )
        clients.append(client)
        return client

    yield _create

    for client in clients:
        await client.aclose()


@pytest.fixture
def failing_provider() -> DomainRouteProvider:
    """Training provider whose ``POST /start`` raises."""
    return FailingProvider("training", "Course discovery, enrollment and booking")


@pytest.fixture
def session_provider() -> DomainRouteProvider:
    """CRM provider with session-writing routes."""
    return SessionProvider("crm", "Contacts, companies and deal pipeline")


@pytest.fixture
def slow_provider_factory() -> Callable[[str, float], SlowProvider]:
    """Factory for providers whose ``GET /wait`` takes ``delay`` seconds."""
    return SlowProvider
