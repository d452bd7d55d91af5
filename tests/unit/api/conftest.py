"""Fixtures shared by API tests."""

from collections.abc import AsyncGenerator, Callable

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

type AppClientFactory = Callable[[FastAPI], AsyncClient]

TEST_CLIENT_ADDRESS = ("10.0.0.1", 1234)


@pytest.fixture
async def client_for() -> AsyncGenerator[AppClientFactory]:
    """Factory creating in-process HTTP clients for test applications."""
    clients: list[AsyncClient] = []

    def _create(app: FastAPI) -> AsyncClient:
        client = AsyncClient(
            transport=ASGITransport(app=app, client=TEST_CLIENT_ADDRESS),
            base_url="http://test",
        )
        clients.append(client)
        return client

    yield _create

    for client in clients:
        await client.aclose()
