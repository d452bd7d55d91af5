"""Fixtures for API middleware tests."""

from typing import cast

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse


@pytest.fixture
def mock_app(mocker: MockerFixture) -> MockType:
    """Provide a mock ASGI application for middleware construction."""
    return cast("MockType", mocker.Mock())


@pytest.fixture
def mock_starlette_request(mocker: MockerFixture) -> MockType:
    """Create mock Starlette Request with configurable headers.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock request object.
    """
    request = mocker.Mock(spec=StarletteRequest)
    request.headers = {}
    return cast("MockType", request)


@pytest.fixture
def mock_starlette_response(mocker: MockerFixture) -> MockType:
    """Create mock Starlette Response.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock response object.
    """
    response = mocker.Mock(spec=StarletteResponse)
    response.headers = {}
    return cast("MockType", response)


@pytest.fixture
def mock_starlette_call_next(
    mocker: MockerFixture, mock_starlette_response: MockType
) -> MockType:
    """Create mock RequestResponseEndpoint callable.

    Args:
        mocker: Pytest mocker fixture.
        mock_starlette_response: Mock response fixture.

    Returns:
        MockType: Mock call_next function.
    """
    call_next = mocker.AsyncMock(spec=RequestResponseEndpoint)
    call_next.return_value = mock_starlette_response
    return cast("MockType", call_next)
