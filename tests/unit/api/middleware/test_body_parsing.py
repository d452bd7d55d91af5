"""Unit tests for contendo/api/middleware/body_parsing.py module."""

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from fastapi import FastAPI, Request
from httpx import AsyncClient
from starlette.middleware import Middleware

from contendo.api.middleware.body_parsing import (
    BodyParsingMiddleware,
    MalformedBodyError,
    decode_body,
    get_media_type,
)

MAX_BODY_BYTES = 64


@pytest.fixture
def app() -> FastAPI:
    """Build an application that echoes the decoded body."""
    app = FastAPI(
        middleware=[Middleware(BodyParsingMiddleware, max_body_bytes=MAX_BODY_BYTES)]
    )

    @app.api_route("/echo", methods=["GET", "POST", "PUT"])
    async def echo(request: Request) -> dict[str, Any]:
        raw = await request.body()
        return {"body": request.state.body, "raw_length": len(raw)}

    return app


@pytest.mark.unit
class TestGetMediaType:
    """Test cases for get_media_type."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            (None, ""),
            ("", ""),
            ("application/json", "application/json"),
            ("Application/JSON; charset=utf-8", "application/json"),
            (
                "application/x-www-form-urlencoded ; charset=utf-8",
                "application/x-www-form-urlencoded",
            ),
        ],
    )
    def test_media_type(self, header: str | None, expected: str) -> None:
        """Test parameters are stripped and the type lower-cased."""
        assert get_media_type(header) == expected


@pytest.mark.unit
class TestDecodeBody:
    """Test cases for decode_body."""

    def test_empty_body(self) -> None:
        """Test an empty body decodes to an empty dict."""
        assert decode_body("application/json", b"") == {}

    def test_json(self) -> None:
        """Test JSON bodies are decoded."""
        assert decode_body("application/json", b'{"a": [1, 2]}') == {"a": [1, 2]}

    def test_json_suffix(self) -> None:
        """Test structured-syntax JSON types are decoded."""
        assert decode_body("application/problem+json", b"[1]") == [1]

    def test_malformed_json(self) -> None:
        """Test invalid JSON raises MalformedBodyError."""
        with pytest.raises(MalformedBodyError):
            decode_body("application/json", b'{"a": ')

    def test_form(self) -> None:
        """Test form bodies keep blank values and the last repeated value."""
        decoded = decode_body(
            "application/x-www-form-urlencoded", b"name=Ana&note=&tag=a&tag=b"
        )

        assert decoded == {"name": "Ana", "note": "", "tag": "b"}

    def test_form_invalid_utf8(self) -> None:
        """Test undecodable form bytes raise MalformedBodyError."""
        with pytest.raises(MalformedBodyError):
            decode_body("application/x-www-form-urlencoded", b"\xff\xfe")

    def test_other_types_not_decoded(self) -> None:
        """Test bodies of other types yield an empty dict."""
        assert decode_body("text/plain", b"hello") == {}


@pytest.mark.unit
class TestBodyParsingMiddleware:
    """Test suite for BodyParsingMiddleware."""

    async def test_json_body_available(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test the decoded JSON body and the raw bytes reach the route."""
        # Arrange
        client = client_for(app)

        # Act
        response = await client.post("/echo", json={"name": "Ana"})

        # Assert
        assert response.status_code == 200
        assert response.json()["body"] == {"name": "Ana"}
        assert response.json()["raw_length"] > 0

    async def test_form_body_available(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test URL-encoded form fields are decoded."""
        client = client_for(app)

        response = await client.post("/echo", data={"name": "Ana", "plan": "pro"})

        assert response.json()["body"] == {"name": "Ana", "plan": "pro"}

    async def test_get_request_has_empty_body(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test methods without a body get an empty decoded body."""
        client = client_for(app)

        response = await client.get("/echo")

        assert response.json()["body"] == {}

    async def test_declared_length_over_limit(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test a Content-Length above the limit is rejected with 413."""
        # Arrange
        client = client_for(app)

        # Act
        response = await client.post(
            "/echo",
            content=b"x" * (MAX_BODY_BYTES + 1),
            headers={"content-type": "application/json"},
        )

        # Assert
        assert response.status_code == 413
        assert response.text == "Request entity too large"

    async def test_streamed_body_over_limit(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test a chunked body without Content-Length is measured while reading."""
        # Arrange
        client = client_for(app)

        async def chunks() -> AsyncIterator[bytes]:
            for _ in range(4):
                yield b"x" * 32

        # Act
        response = await client.post(
            "/echo",
            content=chunks(),
            headers={"content-type": "text/plain"},
        )

        # Assert
        assert response.status_code == 413

    async def test_streamed_body_read_stops_at_limit(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test an oversized stream is not drained before the 413 is sent."""
        # Arrange
        client = client_for(app)
        sent = 0

        async def chunks() -> AsyncIterator[bytes]:
            nonlocal sent
            for _ in range(200):
                sent += 1
                yield b"x" * 32

        # Act
        response = await client.post(
            "/echo",
            content=chunks(),
            headers={"content-type": "text/plain"},
        )

        # Assert
        assert response.status_code == 413
        assert sent < 10

    async def test_streamed_body_within_limit_replayed(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test a chunked body under the limit still reaches the route intact."""
        client = client_for(app)

        async def chunks() -> AsyncIterator[bytes]:
            yield b'{"name": '
            yield b'"Acme"}'

        response = await client.post(
            "/echo",
            content=chunks(),
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {"body": {"name": "Acme"}, "raw_length": 16}

    async def test_body_at_limit_accepted(
        self, app: FastAPI, client_for: Callable[[FastAPI], AsyncClient]
    ) -> None:
        """Test a body of exactly the limit passes."""
        client = client_for(app)

        response = await client.put(
            "/echo",
            content=b"x" * MAX_BODY_BYTES,
            headers={"content-type": "text/plain"},
        )

        assert response.status_code == 200
        assert response.json() == {"body": {}, "raw_length": MAX_BODY_BYTES}

    async def test_malformed_json_rejected(
        self,
        app: FastAPI,
        client_for: Callable[[FastAPI], AsyncClient],
        log_records: list[dict[str, Any]],
    ) -> None:
        """Test invalid JSON is rejected with a plain-text 400."""
        # Arrange
        client = client_for(app)

        # Act
        response = await client.post(
            "/echo",
            content=b'{"name": ',
            headers={"content-type": "application/json"},
        )

        # Assert
        assert response.status_code == 400
        assert response.text == "Malformed request body"
        assert any(r["message"] == "Malformed request body" for r in log_records)
