"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from minimal_api.core.errors import (
    AppError,
    ConflictAppError,
    NotFoundAppError,
    PayloadTooLargeAppError,
    ValidationAppError,
)
from minimal_api.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        ("error_type", "status_code"),
        [
            (ValidationAppError, 400),
            (NotFoundAppError, 404),
            (ConflictAppError, 409),
            (PayloadTooLargeAppError, 413),
            (AppError, 400),
        ],
    )
    def test_status_code_by_error_type(
        self,
        client: TestClient,
        app_with_handlers: FastAPI,
        error_type: type[AppError],
        status_code: int,
    ):
        @app_with_handlers.get("/raise")
        async def raise_error():
            raise error_type(code="some_code", message="Something went wrong")

        response = client.get("/raise")

        assert response.status_code == status_code
        data = response.json()
        assert data["error"]["code"] == "some_code"
        assert data["error"]["message"] == "Something went wrong"
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_details_are_included_when_present(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/missing")
        async def missing():
            raise NotFoundAppError(
                code="person_not_found",
                message="Person 9 was not found",
                details={"person_id": 9},
            )

        response = client.get("/missing")

        assert response.status_code == 404
        assert response.json()["error"]["details"] == {"person_id": 9}

    def test_str_of_error_is_message(self):
        assert str(ValidationAppError(code="c", message="readable")) == "readable"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_hides_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: lock poisoned")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "lock poisoned" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()

    def test_handlers_registered(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
