"""Unit tests for the AppError hierarchy and the global exception handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    GENERIC_ERROR_MESSAGE,
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    TokenExpiredError,
    ValidationError,
    register_error_handlers,
)


class TestAppErrorSubclasses:
    @pytest.mark.parametrize(
        "cls, status, code",
        [
            (ValidationError, 400, "validation_error"),
            (AuthenticationError, 401, "authentication_error"),
            (TokenExpiredError, 401, "token_expired"),
            (InvalidTokenError, 401, "invalid_token"),
            (ForbiddenError, 403, "forbidden"),
            (NotFoundError, 404, "not_found"),
            (ConflictError, 409, "conflict"),
            (RateLimitError, 429, "rate_limit_exceeded"),
            (ServiceUnavailableError, 503, "service_unavailable"),
        ],
    )
    def test_status_and_code(self, cls, status, code):
        e = cls("boom")
        assert e.status_code == status
        assert e.error_code == code
        assert e.message == "boom"

    def test_token_errors_are_authentication_errors(self):
        assert isinstance(TokenExpiredError(), AuthenticationError)
        assert isinstance(InvalidTokenError(), AuthenticationError)

    def test_token_error_default_messages(self):
        assert TokenExpiredError().message == "Token has expired"
        assert InvalidTokenError().message == "Invalid token"


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("user not found")
        assert e.to_dict() == {
            "success": False,
            "error": "user not found",
            "code": "not_found",
        }

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "email"}, "field", "email"),
            ({"details": {"attempts_remaining": 3}}, "details", {"attempts_remaining": 3}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d


class _Body(BaseModel):
    email: str


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("This email is already registered", field="email")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("db password is hunter2")

    @app.post("/body")
    async def body(payload: _Body):
        return {"ok": True}

    return app


class TestErrorHandlers:
    def test_app_error_rendered_with_status(self):
        with TestClient(_app()) as client:
            resp = client.get("/conflict")
        assert resp.status_code == 409
        assert resp.json() == {
            "success": False,
            "error": "This email is already registered",
            "code": "conflict",
            "field": "email",
        }

    def test_unhandled_exception_is_generic_500(self):
        with TestClient(_app(), raise_server_exceptions=False) as client:
            resp = client.get("/crash")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == GENERIC_ERROR_MESSAGE
        assert body["success"] is False
        assert "hunter2" not in resp.text

    def test_request_validation_error_is_400_with_field(self):
        with TestClient(_app()) as client:
            resp = client.post("/body", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["field"] == "email"

    def test_base_app_error_defaults_to_500(self):
        assert AppError("x").status_code == 500
