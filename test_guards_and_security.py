"""Test guards, security utilities and session tokens."""

import time

import jwt
import pytest
from fastapi import FastAPI, Request, status
from fastapi.testclient import TestClient
from pydantic import BaseModel
from starlette.responses import Response

from hubauth.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
)
from hubauth.core.guards import guard_admin, guard_not_found
from hubauth.core.logging import redact_secrets
from hubauth.core.security import BearerToken, secure_compare
from hubauth.models.api import ErrorResponse, SuccessResponse
from hubauth.models.domain import User
from hubauth.services.session_token import SessionTokenService

SECRET = "test-secret-key-that-is-long-enough"


# Guards


def test_guard_not_found():
    with guard_not_found("value", "missing") as value:
        assert value == "value"

    with pytest.raises(NotFoundError):
        with guard_not_found(None, "missing"):
            pass


def test_guard_admin():
    admin = User(username="admin", is_admin=True)

    with guard_admin(admin) as identity:
        assert identity is admin

    with pytest.raises(UnauthorizedError):
        with guard_admin(None):
            pass

    with pytest.raises(PermissionDeniedError):
        with guard_admin(User(username="alice")):
            pass

    with guard_admin(None, skip_auth=True) as identity:
        assert identity is None


# Security


def test_secure_compare():
    assert secure_compare("token", "token")
    assert not secure_compare("token", "token2")
    assert not secure_compare("", "token")
    assert secure_compare("clé", "clé")


def test_redact_secrets():
    event = redact_secrets(
        None, "info", {"event": "x", "access_token": "abcdefgh", "client_id": "web", "code": ""}
    )

    assert event["access_token"] == "abcd***"
    assert event["client_id"] == "web"
    assert event["code"] == ""


@pytest.fixture
def bearer_app():
    app = FastAPI()

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> Response:
        error_response = ErrorResponse(error=exc.message, code=exc.code, reason=None)
        return Response(
            content=error_response.model_dump_json(),
            status_code=status.HTTP_401_UNAUTHORIZED,
            media_type="application/json",
        )

    class TokenEcho(BaseModel):
        token: str

    @app.get("/test", response_model=SuccessResponse[TokenEcho])
    async def echo(token: BearerToken):
        return SuccessResponse(data=TokenEcho(token=token))

    return TestClient(app)


def test_bearer_token_extraction(bearer_app):
    response = bearer_app.get("/test", headers={"Authorization": "Bearer test-token-123"})

    assert response.status_code == 200
    assert response.json()["data"]["token"] == "test-token-123"


@pytest.mark.parametrize(
    "headers", [{}, {"Authorization": "Basic dXNlcjpwYXNz"}, {"Authorization": "Bearer"}]
)
def test_bearer_token_missing_or_wrong_scheme(bearer_app, headers):
    response = bearer_app.get("/test", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


# Session tokens


def test_session_token_round_trip():
    service = SessionTokenService(SECRET)

    token = service.generate_session_token(User(username="alice", is_admin=True))
    payload = service.parse_session_token(token)

    assert payload.username == "alice"
    assert payload.is_admin is True


def test_session_token_rejects_tampering():
    token = SessionTokenService(SECRET).generate_session_token(User(username="alice"))

    with pytest.raises(UnauthorizedError):
        SessionTokenService("another-secret-key-that-is-long-enough").parse_session_token(token)
    with pytest.raises(UnauthorizedError):
        SessionTokenService(SECRET).parse_session_token("not.a.jwt")


def test_session_token_expiry():
    expired = jwt.encode(
        {"username": "alice", "exp": int(time.time()) - 10}, SECRET, algorithm="HS256"
    )

    with pytest.raises(UnauthorizedError) as exc_info:
        SessionTokenService(SECRET).parse_session_token(expired)

    assert "expired" in exc_info.value.message


def test_session_token_missing_username():
    token = jwt.encode({"exp": int(time.time()) + 60}, SECRET, algorithm="HS256")

    with pytest.raises(UnauthorizedError):
        SessionTokenService(SECRET).parse_session_token(token)
