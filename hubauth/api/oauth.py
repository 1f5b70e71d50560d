"""OAuth 2.0 authorization server endpoints."""

import base64
import binascii
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from hubauth.core.exceptions import (
    InvalidClientError,
    InvalidRequestError,
    NotFoundError,
    OAuthError,
)
from hubauth.core.logging import get_logger
from hubauth.core.security import BearerToken
from hubauth.dependencies import Identity, OAuthServerDep, SettingsDep
from hubauth.models.requests import AuthorizeRequest, TokenRequest
from hubauth.models.responses import AuthorizeResponse, UserInfoResponse

logger = get_logger(__name__)

router = APIRouter(tags=["oauth"])

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def basic_credentials(request: Request) -> Tuple[Optional[str], Optional[str]]:
    """client_secret_basic credentials from the Authorization header, if present."""
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "basic" or not value:
        return None, None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise InvalidClientError()
    client_id, sep, client_secret = decoded.partition(":")
    if not sep:
        raise InvalidClientError()
    return unquote(client_id), unquote(client_secret)


async def read_form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    return {key: value for key, value in form.items() if value != ""}


def issuer_url(request: Request, configured: Optional[str]) -> str:
    return configured or str(request.base_url).rstrip("/")


def parse_token_request(request: Request, params: Dict[str, Any]) -> TokenRequest:
    basic_id, basic_secret = basic_credentials(request)
    if basic_id is not None:
        if params.get("client_id") not in (None, basic_id):
            raise InvalidRequestError("client_id does not match the authenticated client")
        params["client_id"] = basic_id
        params["client_secret"] = basic_secret or None

    try:
        return TokenRequest(**params)
    except PydanticValidationError as e:
        logger.warning("token_request_invalid", errors=e.errors(include_input=False))
        raise InvalidRequestError()


@router.post(
    "/oauth/authorize",
    response_model=AuthorizeResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve an authorization request",
    description="Issues an authorization code for the authenticated user.",
)
async def authorize(
    body: AuthorizeRequest, user: Identity, oauth_server: OAuthServerDep
) -> AuthorizeResponse:
    logger.info("authorize_request", client_id=body.client_id, username=user.username)
    return await oauth_server.authorize(body, user)


@router.post(
    "/oauth/token",
    summary="Token endpoint",
    description="Exchanges an authorization code or refresh token (form encoded).",
)
async def token(request: Request, oauth_server: OAuthServerDep) -> JSONResponse:
    params = await read_form(request)
    try:
        token_request = parse_token_request(request, params)
    except OAuthError:
        # A rejected authorization_code request still uses up its code
        await oauth_server.discard_code(params)
        raise

    logger.info(
        "token_request", grant_type=token_request.grant_type, client_id=token_request.client_id
    )
    result = await oauth_server.token(token_request)
    return JSONResponse(content=result.model_dump(exclude_none=True), headers=NO_STORE_HEADERS)


@router.post("/oauth/revoke", summary="Token revocation (RFC 7009)")
async def revoke(request: Request, oauth_server: OAuthServerDep) -> JSONResponse:
    params = await read_form(request)
    basic_id, basic_secret = basic_credentials(request)
    value = params.get("token")
    if not value:
        raise InvalidRequestError("Missing parameter: token")

    revoked = await oauth_server.revoke(
        value,
        client_id=basic_id or params.get("client_id"),
        client_secret=basic_secret or params.get("client_secret"),
    )
    logger.info("token_revocation", revoked=revoked)
    # RFC 7009 answers 200 whether or not the token was known
    return JSONResponse(content={}, headers=NO_STORE_HEADERS)


@router.post("/oauth/introspect", summary="Token introspection (RFC 7662)")
async def introspect(
    request: Request, caller_token: BearerToken, oauth_server: OAuthServerDep
) -> JSONResponse:
    await oauth_server.authenticate(caller_token)
    params = await read_form(request)
    value = params.get("token")
    if not value:
        raise InvalidRequestError("Missing parameter: token")
    result = await oauth_server.introspect(value)
    return JSONResponse(content=result.model_dump(exclude_none=True), headers=NO_STORE_HEADERS)


@router.get("/oauth/userinfo", response_model=UserInfoResponse, summary="User info")
async def userinfo(access_token: BearerToken, oauth_server: OAuthServerDep) -> UserInfoResponse:
    record = await oauth_server.authenticate(access_token)
    return UserInfoResponse(sub=record.username, username=record.username)


@router.get("/.well-known/oauth-authorization-server", summary="RFC 8414 metadata")
async def authorization_server_metadata(request: Request, settings: SettingsDep) -> Dict[str, Any]:
    if not settings.oauth_server.enabled:
        raise NotFoundError("OAuth server not configured")
    return request.app.state.oauth_server.metadata(issuer_url(request, settings.base_url))


@router.get("/.well-known/oauth-protected-resource", summary="RFC 9728 metadata")
async def protected_resource_metadata(request: Request, settings: SettingsDep) -> Dict[str, Any]:
    if not settings.oauth_server.enabled:
        raise NotFoundError("OAuth server not configured")
    return request.app.state.oauth_server.protected_resource_metadata(
        issuer_url(request, settings.base_url)
    )
