"""FastAPI dependency injection functions.

Long-lived components (DAO factory, token manager, OAuth server, ...) are
built once in the application lifespan and stored on ``app.state``. The
functions here hand them to route handlers and resolve the calling
identity.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from hubauth.config import AppSettings, get_settings
from hubauth.core.exceptions import (
    InvalidTokenError,
    RegistrationDisabledError,
    ServerUnavailableError,
    UnauthorizedError,
)
from hubauth.core.guards import guard_admin
from hubauth.core.logging import get_logger
from hubauth.core.security import OptionalBearerToken
from hubauth.dao.factory import DaoFactory
from hubauth.models.domain import User
from hubauth.services.bearer_auth import BearerKeyAuthorizer
from hubauth.services.bearer_keys import BearerKeyService
from hubauth.services.client_registration import ClientRegistrationService
from hubauth.services.oauth_clients import OAuthClientService
from hubauth.services.oauth_server import OAuthServer
from hubauth.services.session_token import SessionTokenService
from hubauth.services.token_manager import TokenManager

logger = get_logger(__name__)


def get_app_settings() -> AppSettings:
    """Dependency for getting the application settings."""
    return get_settings()


def get_dao_factory(request: Request) -> DaoFactory:
    """Dependency for getting the DAO factory selected at startup."""
    return request.app.state.daos


def get_token_manager(request: Request) -> TokenManager:
    """Dependency for getting the token manager."""
    return request.app.state.token_manager


def get_session_token_service(request: Request) -> SessionTokenService:
    """Dependency for getting the session token service."""
    return request.app.state.session_tokens


def get_oauth_server(
    request: Request, settings: Annotated[AppSettings, Depends(get_app_settings)]
) -> OAuthServer:
    """Dependency for getting the OAuth server; unavailable when disabled."""
    if not settings.oauth_server.enabled:
        raise ServerUnavailableError("OAuth authorization server is disabled")
    return request.app.state.oauth_server


def get_bearer_key_authorizer(
    daos: Annotated[DaoFactory, Depends(get_dao_factory)],
) -> BearerKeyAuthorizer:
    """Dependency for getting the bearer key authorizer."""
    return BearerKeyAuthorizer(daos.bearer_keys)


def get_bearer_key_service(
    daos: Annotated[DaoFactory, Depends(get_dao_factory)],
) -> BearerKeyService:
    """Dependency for getting the bearer key service."""
    return BearerKeyService(daos.bearer_keys)


def get_oauth_client_service(
    daos: Annotated[DaoFactory, Depends(get_dao_factory)],
    tokens: Annotated[TokenManager, Depends(get_token_manager)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> OAuthClientService:
    """Dependency for getting the OAuth client service."""
    return OAuthClientService(daos.oauth_clients, tokens, settings.oauth_server.allowed_scopes)


def get_client_registration_service(
    daos: Annotated[DaoFactory, Depends(get_dao_factory)],
    tokens: Annotated[TokenManager, Depends(get_token_manager)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> ClientRegistrationService:
    """Dependency for getting the client registration service; unavailable when disabled."""
    if not settings.oauth_server.enabled:
        raise ServerUnavailableError("OAuth authorization server is disabled")
    if not settings.oauth_server.dynamic_registration_enabled:
        raise RegistrationDisabledError()
    return ClientRegistrationService(daos.oauth_clients, tokens, settings.oauth_server)


async def get_optional_identity(
    request: Request,
    daos: Annotated[DaoFactory, Depends(get_dao_factory)],
    session_tokens: Annotated[SessionTokenService, Depends(get_session_token_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    bearer_token: OptionalBearerToken,
    x_auth_token: Annotated[Optional[str], Header()] = None,
) -> Optional[User]:
    """Resolve the caller from a session token or an OAuth access token.

    A presented credential that fails validation is an error; no credential
    at all yields None.
    """
    username: Optional[str] = None
    if x_auth_token:
        username = session_tokens.parse_session_token(x_auth_token).username
    elif bearer_token:
        if not settings.oauth_server.enabled:
            raise UnauthorizedError("Invalid bearer token")
        try:
            record = await request.app.state.oauth_server.authenticate(bearer_token)
        except InvalidTokenError:
            raise UnauthorizedError("Invalid or expired access token")
        username = record.username

    if username is None:
        return None

    identity = await daos.users.resolve_identity(username)
    if identity is None:
        logger.warning("identity_unknown_user", username=username)
        raise UnauthorizedError("User not found")
    return identity


async def get_identity(
    identity: Annotated[Optional[User], Depends(get_optional_identity)],
) -> User:
    """Dependency requiring an authenticated caller."""
    if identity is None:
        raise UnauthorizedError("Authentication required")
    return identity


async def get_admin_identity(
    identity: Annotated[Optional[User], Depends(get_optional_identity)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> Optional[User]:
    """Dependency requiring an admin caller unless administrative auth is skipped."""
    with guard_admin(identity, settings.skip_auth) as admin:
        return admin


# Annotated dependency types
SettingsDep = Annotated[AppSettings, Depends(get_app_settings)]
DaoFactoryDep = Annotated[DaoFactory, Depends(get_dao_factory)]
OAuthServerDep = Annotated[OAuthServer, Depends(get_oauth_server)]
BearerKeyAuthorizerDep = Annotated[BearerKeyAuthorizer, Depends(get_bearer_key_authorizer)]
BearerKeyServiceDep = Annotated[BearerKeyService, Depends(get_bearer_key_service)]
OAuthClientServiceDep = Annotated[OAuthClientService, Depends(get_oauth_client_service)]
ClientRegistrationServiceDep = Annotated[
    ClientRegistrationService, Depends(get_client_registration_service)
]
Identity = Annotated[User, Depends(get_identity)]
AdminIdentity = Annotated[Optional[User], Depends(get_admin_identity)]
