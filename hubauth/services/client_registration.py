"""RFC 7591 dynamic client registration and RFC 7592 client configuration."""

import hashlib
import secrets
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlsplit

from hubauth.config import OAuthServerSettings
from hubauth.core.exceptions import (
    AlreadyExistsError,
    InvalidClientMetadataError,
    InvalidRedirectUriError,
    InvalidTokenError,
    RegistrationDisabledError,
)
from hubauth.core.logging import get_logger
from hubauth.core.security import secure_compare
from hubauth.dao.oauth_clients import OAuthClientDao
from hubauth.models.domain import OAuthClient
from hubauth.models.requests import ClientRegistrationRequest
from hubauth.models.responses import ClientRegistrationResponse
from hubauth.services.oauth_clients import (
    SUPPORTED_GRANTS,
    generate_client_id,
    generate_client_secret,
)
from hubauth.services.token_manager import TokenManager

logger = get_logger(__name__)

REGISTRATION_OWNER = "dynamic-registration"
DEFAULT_CLIENT_NAME = "Dynamically Registered Client"
AUTH_METHODS = ("client_secret_basic", "client_secret_post", "none")
LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")
OPTIONAL_METADATA = (
    "application_type",
    "contacts",
    "logo_uri",
    "client_uri",
    "policy_uri",
    "tos_uri",
    "jwks_uri",
    "jwks",
)

# Bookkeeping kept in the client metadata, never returned to the client
TOKEN_HASH_KEY = "registration_token_hash"
TOKEN_ISSUED_AT_KEY = "registration_token_issued_at"


def hash_registration_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def validate_redirect_uris(uris: Optional[List[str]]) -> List[str]:
    """Require absolute https URIs without fragments; plain http only on loopback."""
    if not uris:
        raise InvalidRedirectUriError("redirect_uris is required and must be a non-empty array")
    for uri in uris:
        try:
            parts = urlsplit(uri)
        except ValueError:
            raise InvalidRedirectUriError(f"Invalid redirect URI: {uri}")
        if not parts.scheme or not parts.netloc or parts.fragment:
            raise InvalidRedirectUriError(f"Invalid redirect URI: {uri}")
        if parts.scheme != "https" and not (
            parts.scheme == "http" and parts.hostname in LOOPBACK_HOSTS
        ):
            raise InvalidRedirectUriError(f"Redirect URI must use HTTPS: {uri}")
    return list(dict.fromkeys(uris))


class ClientRegistrationService:
    """Self-service registration of OAuth clients.

    Every registration hands out a registration access token that manages
    that one client. Only its SHA-256 digest is kept, inside the client's
    metadata, so it works the same on both storage backends and survives
    restarts. Clients created through the admin API carry no such digest
    and cannot be managed here.
    """

    def __init__(
        self,
        clients: OAuthClientDao,
        tokens: TokenManager,
        settings: OAuthServerSettings,
        clock: Callable[[], float] = time.time,
    ):
        self.clients = clients
        self.tokens = tokens
        self.settings = settings
        self._clock = clock

    # Validation

    def _validate_grants(self, grants: List[str]) -> List[str]:
        allowed = SUPPORTED_GRANTS.intersection(self.settings.dynamic_registration_allowed_grants)
        for grant in grants:
            if grant not in allowed:
                raise InvalidClientMetadataError(f"Grant type not allowed: {grant}")
        return list(dict.fromkeys(grants))

    def _validate_scope(self, scope: str) -> List[str]:
        scopes = scope.split()
        for requested in scopes:
            if requested not in self.settings.allowed_scopes:
                raise InvalidClientMetadataError(f"Scope not allowed: {requested}")
        return list(dict.fromkeys(scopes))

    @staticmethod
    def _validate_response_types(response_types: List[str]) -> List[str]:
        for response_type in response_types:
            if response_type != "code":
                raise InvalidClientMetadataError(f"Response type not supported: {response_type}")
        return list(dict.fromkeys(response_types))

    @staticmethod
    def _validate_auth_method(method: str) -> str:
        if method not in AUTH_METHODS:
            raise InvalidClientMetadataError(f"Unsupported token_endpoint_auth_method: {method}")
        return method

    # Rendering

    def describe(self, client: OAuthClient, **extra: Any) -> ClientRegistrationResponse:
        """Render a client's registration, leaving out the token bookkeeping."""
        metadata = client.metadata or {}
        default_method = "none" if client.is_public else "client_secret_basic"
        return ClientRegistrationResponse(
            client_id=client.client_id,
            client_name=client.name,
            redirect_uris=client.redirect_uris,
            grant_types=client.grants,
            response_types=metadata.get("response_types") or ["code"],
            scope=" ".join(client.scopes or self.settings.allowed_scopes),
            token_endpoint_auth_method=metadata.get("token_endpoint_auth_method", default_method),
            client_id_issued_at=metadata.get("client_id_issued_at"),
            **{key: metadata.get(key) for key in OPTIONAL_METADATA},
            **extra,
        )

    # Operations

    async def register(
        self, request: ClientRegistrationRequest, base_url: str
    ) -> ClientRegistrationResponse:
        """Create a client from RFC 7591 metadata and return its credentials."""
        if not self.settings.dynamic_registration_enabled:
            raise RegistrationDisabledError()

        redirect_uris = validate_redirect_uris(request.redirect_uris)
        grants = self._validate_grants(
            request.grant_types or list(self.settings.dynamic_registration_allowed_grants)
        )
        response_types = self._validate_response_types(request.response_types or ["code"])
        scopes = (
            self._validate_scope(request.scope)
            if request.scope
            else list(self.settings.allowed_scopes)
        )
        method = self._validate_auth_method(
            request.token_endpoint_auth_method or "client_secret_basic"
        )

        registration_token = secrets.token_hex(32)
        issued_at = int(self._clock())
        metadata: Dict[str, Any] = {
            key: value
            for key, value in request.model_dump(include=set(OPTIONAL_METADATA)).items()
            if value is not None
        }
        metadata.setdefault("application_type", "web")
        metadata.update(
            {
                "token_endpoint_auth_method": method,
                "response_types": response_types,
                "client_id_issued_at": issued_at,
                TOKEN_HASH_KEY: hash_registration_token(registration_token),
                TOKEN_ISSUED_AT_KEY: issued_at,
            }
        )

        client = OAuthClient(
            client_id=generate_client_id(),
            client_secret=None if method == "none" else generate_client_secret(),
            name=request.client_name or DEFAULT_CLIENT_NAME,
            redirect_uris=redirect_uris,
            grants=grants,
            scopes=scopes,
            owner=REGISTRATION_OWNER,
            metadata=metadata,
        )
        try:
            created = await self.clients.create(client)
        except AlreadyExistsError:
            raise InvalidClientMetadataError("Client with this ID already exists")

        logger.info(
            "oauth_client_self_registered",
            client_id=created.client_id,
            auth_method=method,
            grants=grants,
        )
        return self.describe(
            created,
            client_secret=created.client_secret,
            client_secret_expires_at=0 if created.client_secret else None,
            registration_access_token=registration_token,
            registration_client_uri=f"{base_url.rstrip('/')}/oauth/register/{created.client_id}",
        )

    async def authenticate(self, client_id: str, registration_token: Optional[str]) -> OAuthClient:
        """Resolve a client from its registration access token.

        An unknown client, a wrong token and an expired token all look the
        same to the caller.
        """
        client = await self.clients.find_by_client_id(client_id) if registration_token else None
        metadata = (client.metadata or {}) if client else {}
        stored = metadata.get(TOKEN_HASH_KEY)

        if client is None or not stored:
            logger.warning("registration_token_rejected", client_id=client_id, reason="unknown")
            raise InvalidTokenError("Invalid or expired registration access token")
        if not secure_compare(hash_registration_token(registration_token), stored):
            logger.warning("registration_token_rejected", client_id=client_id, reason="mismatch")
            raise InvalidTokenError("Invalid or expired registration access token")
        age = self._clock() - metadata.get(TOKEN_ISSUED_AT_KEY, 0)
        if age > self.settings.registration_token_lifetime:
            logger.warning("registration_token_rejected", client_id=client_id, reason="expired")
            raise InvalidTokenError("Invalid or expired registration access token")
        return client

    async def get_configuration(
        self, client_id: str, registration_token: Optional[str]
    ) -> ClientRegistrationResponse:
        client = await self.authenticate(client_id, registration_token)
        return self.describe(client)

    async def update_configuration(
        self,
        client_id: str,
        registration_token: Optional[str],
        request: ClientRegistrationRequest,
    ) -> ClientRegistrationResponse:
        """Apply the members present in the request; absent members are kept."""
        client = await self.authenticate(client_id, registration_token)

        changes: Dict[str, Any] = {}
        if request.redirect_uris is not None:
            changes["redirect_uris"] = validate_redirect_uris(request.redirect_uris)
        if request.grant_types is not None:
            changes["grants"] = self._validate_grants(request.grant_types)
        if request.scope:
            changes["scopes"] = self._validate_scope(request.scope)
        if request.client_name:
            changes["name"] = request.client_name

        metadata = dict(client.metadata or {})
        if request.response_types is not None:
            metadata["response_types"] = self._validate_response_types(request.response_types)
        for key in OPTIONAL_METADATA:
            value = getattr(request, key)
            if value is not None:
                metadata[key] = value
        changes["metadata"] = metadata

        updated = await self.clients.update(client_id, changes)
        if updated is None:
            raise InvalidTokenError("Invalid or expired registration access token")
        logger.info("oauth_client_registration_updated", client_id=client_id, fields=sorted(changes))
        return self.describe(updated)

    async def delete_registration(self, client_id: str, registration_token: Optional[str]) -> None:
        """Remove the client and every token issued to it."""
        await self.authenticate(client_id, registration_token)
        if not await self.clients.delete(client_id):
            raise InvalidTokenError("Invalid or expired registration access token")
        revoked = await self.tokens.revoke_client_tokens(client_id)
        logger.info("oauth_client_registration_deleted", client_id=client_id, tokens_revoked=revoked)
