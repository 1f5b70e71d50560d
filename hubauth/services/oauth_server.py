"""OAuth 2.0 authorization server: authorization code grant with PKCE and refresh tokens."""

import base64
import hashlib
import secrets
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from hubauth.config import OAuthServerSettings
from hubauth.core.exceptions import (
    InvalidClientError,
    InvalidGrantError,
    InvalidRequestError,
    InvalidScopeError,
    InvalidTokenError,
    UnauthorizedClientError,
    UnsupportedGrantTypeError,
)
from hubauth.core.logging import get_logger
from hubauth.core.security import secure_compare
from hubauth.dao.oauth_clients import OAuthClientDao
from hubauth.models.domain import OAuthClient, OAuthToken, User
from hubauth.models.requests import AuthorizeRequest, TokenRequest
from hubauth.models.responses import AuthorizeResponse, IntrospectionResponse, TokenResponse
from hubauth.services.authorization_codes import AuthorizationCodeStore
from hubauth.services.token_manager import TokenManager

logger = get_logger(__name__)

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"
CODE_CHALLENGE_METHODS = ("S256", "plain")


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(32)


def generate_code_challenge(verifier: str) -> str:
    """S256 challenge: unpadded base64url of the verifier's SHA-256 digest."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_code_challenge(verifier: str, challenge: str, method: str = "S256") -> bool:
    if method == "plain":
        return secure_compare(verifier, challenge)
    if method == "S256":
        return secure_compare(generate_code_challenge(verifier), challenge)
    return False


def append_query(uri: str, params: Dict[str, Optional[str]]) -> str:
    parts = urlsplit(uri)
    extra = urlencode({k: v for k, v in params.items() if v is not None})
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class OAuthServer:
    """Grant-type state machine over the client DAO, code store and token manager.

    Failures reported to unauthenticated callers use the generic description
    of their OAuth error code; the specific cause is only logged.
    """

    def __init__(
        self,
        clients: OAuthClientDao,
        tokens: TokenManager,
        codes: AuthorizationCodeStore,
        settings: OAuthServerSettings,
    ):
        self.clients = clients
        self.tokens = tokens
        self.codes = codes
        self.settings = settings

    # Helpers

    def negotiate_scope(self, client: OAuthClient, requested: Optional[str]) -> str:
        """Reduce the requested scopes to those allowed; all allowed when none requested."""
        allowed = list(self.settings.allowed_scopes)
        if client.scopes:
            allowed = [s for s in allowed if s in client.scopes]

        requested_scopes = requested.split() if requested else []
        granted = allowed if not requested_scopes else [s for s in requested_scopes if s in allowed]
        if not granted:
            raise InvalidScopeError()
        return " ".join(dict.fromkeys(granted))

    async def get_client(self, client_id: Optional[str], client_secret: Optional[str]) -> OAuthClient:
        """Resolve and authenticate the calling client.

        A supplied secret must match a confidential client's secret. When
        client secrets are required, confidential clients must supply one.
        """
        if not client_id:
            raise InvalidClientError()
        client = await self.clients.find_by_client_id(client_id)
        if client is None:
            logger.warning("oauth_client_unknown", client_id=client_id)
            raise InvalidClientError()

        if client.client_secret:
            if client_secret:
                if not secure_compare(client.client_secret, client_secret):
                    logger.warning("oauth_client_secret_mismatch", client_id=client_id)
                    raise InvalidClientError()
            elif self.settings.require_client_secret:
                logger.warning("oauth_client_secret_missing", client_id=client_id)
                raise InvalidClientError()
        return client

    @staticmethod
    def _require_grant(client: OAuthClient, grant_type: str) -> None:
        if grant_type not in client.grants:
            raise UnauthorizedClientError()

    def _token_response(self, token: OAuthToken) -> TokenResponse:
        expires_in = int((token.access_token_expires_at - self.tokens.now()).total_seconds())
        return TokenResponse(
            access_token=token.access_token,
            expires_in=max(expires_in, 0),
            refresh_token=token.refresh_token,
            scope=token.scope,
        )

    # Authorization endpoint

    async def authorize(self, request: AuthorizeRequest, user: User) -> AuthorizeResponse:
        """Issue an authorization code for a user who approved the client."""
        client = await self.get_client(request.client_id, request.client_secret)
        if request.redirect_uri not in client.redirect_uris:
            raise InvalidRequestError("Invalid redirect_uri")
        self._require_grant(client, GRANT_AUTHORIZATION_CODE)

        scope = self.negotiate_scope(client, request.scope)
        method = None
        if request.code_challenge:
            method = request.code_challenge_method or "plain"

        code = await self.codes.create(
            client_id=client.client_id,
            username=user.username,
            redirect_uri=request.redirect_uri,
            scope=scope,
            code_challenge=request.code_challenge,
            code_challenge_method=method,
        )
        logger.info(
            "authorization_code_issued",
            client_id=client.client_id,
            username=user.username,
            scope=scope,
            pkce=method,
        )
        return AuthorizeResponse(
            code=code.code,
            redirect_uri=append_query(
                request.redirect_uri, {"code": code.code, "state": request.state}
            ),
            state=request.state,
            expires_in=self.codes.lifetime,
        )

    # Token endpoint

    async def token(self, request: TokenRequest) -> TokenResponse:
        if request.grant_type == GRANT_AUTHORIZATION_CODE:
            return await self.exchange_authorization_code(request)
        if request.grant_type == GRANT_REFRESH_TOKEN:
            return await self.refresh(request)
        raise UnsupportedGrantTypeError()

    async def discard_code(self, params: Dict[str, Any]) -> bool:
        """Drop the code named by a token request that failed before the exchange."""
        code = params.get("code")
        if params.get("grant_type") != GRANT_AUTHORIZATION_CODE or not code:
            return False
        discarded = await self.codes.revoke(str(code))
        if discarded:
            logger.warning("authorization_code_discarded", client_id=params.get("client_id"))
        return discarded

    async def exchange_authorization_code(self, request: TokenRequest) -> TokenResponse:
        if not request.code:
            raise InvalidRequestError("Missing parameter: code")

        # Consumed before any validation so a code can never be replayed
        code = await self.codes.consume(request.code)
        if code is None:
            logger.warning("authorization_code_invalid", client_id=request.client_id)
            raise InvalidGrantError()

        client = await self.get_client(request.client_id or code.client_id, request.client_secret)
        if client.client_id != code.client_id:
            logger.warning("authorization_code_client_mismatch", client_id=client.client_id)
            raise InvalidGrantError()
        self._require_grant(client, GRANT_AUTHORIZATION_CODE)

        if request.redirect_uri and request.redirect_uri != code.redirect_uri:
            logger.warning("authorization_code_redirect_mismatch", client_id=client.client_id)
            raise InvalidGrantError()

        if code.code_challenge:
            method = code.code_challenge_method or "plain"
            if not request.code_verifier or not verify_code_challenge(
                request.code_verifier, code.code_challenge, method
            ):
                logger.warning("pkce_verification_failed", client_id=client.client_id)
                raise InvalidGrantError()

        token = await self.tokens.issue(
            client_id=client.client_id,
            username=code.username,
            scope=code.scope,
            include_refresh_token=GRANT_REFRESH_TOKEN in client.grants,
        )
        return self._token_response(token)

    async def refresh(self, request: TokenRequest) -> TokenResponse:
        if not request.refresh_token:
            raise InvalidRequestError("Missing parameter: refresh_token")

        record = await self.tokens.lookup_refresh_token(request.refresh_token)
        client = await self.get_client(
            request.client_id or (record.client_id if record else None), request.client_secret
        )
        self._require_grant(client, GRANT_REFRESH_TOKEN)
        if record is None or record.client_id != client.client_id:
            logger.warning("refresh_token_invalid", client_id=client.client_id)
            raise InvalidGrantError()

        scope = record.scope
        if request.scope:
            requested = request.scope.split()
            if not set(requested) <= set(record.scopes):
                raise InvalidScopeError()
            scope = " ".join(requested)

        # Only the caller that removes the old pairing may replace it
        if not await self.tokens.revoke(request.refresh_token):
            raise InvalidGrantError()

        if self.settings.rotate_refresh_token:
            token = await self.tokens.issue(client.client_id, record.username, scope)
        else:
            token = await self.tokens.issue(
                client.client_id,
                record.username,
                scope,
                refresh_token=record.refresh_token,
                refresh_token_expires_at=record.refresh_token_expires_at,
            )
        logger.info("token_refreshed", client_id=client.client_id, username=record.username)
        return self._token_response(token)

    # Revocation, introspection, resource access

    async def revoke(
        self, token: str, client_id: Optional[str] = None, client_secret: Optional[str] = None
    ) -> bool:
        """RFC 7009: revoke either half of a pair; unknown tokens are not an error."""
        record = await self.tokens.find(token)
        if record is None:
            return False
        client = await self.get_client(client_id or record.client_id, client_secret)
        if client.client_id != record.client_id:
            logger.warning("revoke_client_mismatch", client_id=client.client_id)
            return False
        return await self.tokens.revoke(token)

    async def introspect(self, token: str) -> IntrospectionResponse:
        record = await self.tokens.lookup(token)
        if record is None or await self.clients.find_by_client_id(record.client_id) is None:
            return IntrospectionResponse(active=False)

        is_access = record.access_token == token
        expires_at = record.access_token_expires_at if is_access else record.refresh_token_expires_at
        return IntrospectionResponse(
            active=True,
            scope=record.scope,
            client_id=record.client_id,
            username=record.username,
            token_type="access_token" if is_access else "refresh_token",
            exp=int(expires_at.timestamp()) if expires_at else None,
        )

    async def authenticate(self, access_token: str, scope: Optional[str] = None) -> OAuthToken:
        """Validate an access token presented to a protected resource."""
        record = await self.tokens.lookup_access_token(access_token)
        if record is None:
            raise InvalidTokenError()
        # Tokens outlive deleted clients in storage but are no longer honoured
        if await self.clients.find_by_client_id(record.client_id) is None:
            raise InvalidTokenError()
        if scope and not set(scope.split()) <= set(record.scopes):
            raise InvalidTokenError("Insufficient scope")
        return record

    # Discovery

    def metadata(self, base_url: str) -> Dict[str, Any]:
        """RFC 8414 authorization server metadata."""
        base_url = base_url.rstrip("/")
        auth_methods: List[str] = ["client_secret_basic", "client_secret_post", "none"]
        metadata: Dict[str, Any] = {
            "issuer": base_url,
            "authorization_endpoint": f"{base_url}/oauth/authorize",
            "token_endpoint": f"{base_url}/oauth/token",
            "revocation_endpoint": f"{base_url}/oauth/revoke",
            "introspection_endpoint": f"{base_url}/oauth/introspect",
            "userinfo_endpoint": f"{base_url}/oauth/userinfo",
            "scopes_supported": list(self.settings.allowed_scopes),
            "response_types_supported": ["code"],
            "grant_types_supported": [GRANT_AUTHORIZATION_CODE, GRANT_REFRESH_TOKEN],
            "token_endpoint_auth_methods_supported": auth_methods,
            "code_challenge_methods_supported": list(CODE_CHALLENGE_METHODS),
        }
        if self.settings.dynamic_registration_enabled:
            metadata["registration_endpoint"] = f"{base_url}/oauth/register"
        return metadata

    def protected_resource_metadata(self, base_url: str) -> Dict[str, Any]:
        """RFC 9728 protected resource metadata."""
        base_url = base_url.rstrip("/")
        return {
            "resource": base_url,
            "authorization_servers": [base_url],
            "scopes_supported": list(self.settings.allowed_scopes),
            "bearer_methods_supported": ["header"],
        }
