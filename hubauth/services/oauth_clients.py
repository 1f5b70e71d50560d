"""Administrative OAuth client management."""

import secrets
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from hubauth.core.exceptions import NotFoundError, ValidationError
from hubauth.core.guards import guard_not_found
from hubauth.core.logging import get_logger
from hubauth.dao.oauth_clients import OAuthClientDao
from hubauth.models.domain import ADMIN_OWNER, DEFAULT_GRANTS, OAuthClient, User
from hubauth.models.requests import OAuthClientCreateRequest, OAuthClientUpdateRequest
from hubauth.services.token_manager import TokenManager

logger = get_logger(__name__)

SUPPORTED_GRANTS = frozenset(DEFAULT_GRANTS)
SECRET_WARNING = "Client secret is only shown once. Please save it securely."


def generate_client_id() -> str:
    return secrets.token_hex(16)


def generate_client_secret() -> str:
    return secrets.token_hex(32)


def _validate_redirect_uris(uris: List[str]) -> None:
    for uri in uris:
        parts = urlsplit(uri)
        if not parts.scheme or parts.fragment:
            raise ValidationError(f"Invalid redirect URI: {uri}")


def _validate_grants(grants: List[str]) -> None:
    unsupported = sorted(set(grants) - SUPPORTED_GRANTS)
    if unsupported:
        raise ValidationError(
            "Unsupported grant types",
            {"reason": f"Supported grant types: {', '.join(sorted(SUPPORTED_GRANTS))}"},
        )


class OAuthClientService:
    """Registers clients and keeps their tokens in step with their lifecycle."""

    def __init__(
        self,
        clients: OAuthClientDao,
        tokens: TokenManager,
        default_scopes: Optional[List[str]] = None,
    ):
        self.clients = clients
        self.tokens = tokens
        self.default_scopes = list(default_scopes or ["read", "write"])

    async def list_clients(self) -> List[OAuthClient]:
        return await self.clients.find_all()

    async def get_client(self, client_id: str) -> OAuthClient:
        with guard_not_found(
            await self.clients.find_by_client_id(client_id), "OAuth client not found"
        ) as client:
            return client

    async def create_client(
        self, request: OAuthClientCreateRequest, identity: Optional[User] = None
    ) -> OAuthClient:
        """Register a client; the returned model carries the only copy of its secret."""
        _validate_redirect_uris(request.redirect_uris)
        grants = request.grants or list(DEFAULT_GRANTS)
        _validate_grants(grants)

        client = OAuthClient(
            client_id=request.client_id or generate_client_id(),
            client_secret=generate_client_secret() if request.require_secret else None,
            name=request.name,
            redirect_uris=list(dict.fromkeys(request.redirect_uris)),
            grants=grants,
            scopes=request.scopes or list(self.default_scopes),
            owner=identity.username if identity else ADMIN_OWNER,
            metadata=request.metadata,
        )
        created = await self.clients.create(client)
        logger.info(
            "oauth_client_registered",
            client_id=created.client_id,
            public=created.is_public,
            owner=created.owner,
        )
        return created

    async def update_client(self, client_id: str, request: OAuthClientUpdateRequest) -> OAuthClient:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "redirect_uris" in changes:
            _validate_redirect_uris(changes["redirect_uris"])
            changes["redirect_uris"] = list(dict.fromkeys(changes["redirect_uris"]))
        if "grants" in changes:
            _validate_grants(changes["grants"])

        updated = await self.clients.update(client_id, changes)
        if updated is None:
            raise NotFoundError("OAuth client not found")
        logger.info("oauth_client_updated", client_id=client_id, fields=sorted(changes))
        return updated

    async def delete_client(self, client_id: str) -> int:
        """Delete the client and revoke its tokens; returns the number of tokens revoked."""
        if not await self.clients.delete(client_id):
            raise NotFoundError("OAuth client not found")
        revoked = await self.tokens.revoke_client_tokens(client_id)
        logger.info("oauth_client_deleted", client_id=client_id, tokens_revoked=revoked)
        return revoked

    async def regenerate_secret(self, client_id: str) -> Tuple[OAuthClient, str]:
        await self.get_client(client_id)
        secret = generate_client_secret()
        updated = await self.clients.update(client_id, {"client_secret": secret})
        if updated is None:
            raise NotFoundError("OAuth client not found")
        logger.info("oauth_client_secret_regenerated", client_id=client_id)
        return updated, secret
