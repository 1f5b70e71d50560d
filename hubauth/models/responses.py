"""Pydantic response models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hubauth.models.domain import AccessType, BearerKey, OAuthClient


class AdminResponse(BaseModel):
    """Administrative responses are rendered with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OAuthClientResponse(AdminResponse):
    """OAuth client as exposed to administrators. The secret is never listed."""

    client_id: str
    name: str
    redirect_uris: List[str]
    grants: List[str]
    scopes: Optional[List[str]] = None
    owner: str
    public: bool = Field(..., description="True when the client has no secret")

    @classmethod
    def from_client(cls, client: OAuthClient) -> "OAuthClientResponse":
        return cls(
            client_id=client.client_id,
            name=client.name,
            redirect_uris=client.redirect_uris,
            grants=client.grants,
            scopes=client.scopes,
            owner=client.owner,
            public=client.is_public,
        )


class OAuthClientCreatedResponse(OAuthClientResponse):
    """Returned once on creation or secret regeneration."""

    client_secret: Optional[str] = None
    warning: Optional[str] = None


class BearerKeyResponse(AdminResponse):
    """Bearer key as exposed to administrators."""

    id: str
    name: str
    token: str
    enabled: bool
    access_type: AccessType
    allowed_groups: List[str]
    allowed_servers: List[str]

    @classmethod
    def from_key(cls, key: BearerKey) -> "BearerKeyResponse":
        return cls(**key.model_dump())


class DeletedResponse(BaseModel):
    """Response model for delete endpoints."""

    deleted: bool = True


class AuthorizeResponse(BaseModel):
    """Authorization code handed back to the consenting user agent."""

    code: str
    redirect_uri: str = Field(..., description="redirect_uri with code and state appended")
    state: Optional[str] = None
    expires_in: int


class TokenResponse(BaseModel):
    """RFC 6749 section 5.1 access token response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class IntrospectionResponse(BaseModel):
    """RFC 7662 token introspection response."""

    active: bool
    scope: Optional[str] = None
    client_id: Optional[str] = None
    username: Optional[str] = None
    token_type: Optional[str] = None
    exp: Optional[int] = None


class UserInfoResponse(BaseModel):
    """OpenID Connect compatible user info."""

    sub: str
    username: str


class AccessCheckResponse(BaseModel):
    """Result of evaluating a bearer key against a target."""

    authorized: bool = True
    key_id: str
    key_name: str


class OAuthErrorResponse(BaseModel):
    """RFC 6749 section 5.2 error response."""

    error: str
    error_description: Optional[str] = None


class ClientRegistrationResponse(BaseModel):
    """RFC 7591 client information response; unset members are omitted."""

    client_id: str
    client_name: str
    redirect_uris: List[str]
    grant_types: List[str]
    response_types: List[str]
    scope: str
    token_endpoint_auth_method: str
    client_secret: Optional[str] = None
    client_secret_expires_at: Optional[int] = None
    client_id_issued_at: Optional[int] = None
    registration_access_token: Optional[str] = None
    registration_client_uri: Optional[str] = None
    application_type: Optional[str] = None
    contacts: Optional[List[str]] = None
    logo_uri: Optional[str] = None
    client_uri: Optional[str] = None
    policy_uri: Optional[str] = None
    tos_uri: Optional[str] = None
    jwks_uri: Optional[str] = None
    jwks: Optional[Dict[str, Any]] = None
