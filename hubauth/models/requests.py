"""Pydantic request models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hubauth.models.domain import AccessType


class AdminRequest(BaseModel):
    """Administrative payloads accept camelCase (UI) or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OAuthClientCreateRequest(AdminRequest):
    """Request model for registering an OAuth client."""

    name: str = Field(..., min_length=1, description="Display name of the client")
    redirect_uris: List[str] = Field(..., min_length=1, description="Allowed redirect URIs")
    client_id: Optional[str] = Field(
        default=None, pattern=r"^[a-zA-Z0-9_-]+$", description="Client id; generated when omitted"
    )
    grants: Optional[List[str]] = Field(default=None, description="Allowed grant types")
    scopes: Optional[List[str]] = Field(default=None, description="Allowed scopes")
    require_secret: bool = Field(default=True, description="Generate a client secret")
    metadata: Optional[Dict[str, Any]] = None


class OAuthClientUpdateRequest(AdminRequest):
    """Request model for updating an OAuth client. clientId is immutable."""

    name: Optional[str] = Field(default=None, min_length=1)
    redirect_uris: Optional[List[str]] = Field(default=None, min_length=1)
    grants: Optional[List[str]] = None
    scopes: Optional[List[str]] = None
    owner: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class BearerKeyCreateRequest(AdminRequest):
    """Request model for creating a bearer key."""

    name: str = Field(..., min_length=1, max_length=100, description="Key name")
    token: str = Field(..., min_length=1, max_length=512, description="Token value")
    enabled: bool = True
    access_type: AccessType
    allowed_groups: List[str] = Field(default_factory=list)
    allowed_servers: List[str] = Field(default_factory=list)


class BearerKeyUpdateRequest(AdminRequest):
    """Request model for updating a bearer key. id is immutable."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    token: Optional[str] = Field(default=None, min_length=1, max_length=512)
    enabled: Optional[bool] = None
    access_type: Optional[AccessType] = None
    allowed_groups: Optional[List[str]] = None
    allowed_servers: Optional[List[str]] = None


class AuthorizeRequest(BaseModel):
    """Authorization request submitted after the user approved the consent screen."""

    client_id: str = Field(..., pattern=r"^[a-zA-Z0-9_-]+$")
    redirect_uri: str
    response_type: str = Field(default="code", pattern=r"^code$")
    scope: Optional[str] = Field(default=None, pattern=r"^[a-zA-Z0-9_:. ]*$")
    state: Optional[str] = None
    client_secret: Optional[str] = None
    code_challenge: Optional[str] = Field(default=None, pattern=r"^[a-zA-Z0-9_.~-]+$")
    code_challenge_method: Optional[str] = Field(default=None, pattern=r"^(S256|plain)$")


class TokenRequest(BaseModel):
    """Token endpoint parameters (form encoded on the wire)."""

    grant_type: str
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    code_verifier: Optional[str] = Field(default=None, min_length=43, max_length=128)
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class SessionTokenPayload(BaseModel):
    """Session token payload model."""

    username: str
    is_admin: bool = False


class ClientRegistrationRequest(BaseModel):
    """RFC 7591 client metadata. Unknown members are ignored."""

    model_config = ConfigDict(extra="ignore")

    redirect_uris: Optional[List[str]] = None
    client_name: Optional[str] = Field(default=None, max_length=255)
    grant_types: Optional[List[str]] = None
    response_types: Optional[List[str]] = None
    scope: Optional[str] = None
    token_endpoint_auth_method: Optional[str] = None
    application_type: Optional[str] = None
    contacts: Optional[List[str]] = None
    logo_uri: Optional[str] = None
    client_uri: Optional[str] = None
    policy_uri: Optional[str] = None
    tos_uri: Optional[str] = None
    jwks_uri: Optional[str] = None
    jwks: Optional[Dict[str, Any]] = None
