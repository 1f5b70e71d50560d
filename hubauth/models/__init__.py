"""Pydantic models for domain entities and request/response validation."""

from hubauth.models.api import ErrorResponse, SuccessResponse
from hubauth.models.domain import (
    AccessType,
    AuthorizationCode,
    BearerKey,
    Group,
    OAuthClient,
    OAuthToken,
    ServerConfig,
    TargetType,
    User,
)
from hubauth.models.requests import (
    AuthorizeRequest,
    BearerKeyCreateRequest,
    BearerKeyUpdateRequest,
    OAuthClientCreateRequest,
    OAuthClientUpdateRequest,
    SessionTokenPayload,
)
from hubauth.models.responses import (
    AccessCheckResponse,
    AuthorizeResponse,
    BearerKeyResponse,
    IntrospectionResponse,
    OAuthClientCreatedResponse,
    OAuthClientResponse,
    OAuthErrorResponse,
    TokenResponse,
    UserInfoResponse,
)

__all__ = [
    # Domain models
    "AccessType",
    "AuthorizationCode",
    "BearerKey",
    "Group",
    "OAuthClient",
    "OAuthToken",
    "ServerConfig",
    "TargetType",
    "User",
    # Request models
    "AuthorizeRequest",
    "BearerKeyCreateRequest",
    "BearerKeyUpdateRequest",
    "OAuthClientCreateRequest",
    "OAuthClientUpdateRequest",
    "SessionTokenPayload",
    # Response models
    "AccessCheckResponse",
    "AuthorizeResponse",
    "BearerKeyResponse",
    "ErrorResponse",
    "IntrospectionResponse",
    "OAuthClientCreatedResponse",
    "OAuthClientResponse",
    "OAuthErrorResponse",
    "SuccessResponse",
    "TokenResponse",
    "UserInfoResponse",
]
