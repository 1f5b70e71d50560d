"""Domain models.

Every entity persists in the settings document under camelCase keys, so the
models carry a camelCase alias generator and accept either spelling on input.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ADMIN_OWNER = "admin"
DEFAULT_GRANTS = ["authorization_code", "refresh_token"]


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DocumentModel(BaseModel):
    """Base model for entities stored in the settings document."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AccessType(str, enum.Enum):
    """Bearer key scoping."""

    ALL = "all"
    GROUPS = "groups"
    SERVERS = "servers"
    CUSTOM = "custom"


class TargetType(str, enum.Enum):
    """Kind of resource a bearer key is evaluated against."""

    GROUP = "group"
    SERVER = "server"


class User(DocumentModel):
    """Hub user; doubles as the caller identity passed to DAOs."""

    username: str
    password: str = ""
    is_admin: bool = False


class ServerConfig(DocumentModel):
    """Downstream connector configuration (only ownership matters here)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True, extra="allow"
    )

    name: str
    owner: Optional[str] = None
    enabled: bool = True


class Group(DocumentModel):
    """Named collection of servers."""

    id: str
    name: str
    description: Optional[str] = None
    servers: List[Any] = Field(default_factory=list)
    owner: Optional[str] = None


class OAuthClient(DocumentModel):
    """Client registered with the authorization server."""

    client_id: str
    client_secret: Optional[str] = None
    name: str
    redirect_uris: List[str] = Field(default_factory=list)
    grants: List[str] = Field(default_factory=lambda: list(DEFAULT_GRANTS))
    scopes: Optional[List[str]] = None
    owner: str = ADMIN_OWNER
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("owner", mode="before")
    @classmethod
    def default_owner(cls, v):
        return v or ADMIN_OWNER

    @property
    def is_public(self) -> bool:
        return not self.client_secret


class OAuthToken(DocumentModel):
    """Issued access token, optionally paired with a refresh token."""

    access_token: str
    access_token_expires_at: datetime
    refresh_token: Optional[str] = None
    refresh_token_expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    client_id: str
    username: str

    @field_validator("access_token_expires_at", "refresh_token_expires_at")
    @classmethod
    def normalize_datetime(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    def is_access_token_expired(self, now: datetime) -> bool:
        return self.access_token_expires_at <= now

    def is_refresh_token_expired(self, now: datetime) -> bool:
        # A refresh token without expiry never expires
        if self.refresh_token_expires_at is None:
            return False
        return self.refresh_token_expires_at <= now

    def is_fully_expired(self, now: datetime) -> bool:
        """Access token expired and no live refresh token remains."""
        if not self.is_access_token_expired(now):
            return False
        return not self.refresh_token or self.is_refresh_token_expired(now)

    @property
    def scopes(self) -> List[str]:
        return self.scope.split() if self.scope else []


class AuthorizationCode(DocumentModel):
    """Short-lived authorization code; lives in memory only."""

    code: str
    expires_at: datetime
    redirect_uri: str
    scope: Optional[str] = None
    client_id: str
    username: str
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_datetime(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class BearerKey(DocumentModel):
    """Static shared-secret credential scoped to groups and/or servers."""

    id: str
    name: str
    token: str
    enabled: bool = True
    access_type: AccessType = AccessType.ALL
    allowed_groups: List[str] = Field(default_factory=list)
    allowed_servers: List[str] = Field(default_factory=list)

    @field_validator("allowed_groups", "allowed_servers", mode="before")
    @classmethod
    def default_empty(cls, v):
        return v or []

    def allows(self, target_type: TargetType, target_id: str) -> bool:
        """Evaluate this key's scoping against a group or server id."""
        if self.access_type == AccessType.ALL:
            return True
        if self.access_type == AccessType.GROUPS:
            return target_type == TargetType.GROUP and target_id in self.allowed_groups
        if self.access_type == AccessType.SERVERS:
            return target_type == TargetType.SERVER and target_id in self.allowed_servers
        if target_type == TargetType.GROUP:
            return target_id in self.allowed_groups
        return target_id in self.allowed_servers
