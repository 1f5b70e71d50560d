"""SQLAlchemy ORM models."""

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text, Uuid
from sqlalchemy.sql import func

from hubauth.db.base import Base


class UserRecord(Base):
    """Hub users."""

    __tablename__ = "users"

    username = Column(String(255), primary_key=True)
    password = Column(Text, nullable=False, default="")
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    def __repr__(self):
        return f"<UserRecord(username={self.username}, is_admin={self.is_admin})>"


class ServerRecord(Base):
    """Downstream connector configurations; connector-specific fields live in config."""

    __tablename__ = "servers"

    name = Column(String(255), primary_key=True)
    owner = Column(String(255), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    config = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    __table_args__ = (Index("servers_owner_idx", "owner"),)


class GroupRecord(Base):
    """Server groups."""

    __tablename__ = "groups"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    servers = Column(JSON, nullable=False, default=list)
    owner = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    __table_args__ = (Index("groups_owner_idx", "owner"),)


class OAuthClientRecord(Base):
    """Clients registered with the authorization server."""

    __tablename__ = "oauth_clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id = Column(String(255), nullable=False, unique=True)
    client_secret = Column(Text, nullable=True)
    name = Column(String(255), nullable=False)
    redirect_uris = Column(JSON, nullable=False, default=list)
    grants = Column(JSON, nullable=False, default=list)
    scopes = Column(JSON, nullable=True)
    owner = Column(String(255), nullable=False, default="admin")
    client_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    __table_args__ = (Index("oauth_clients_owner_idx", "owner"),)

    def __repr__(self):
        return f"<OAuthClientRecord(client_id={self.client_id}, owner={self.owner})>"


class OAuthTokenRecord(Base):
    """Issued access/refresh token pairs."""

    __tablename__ = "oauth_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    access_token = Column(String(512), nullable=False, unique=True)
    access_token_expires_at = Column(DateTime(timezone=True), nullable=False)
    refresh_token = Column(String(512), nullable=True, unique=True)
    refresh_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    scope = Column(Text, nullable=True)
    client_id = Column(String(255), nullable=False)
    username = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("oauth_tokens_client_id_idx", "client_id"),
        Index("oauth_tokens_username_idx", "username"),
        Index("oauth_tokens_access_expires_idx", "access_token_expires_at"),
    )

    def __repr__(self):
        return f"<OAuthTokenRecord(id={self.id}, client_id={self.client_id})>"


class BearerKeyRecord(Base):
    """Static bearer keys."""

    __tablename__ = "bearer_keys"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    token = Column(String(512), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    access_type = Column(String(16), nullable=False, default="all")
    allowed_groups = Column(JSON, nullable=False, default=list)
    allowed_servers = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    __table_args__ = (Index("bearer_keys_token_idx", "token"),)

    def __repr__(self):
        return f"<BearerKeyRecord(id={self.id}, name={self.name}, enabled={self.enabled})>"


class MetadataRecord(Base):
    """Key/value markers for one-time bootstrap steps."""

    __tablename__ = "hub_metadata"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
