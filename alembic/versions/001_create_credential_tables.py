"""create_credential_tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        )
    ]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    """Create the user, server, group and credential tables with their indexes."""
    op.create_table(
        "users",
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("password", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("username"),
    )

    op.create_table(
        "servers",
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("owner", sa.String(255), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("config", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("name"),
    )
    op.create_index("servers_owner_idx", "servers", ["owner"])

    op.create_table(
        "groups",
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("servers", sa.JSON(), nullable=False),
        sa.Column("owner", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("groups_owner_idx", "groups", ["owner"])

    op.create_table(
        "oauth_clients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.String(255), nullable=False),
        sa.Column("client_secret", sa.Text(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("redirect_uris", sa.JSON(), nullable=False),
        sa.Column("grants", sa.JSON(), nullable=False),
        sa.Column("scopes", sa.JSON(), nullable=True),
        sa.Column("owner", sa.String(255), nullable=False, server_default="admin"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id"),
    )
    op.create_index("oauth_clients_owner_idx", "oauth_clients", ["owner"])

    op.create_table(
        "oauth_tokens",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("access_token", sa.String(512), nullable=False),
        sa.Column("access_token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("refresh_token", sa.String(512), nullable=True),
        sa.Column("refresh_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scope", sa.Text(), nullable=True),
        sa.Column("client_id", sa.String(255), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("access_token"),
        sa.UniqueConstraint("refresh_token"),
    )
    op.create_index("oauth_tokens_client_id_idx", "oauth_tokens", ["client_id"])
    op.create_index("oauth_tokens_username_idx", "oauth_tokens", ["username"])
    op.create_index("oauth_tokens_access_expires_idx", "oauth_tokens", ["access_token_expires_at"])

    op.create_table(
        "bearer_keys",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("token", sa.String(512), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("access_type", sa.String(16), nullable=False, server_default="all"),
        sa.Column("allowed_groups", sa.JSON(), nullable=False),
        sa.Column("allowed_servers", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("bearer_keys_token_idx", "bearer_keys", ["token"])

    op.create_table(
        "hub_metadata",
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Drop all credential tables."""
    op.drop_table("hub_metadata")
    op.drop_index("bearer_keys_token_idx", table_name="bearer_keys")
    op.drop_table("bearer_keys")
    op.drop_index("oauth_tokens_access_expires_idx", table_name="oauth_tokens")
    op.drop_index("oauth_tokens_username_idx", table_name="oauth_tokens")
    op.drop_index("oauth_tokens_client_id_idx", table_name="oauth_tokens")
    op.drop_table("oauth_tokens")
    op.drop_index("oauth_clients_owner_idx", table_name="oauth_clients")
    op.drop_table("oauth_clients")
    op.drop_index("groups_owner_idx", table_name="groups")
    op.drop_table("groups")
    op.drop_index("servers_owner_idx", table_name="servers")
    op.drop_table("servers")
    op.drop_table("users")
