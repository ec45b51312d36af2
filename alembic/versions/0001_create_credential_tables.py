"""create api_keys and access_tokens tables

The users table belongs to the surrounding user directory and is not
managed here.

Revision ID: 0001_create_credential_tables
Revises:
Create Date: 2026-10-17
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_create_credential_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "api_keys",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("access_key", sa.String(64), nullable=False),
        sa.Column("secret_key_hash", sa.String(64), nullable=False),
        sa.Column("scopes", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column(
            "allowed_ips", sa.JSON(), nullable=False, server_default=sa.text("'[]'")
        ),
        sa.Column(
            "rate_limit", sa.Integer(), nullable=False, server_default=sa.text("1000")
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_ip", sa.String(45), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column("labels", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"])
    op.create_index("ix_api_keys_is_active", "api_keys", ["is_active"])
    op.create_index("ix_api_keys_access_key", "api_keys", ["access_key"], unique=True)

    op.create_table(
        "access_tokens",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("refresh_token_hash", sa.String(64), nullable=False),
        sa.Column(
            "api_key_id",
            sa.String(),
            sa.ForeignKey("api_keys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("scopes", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "refresh_token_expires_at", sa.DateTime(timezone=True), nullable=False
        ),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_ip", sa.String(45), nullable=True),
        sa.Column("labels", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index(
        "ix_access_tokens_token_hash", "access_tokens", ["token_hash"], unique=True
    )
    op.create_index(
        "ix_access_tokens_refresh_token_hash",
        "access_tokens",
        ["refresh_token_hash"],
        unique=True,
    )
    op.create_index("ix_access_tokens_api_key_id", "access_tokens", ["api_key_id"])
    op.create_index("ix_access_tokens_user_id", "access_tokens", ["user_id"])
    op.create_index("ix_access_tokens_is_active", "access_tokens", ["is_active"])
    op.create_index(
        "ix_access_tokens_refresh_token_expires_at",
        "access_tokens",
        ["refresh_token_expires_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_access_tokens_refresh_token_expires_at", table_name="access_tokens"
    )
    op.drop_index("ix_access_tokens_is_active", table_name="access_tokens")
    op.drop_index("ix_access_tokens_user_id", table_name="access_tokens")
    op.drop_index("ix_access_tokens_api_key_id", table_name="access_tokens")
    op.drop_index("ix_access_tokens_refresh_token_hash", table_name="access_tokens")
    op.drop_index("ix_access_tokens_token_hash", table_name="access_tokens")
    op.drop_table("access_tokens")

    op.drop_index("ix_api_keys_access_key", table_name="api_keys")
    op.drop_index("ix_api_keys_is_active", table_name="api_keys")
    op.drop_index("ix_api_keys_user_id", table_name="api_keys")
    op.drop_table("api_keys")
