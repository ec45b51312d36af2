"""Access token database models."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field

from credgate.core.infrastructure.database.base_model import BaseModel


class AccessTokenModel(BaseModel, table=True):
    """Access token database model (digests only)."""

    __tablename__ = "access_tokens"

    token_hash: str = Field(nullable=False, unique=True, index=True, max_length=64)
    refresh_token_hash: str = Field(
        nullable=False, unique=True, index=True, max_length=64
    )
    api_key_id: str = Field(nullable=False, index=True, foreign_key="api_keys.id")
    user_id: str = Field(nullable=False, index=True)
    scopes: list[str] = Field(default_factory=list, sa_type=JSON, nullable=False)
    is_active: bool = Field(default=True, nullable=False, index=True)
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    refresh_token_expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    last_used_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    last_used_ip: str | None = Field(default=None, nullable=True, max_length=45)
    labels: dict[str, str] = Field(default_factory=dict, sa_type=JSON, nullable=False)
