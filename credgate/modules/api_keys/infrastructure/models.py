"""API Key database models."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field

from credgate.core.infrastructure.database.base_model import BaseModel


class ApiKeyModel(BaseModel, table=True):
    """API Key database model."""

    __tablename__ = "api_keys"

    user_id: str = Field(nullable=False, index=True)
    name: str = Field(nullable=False, max_length=100)
    description: str | None = Field(default=None, nullable=True, max_length=500)
    access_key: str = Field(nullable=False, unique=True, index=True, max_length=64)
    secret_key_hash: str = Field(nullable=False, max_length=64)
    scopes: list[str] = Field(default_factory=list, sa_type=JSON, nullable=False)
    allowed_ips: list[str] = Field(default_factory=list, sa_type=JSON, nullable=False)
    rate_limit: int = Field(default=1000, nullable=False)
    expires_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    last_used_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    last_used_ip: str | None = Field(default=None, nullable=True, max_length=45)
    is_active: bool = Field(default=True, nullable=False, index=True)
    labels: dict[str, str] = Field(default_factory=dict, sa_type=JSON, nullable=False)
