"""User database models."""

from sqlalchemy import JSON
from sqlmodel import Field

from credgate.core.infrastructure.database.base_model import BaseModel


class UserModel(BaseModel, table=True):
    """Read-only view of the surrounding system's users table."""

    __tablename__ = "users"

    email: str | None = Field(default=None, index=True, nullable=True)
    display_name: str | None = Field(default=None, nullable=True)
    is_active: bool = Field(default=True, nullable=False)
    default_scopes: list[str] = Field(default_factory=list, sa_type=JSON, nullable=False)
