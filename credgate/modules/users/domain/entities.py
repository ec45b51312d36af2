"""Principal (user directory) entities."""

from pydantic import Field

from credgate.core.domain.base_entity import BaseEntity


class User(BaseEntity):
    """A principal on whose behalf credentials and tokens act.

    Owned by the surrounding user directory; credgate only reads it.
    """

    email: str | None = Field(default=None, description="Contact email")
    display_name: str | None = Field(default=None, description="Display name")
    is_active: bool = Field(default=True, description="Whether the account is active")
    default_scopes: list[str] = Field(
        default_factory=list,
        description="Scopes granted to session tokens that carry none",
    )
