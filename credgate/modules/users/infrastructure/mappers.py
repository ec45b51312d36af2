"""User entity-model mappers."""

from credgate.core.infrastructure.database.mapper import BaseMapper
from credgate.modules.users.domain.entities import User
from credgate.modules.users.infrastructure.models import UserModel


class UserMapper(BaseMapper[User, UserModel]):
    """User entity-model mapper."""

    def to_domain(self, model: UserModel) -> User:
        return User(
            id=model.id,
            email=model.email,
            display_name=model.display_name,
            is_active=model.is_active,
            default_scopes=list(model.default_scopes or []),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self, entity: User) -> UserModel:
        return UserModel(
            id=entity.id,
            email=entity.email,
            display_name=entity.display_name,
            is_active=entity.is_active,
            default_scopes=entity.default_scopes,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
