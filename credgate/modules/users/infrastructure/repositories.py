"""User directory implementations."""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from credgate.modules.users.domain.entities import User
from credgate.modules.users.domain.repository import UserDirectory
from credgate.modules.users.infrastructure.mappers import UserMapper
from credgate.modules.users.infrastructure.models import UserModel


class PostgreSQLUserDirectory(UserDirectory):
    """PostgreSQL-backed principal lookup."""

    def __init__(self, session: AsyncSession, mapper: UserMapper):
        self.session = session
        self.mapper = mapper

    async def get_by_id(self, user_id: str) -> User | None:
        statement = select(UserModel).where(UserModel.id == user_id)
        result = await self.session.execute(statement)
        model = result.scalar_one_or_none()
        return self.mapper.to_domain(model) if model else None
