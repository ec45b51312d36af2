"""User module infrastructure dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.core.infrastructure.database.session import get_db_session
from credgate.modules.users.infrastructure.mappers import UserMapper
from credgate.modules.users.infrastructure.repositories import PostgreSQLUserDirectory


def get_user_mapper() -> UserMapper:
    return UserMapper()


async def get_user_directory(
    session: AsyncSession = Depends(get_db_session),
    mapper: UserMapper = Depends(get_user_mapper),
) -> PostgreSQLUserDirectory:
    return PostgreSQLUserDirectory(session, mapper)
