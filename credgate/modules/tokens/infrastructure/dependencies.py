"""Token module infrastructure dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.core.infrastructure.database.session import get_db_session
from credgate.modules.tokens.infrastructure.mappers import AccessTokenMapper
from credgate.modules.tokens.infrastructure.repositories import (
    PostgreSQLAccessTokenRepository,
)


def get_access_token_mapper() -> AccessTokenMapper:
    return AccessTokenMapper()


async def get_access_token_repository(
    session: AsyncSession = Depends(get_db_session),
    mapper: AccessTokenMapper = Depends(get_access_token_mapper),
) -> PostgreSQLAccessTokenRepository:
    return PostgreSQLAccessTokenRepository(session, mapper)
