"""Access token repository implementations."""

from datetime import UTC, datetime

from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from credgate.core.domain.exceptions import EntityNotFoundError
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.tokens.domain.repository import AccessTokenRepository
from credgate.modules.tokens.infrastructure.mappers import AccessTokenMapper
from credgate.modules.tokens.infrastructure.models import AccessTokenModel


class PostgreSQLAccessTokenRepository(AccessTokenRepository):
    """PostgreSQL access token repository implementation."""

    def __init__(self, session: AsyncSession, mapper: AccessTokenMapper):
        self.session = session
        self.mapper = mapper

    async def _first(self, *conditions) -> AccessToken | None:
        statement = select(AccessTokenModel).where(*conditions)
        result = await self.session.execute(statement)
        model = result.scalar_one_or_none()
        return self.mapper.to_domain(model) if model else None

    async def get_by_id(self, token_id: str) -> AccessToken | None:
        return await self._first(AccessTokenModel.id == token_id)

    async def get_by_token_hash(self, token_hash: str) -> AccessToken | None:
        """按 access token 摘要查找有效记录。"""
        return await self._first(
            AccessTokenModel.token_hash == token_hash,
            col(AccessTokenModel.is_active).is_(True),
        )

    async def find_any_by_token_hash(self, token_hash: str) -> AccessToken | None:
        """按摘要查找任意状态的记录（含已吊销）。"""
        return await self._first(AccessTokenModel.token_hash == token_hash)

    async def get_by_refresh_hash(self, refresh_hash: str) -> AccessToken | None:
        return await self._first(
            AccessTokenModel.refresh_token_hash == refresh_hash,
            col(AccessTokenModel.is_active).is_(True),
        )

    async def find_any_by_refresh_hash(self, refresh_hash: str) -> AccessToken | None:
        return await self._first(AccessTokenModel.refresh_token_hash == refresh_hash)

    async def create(self, token: AccessToken) -> AccessToken:
        model = self.mapper.to_model(token)
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self.mapper.to_domain(model)

    async def update(self, token: AccessToken) -> AccessToken:
        """只更新可变字段：状态与使用记录。"""
        statement = select(AccessTokenModel).where(AccessTokenModel.id == token.id)
        result = await self.session.execute(statement)
        existing = result.scalar_one_or_none()
        if not existing:
            raise EntityNotFoundError("AccessToken", token.id)

        existing.is_active = token.is_active
        existing.last_used_at = token.last_used_at
        existing.last_used_ip = token.last_used_ip
        existing.updated_at = token.updated_at

        self.session.add(existing)
        await self.session.flush()
        await self.session.refresh(existing)
        return self.mapper.to_domain(existing)

    async def revoke(self, token_id: str) -> bool:
        """条件更新 is_active=true 的行，返回是否由本次调用吊销。"""
        statement = (
            update(AccessTokenModel)
            .where(
                col(AccessTokenModel.id) == token_id,
                col(AccessTokenModel.is_active).is_(True),
            )
            .values(is_active=False, updated_at=datetime.now(UTC))
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def list_by_user(
        self, user_id: str, page: int = 1, page_size: int = 20
    ) -> tuple[list[AccessToken], int]:
        statement = (
            select(
                AccessTokenModel,
                # 窗口函数一次查询取回总数
                func.count(col(AccessTokenModel.id)).over().label("total_count"),
            )
            .where(AccessTokenModel.user_id == user_id)
            .order_by(col(AccessTokenModel.created_at).desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        result = await self.session.execute(statement)
        rows = result.all()

        if not rows:
            return [], 0

        total_count = rows[0].total_count
        models = [row.AccessTokenModel for row in rows]
        return self.mapper.to_domain_list(models), total_count

    async def revoke_all_for_api_key(self, api_key_id: str) -> int:
        statement = (
            update(AccessTokenModel)
            .where(
                col(AccessTokenModel.api_key_id) == api_key_id,
                col(AccessTokenModel.is_active).is_(True),
            )
            .values(is_active=False, updated_at=datetime.now(UTC))
        )
        result = await self.session.execute(statement)
        return result.rowcount or 0

    async def purge_expired(self, before: datetime) -> int:
        """删除 refresh token 已过期的记录（无论是否已吊销）。"""
        statement = delete(AccessTokenModel).where(
            col(AccessTokenModel.refresh_token_expires_at) < before
        )
        result = await self.session.execute(statement)
        return result.rowcount or 0
