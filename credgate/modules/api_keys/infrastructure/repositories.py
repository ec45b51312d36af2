"""API Key repository implementations."""

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from credgate.core.domain.exceptions import DuplicateEntityError, EntityNotFoundError
from credgate.modules.api_keys.domain.entities import ApiKey, ApiKeyStats
from credgate.modules.api_keys.domain.repository import ApiKeyRepository
from credgate.modules.api_keys.infrastructure.mappers import ApiKeyMapper
from credgate.modules.api_keys.infrastructure.models import ApiKeyModel


class PostgreSQLApiKeyRepository(ApiKeyRepository):
    """PostgreSQL API Key repository implementation."""

    def __init__(self, session: AsyncSession, mapper: ApiKeyMapper):
        self.session = session
        self.mapper = mapper

    async def get_by_id(self, key_id: str) -> ApiKey | None:
        statement = select(ApiKeyModel).where(ApiKeyModel.id == key_id)
        result = await self.session.execute(statement)
        model = result.scalar_one_or_none()
        return self.mapper.to_domain(model) if model else None

    async def get_by_access_key(self, access_key: str) -> ApiKey | None:
        """返回任意状态的 key（含停用、过期）。

        是否可用由服务层判断。
        """
        statement = select(ApiKeyModel).where(ApiKeyModel.access_key == access_key)
        result = await self.session.execute(statement)
        model = result.scalar_one_or_none()
        return self.mapper.to_domain(model) if model else None

    async def list_by_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        is_active: bool | None = None,
    ) -> tuple[list[ApiKey], int]:
        statement = select(
            ApiKeyModel, func.count(col(ApiKeyModel.id)).over().label("total_count")
        ).where(ApiKeyModel.user_id == user_id)

        if is_active is not None:
            statement = statement.where(col(ApiKeyModel.is_active).is_(is_active))

        statement = (
            statement.order_by(col(ApiKeyModel.created_at).desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        result = await self.session.execute(statement)
        rows = result.all()

        if not rows:
            return [], 0

        total_count = rows[0].total_count
        models = [row.ApiKeyModel for row in rows]
        return self.mapper.to_domain_list(models), total_count

    async def get_stats(self, user_id: str, now: datetime) -> ApiKeyStats:
        # 单条聚合查询，FILTER 子句分别计数
        statement = select(
            func.count(col(ApiKeyModel.id)).label("total"),
            func.count(col(ApiKeyModel.id))
            .filter(col(ApiKeyModel.is_active).is_(True))
            .label("active"),
            func.count(col(ApiKeyModel.id))
            .filter(col(ApiKeyModel.expires_at) < now)
            .label("expired"),
            func.max(col(ApiKeyModel.last_used_at)).label("last_used_at"),
        ).where(ApiKeyModel.user_id == user_id)

        result = await self.session.execute(statement)
        row = result.one()
        return ApiKeyStats(
            total=row.total or 0,
            active=row.active or 0,
            expired=row.expired or 0,
            last_used_at=row.last_used_at,
        )

    async def create(self, api_key: ApiKey) -> ApiKey:
        """在 savepoint 内插入，access_key 冲突时外层事务仍可继续重试。"""
        model = self.mapper.to_model(api_key)
        try:
            async with self.session.begin_nested():
                self.session.add(model)
                await self.session.flush()
        except IntegrityError as e:
            raise DuplicateEntityError("ApiKey", "access_key", api_key.access_key_prefix) from e

        await self.session.refresh(model)
        return self.mapper.to_domain(model)

    async def update(self, api_key: ApiKey) -> ApiKey:
        statement = select(ApiKeyModel).where(ApiKeyModel.id == api_key.id)
        result = await self.session.execute(statement)
        existing = result.scalar_one_or_none()
        if not existing:
            raise EntityNotFoundError("ApiKey", api_key.id)

        existing.name = api_key.name
        existing.description = api_key.description
        existing.secret_key_hash = api_key.secret_key_hash
        existing.scopes = api_key.scopes
        existing.allowed_ips = api_key.allowed_ips
        existing.rate_limit = api_key.rate_limit
        existing.expires_at = api_key.expires_at
        existing.is_active = api_key.is_active
        existing.labels = api_key.labels
        existing.updated_at = api_key.updated_at

        self.session.add(existing)
        await self.session.flush()
        await self.session.refresh(existing)
        return self.mapper.to_domain(existing)
