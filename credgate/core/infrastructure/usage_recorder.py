"""SQL-backed usage telemetry.

Runs from fire-and-forget tasks after the request may have finished, so it
opens its own session instead of borrowing the request transaction.
"""

from datetime import datetime

from sqlalchemy import update
from sqlmodel import col

from credgate.core.infrastructure.database.session import get_async_session
from credgate.modules.api_keys.infrastructure.models import ApiKeyModel
from credgate.modules.tokens.infrastructure.models import AccessTokenModel


class SqlUsageRecorder:
    """UsageRecorder writing ``last_used_at`` / ``last_used_ip`` columns."""

    async def record_api_key_usage(
        self, key_id: str, ip_address: str | None, used_at: datetime
    ) -> None:
        async with get_async_session() as session:
            await session.execute(
                update(ApiKeyModel)
                .where(col(ApiKeyModel.id) == key_id)
                .values(last_used_at=used_at, last_used_ip=ip_address)
            )
            await session.commit()

    async def record_token_usage(
        self, token_id: str, ip_address: str | None, used_at: datetime
    ) -> None:
        async with get_async_session() as session:
            await session.execute(
                update(AccessTokenModel)
                .where(col(AccessTokenModel.id) == token_id)
                .values(last_used_at=used_at, last_used_ip=ip_address)
            )
            await session.commit()


def get_usage_recorder() -> SqlUsageRecorder:
    return SqlUsageRecorder()
