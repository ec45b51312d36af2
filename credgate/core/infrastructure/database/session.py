"""Database session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from credgate.core.config import settings
from credgate.core.infrastructure.health import DatabaseHealthResult, HealthStatus

async_engine = create_async_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    echo=settings.ENVIRONMENT == "local",
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session with automatic transaction management.

    The whole request runs in one transaction, so a refresh rotation
    (revoke old record + insert new one) commits or rolls back as a unit.
    """
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        async with session.begin():
            yield session


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """获取独立的异步数据库会话（上下文管理器版本）。

    用于后台使用记录写入和维护脚本，调用方自行提交。

    Usage:
        async with get_async_session() as session:
            ...
            await session.commit()
    """
    session = AsyncSessionLocal()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Initialize database connection."""
    try:
        async with async_engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


async def check_db_health() -> DatabaseHealthResult:
    """检查数据库连通性并返回服务端版本。"""
    try:
        async with async_engine.connect() as conn:
            result = await conn.execute(text("SELECT version()"))
            version = result.scalar()

            return DatabaseHealthResult(
                status=HealthStatus.OK,
                connected=True,
                version=version.split(",")[0] if version else "unknown",
            )
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return DatabaseHealthResult(
            status=HealthStatus.ERROR,
            connected=False,
            error=str(e),
        )
