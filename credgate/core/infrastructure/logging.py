"""Logging configuration with structlog integration.

两条日志通道：
1. loguru: 一般诊断日志
2. structlog: 凭证与令牌生命周期的结构化业务事件

业务事件只记录 id 和 access key 前缀，secret 与令牌原文不会进入任何通道。
"""

import sys
from datetime import datetime
from typing import Any

import structlog
from loguru import logger

from credgate.core.config import settings


def setup_logging() -> None:
    """Configure application logging with structlog and loguru."""
    # 业务事件通道
    _configure_structlog()

    # 诊断日志通道
    _configure_loguru()

    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")


def _configure_structlog() -> None:
    """配置 structlog 处理器链。"""
    # 渲染器随环境切换
    if settings.ENVIRONMENT == "local":
        # 本地：彩色控制台输出
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        # 其他环境：每行一个 JSON 事件
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            # 合并请求上下文变量
            structlog.contextvars.merge_contextvars,
            # 日志级别
            structlog.stdlib.add_log_level,
            # ISO 时间戳
            structlog.processors.TimeStamper(fmt="iso"),
            # 调用位置（模块、函数、行号）
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            # 异常堆栈转为字符串
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru() -> None:
    """配置 loguru 输出目标。"""
    # Drop the default stderr sink
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    # 非本地环境额外按天滚动写文件
    if settings.ENVIRONMENT != "local":
        logger.add(
            "logs/credgate_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


def _get_log_level_number(level: str) -> int:
    """日志级别名转为数值，未知级别按 INFO 处理。"""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# 业务事件
# ============================================================================


class BusinessEvents:
    """业务事件日志助手。

    每个方法对应一种事件，字段名固定，便于按 event_type 检索。

    Usage:
        from credgate.core.infrastructure.logging import BusinessEvents

        BusinessEvents.token_issued(user_id="u1", api_key_id="k1", token_id="t1",
                                    scopes=["read"], expires_at=expires_at)
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def api_key_created(
        cls,
        user_id: str,
        key_id: str,
        access_key_prefix: str,
        scopes: list[str],
        **extra: Any,
    ) -> None:
        """记录凭证创建（只含 access key 前缀）。"""
        cls._log.info(
            "api_key_created",
            event_type="credential",
            user_id=user_id,
            key_id=key_id,
            access_key_prefix=access_key_prefix,
            scopes=scopes,
            **extra,
        )

    @classmethod
    def api_key_secret_regenerated(
        cls, user_id: str, key_id: str, **extra: Any
    ) -> None:
        cls._log.info(
            "api_key_secret_regenerated",
            event_type="credential",
            user_id=user_id,
            key_id=key_id,
            **extra,
        )

    @classmethod
    def api_key_updated(
        cls, user_id: str, key_id: str, fields: list[str], **extra: Any
    ) -> None:
        cls._log.info(
            "api_key_updated",
            event_type="credential",
            user_id=user_id,
            key_id=key_id,
            fields=fields,
            **extra,
        )

    @classmethod
    def api_key_deactivated(
        cls, user_id: str, key_id: str, revoked_tokens: int, **extra: Any
    ) -> None:
        cls._log.info(
            "api_key_deactivated",
            event_type="credential",
            user_id=user_id,
            key_id=key_id,
            revoked_tokens=revoked_tokens,
            **extra,
        )

    @classmethod
    def token_issued(
        cls,
        user_id: str,
        api_key_id: str,
        token_id: str,
        scopes: list[str],
        expires_at: datetime,
        **extra: Any,
    ) -> None:
        """记录 client_credentials 换取令牌。"""
        cls._log.info(
            "token_issued",
            event_type="token",
            user_id=user_id,
            api_key_id=api_key_id,
            token_id=token_id,
            scopes=scopes,
            expires_at=expires_at.isoformat(),
            **extra,
        )

    @classmethod
    def token_refreshed(
        cls,
        user_id: str,
        old_token_id: str,
        new_token_id: str,
        scopes: list[str],
        **extra: Any,
    ) -> None:
        """记录刷新轮换：旧记录已吊销，新记录已写入。"""
        cls._log.info(
            "token_refreshed",
            event_type="token",
            user_id=user_id,
            old_token_id=old_token_id,
            new_token_id=new_token_id,
            scopes=scopes,
            **extra,
        )

    @classmethod
    def token_revoked(
        cls, token_id: str, user_id: str, matched_by: str, **extra: Any
    ) -> None:
        cls._log.info(
            "token_revoked",
            event_type="token",
            token_id=token_id,
            user_id=user_id,
            matched_by=matched_by,
            **extra,
        )

    @classmethod
    def auth_failed(
        cls,
        reason: str,
        auth_type: str,
        **extra: Any,
    ) -> None:
        """记录被拒绝的认证请求，reason 为错误码。"""
        cls._log.warning(
            "auth_failed",
            event_type="auth",
            reason=reason,
            auth_type=auth_type,
            **extra,
        )

    @classmethod
    def telemetry_write_failed(
        cls,
        operation: str,
        error: str,
        **extra: Any,
    ) -> None:
        cls._log.warning(
            "telemetry_write_failed",
            event_type="degradation",
            operation=operation,
            error=error,
            **extra,
        )
