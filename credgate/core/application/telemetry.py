"""Fire-and-forget scheduling for best-effort telemetry writes.

Usage timestamps are advisory: a lost or failed write must never block or
fail the request that triggered it. Tasks are kept in a module-level set so
the event loop does not garbage-collect them mid-flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger

from credgate.core.infrastructure.logging import BusinessEvents

_pending: set[asyncio.Task[None]] = set()


def fire_and_forget(
    coro: Coroutine[Any, Any, None],
    *,
    operation: str,
    **context: Any,
) -> asyncio.Task[None]:
    """Schedule *coro* in the background and funnel failures to the logs."""
    task = asyncio.create_task(coro)
    _pending.add(task)

    def _on_done(finished: asyncio.Task[None]) -> None:
        # 失败只记录日志，不向调用方传播
        _pending.discard(finished)
        if finished.cancelled():
            return
        exc = finished.exception()
        if exc is not None:
            logger.warning(f"Background {operation} failed: {exc!r} ({context})")
            BusinessEvents.telemetry_write_failed(
                operation=operation,
                error=type(exc).__name__,
                **context,
            )

    task.add_done_callback(_on_done)
    return task


def pending_count() -> int:
    """尚未完成的后台写入数量。"""
    return len(_pending)


async def drain_pending() -> None:
    """Wait for every scheduled write; used on shutdown and in tests."""
    while _pending:
        await asyncio.gather(*list(_pending), return_exceptions=True)
