"""Core application dependencies.

These functions define application-level dependency boundaries and are overridden
by infrastructure in `main.py`.
"""

from __future__ import annotations

from typing import NoReturn

from credgate.core.domain.ports.usage import UsageRecorder


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_usage_recorder() -> UsageRecorder:
    _missing_dependency("UsageRecorder")
