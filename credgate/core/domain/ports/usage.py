"""Usage telemetry port."""

from datetime import datetime
from typing import Protocol


class UsageRecorder(Protocol):
    """Best-effort writer for ``last_used_at`` / ``last_used_ip`` telemetry."""

    async def record_api_key_usage(
        self, key_id: str, ip_address: str | None, used_at: datetime
    ) -> None: ...

    async def record_token_usage(
        self, token_id: str, ip_address: str | None, used_at: datetime
    ) -> None: ...
