"""API Key module ports."""

from typing import Protocol


class TokenRevoker(Protocol):
    """Revokes the live tokens minted from a credential."""

    async def revoke_all_for_api_key(self, api_key_id: str) -> int: ...
