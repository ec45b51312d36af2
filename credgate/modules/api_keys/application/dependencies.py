"""API Keys module application dependencies.

Provides service and repository without importing infrastructure.
"""

from typing import NoReturn

from fastapi import Depends

from credgate.core.application.dependencies import get_usage_recorder
from credgate.core.domain.ports.usage import UsageRecorder
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.api_keys.application.verifier import CredentialVerifier
from credgate.modules.api_keys.domain.ports import TokenRevoker
from credgate.modules.api_keys.domain.repository import ApiKeyRepository
from credgate.modules.users.application.dependencies import get_user_directory
from credgate.modules.users.domain.repository import UserDirectory


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_api_key_repository() -> ApiKeyRepository:
    _missing_dependency("ApiKeyRepository")


async def get_token_revoker() -> TokenRevoker:
    _missing_dependency("TokenRevoker")


async def get_api_key_service(
    repository: ApiKeyRepository = Depends(get_api_key_repository),
    user_directory: UserDirectory = Depends(get_user_directory),
    usage_recorder: UsageRecorder = Depends(get_usage_recorder),
    token_revoker: TokenRevoker = Depends(get_token_revoker),
) -> ApiKeyService:
    return ApiKeyService(
        repository=repository,
        user_directory=user_directory,
        usage_recorder=usage_recorder,
        token_revoker=token_revoker,
    )


async def get_credential_verifier(
    service: ApiKeyService = Depends(get_api_key_service),
) -> CredentialVerifier:
    return CredentialVerifier(service)
