"""Token module application dependencies.

Provides handlers and services without importing infrastructure.
"""

from typing import NoReturn

from fastapi import Depends

from credgate.core.application.dependencies import get_usage_recorder
from credgate.core.domain.ports.usage import UsageRecorder
from credgate.modules.api_keys.application.dependencies import get_api_key_service
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.tokens.application.handlers import (
    ExchangeTokenHandler,
    RefreshTokenHandler,
    TokenMinter,
)
from credgate.modules.tokens.application.query_service import TokenQueryService
from credgate.modules.tokens.application.revocation import RevocationService
from credgate.modules.tokens.application.verifier import TokenVerifier
from credgate.modules.tokens.domain.ports import TokenSigner
from credgate.modules.tokens.domain.repository import AccessTokenRepository
from credgate.modules.users.application.dependencies import get_user_directory
from credgate.modules.users.domain.repository import UserDirectory


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_access_token_repository() -> AccessTokenRepository:
    _missing_dependency("AccessTokenRepository")


async def get_token_signer() -> TokenSigner:
    _missing_dependency("TokenSigner")


async def get_token_minter(
    repository: AccessTokenRepository = Depends(get_access_token_repository),
    signer: TokenSigner = Depends(get_token_signer),
) -> TokenMinter:
    return TokenMinter(repository=repository, signer=signer)


async def get_exchange_token_handler(
    api_key_service: ApiKeyService = Depends(get_api_key_service),
    minter: TokenMinter = Depends(get_token_minter),
) -> ExchangeTokenHandler:
    return ExchangeTokenHandler(api_key_service=api_key_service, minter=minter)


async def get_refresh_token_handler(
    api_key_service: ApiKeyService = Depends(get_api_key_service),
    repository: AccessTokenRepository = Depends(get_access_token_repository),
    minter: TokenMinter = Depends(get_token_minter),
) -> RefreshTokenHandler:
    return RefreshTokenHandler(
        api_key_service=api_key_service,
        repository=repository,
        minter=minter,
    )


async def get_revocation_service(
    repository: AccessTokenRepository = Depends(get_access_token_repository),
) -> RevocationService:
    return RevocationService(repository)


async def get_token_query_service(
    repository: AccessTokenRepository = Depends(get_access_token_repository),
) -> TokenQueryService:
    return TokenQueryService(repository)


async def get_token_verifier(
    repository: AccessTokenRepository = Depends(get_access_token_repository),
    user_directory: UserDirectory = Depends(get_user_directory),
    signer: TokenSigner = Depends(get_token_signer),
    usage_recorder: UsageRecorder = Depends(get_usage_recorder),
) -> TokenVerifier:
    return TokenVerifier(
        repository=repository,
        user_directory=user_directory,
        signer=signer,
        usage_recorder=usage_recorder,
    )
