"""
pytest configuration and shared fixtures.

Test layout:
- unit/: unit tests with in-memory repositories (no external services)

Usage:
    # run all tests
    uv run pytest

    # with coverage
    uv run pytest --cov=credgate --cov-report=html
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from credgate.core.application.telemetry import drain_pending
from credgate.core.infrastructure.security.jwt import JWTTokenSigner
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.api_keys.application.verifier import CredentialVerifier
from credgate.modules.tokens.application.handlers import (
    ExchangeTokenHandler,
    RefreshTokenHandler,
    TokenMinter,
)
from credgate.modules.tokens.application.revocation import RevocationService
from credgate.modules.tokens.application.verifier import TokenVerifier
from credgate.modules.users.domain.entities import User
from tests.fakes import (
    HttpHarness,
    InMemoryAccessTokenRepository,
    InMemoryApiKeyRepository,
    InMemoryUserDirectory,
    RecordingUsageRecorder,
)


@pytest.fixture
def anyio_backend() -> str:
    """Telemetry tasks are scheduled with asyncio.create_task."""
    return "asyncio"


# ============================================
# Domain object fixtures
# ============================================


@pytest.fixture
def user() -> User:
    return User(id="user-1", email="owner@example.com", display_name="Owner")


@pytest.fixture
def users(user: User) -> InMemoryUserDirectory:
    return InMemoryUserDirectory(user)


# ============================================
# Repository / port fixtures
# ============================================


@pytest.fixture
def key_repo() -> InMemoryApiKeyRepository:
    return InMemoryApiKeyRepository()


@pytest.fixture
def token_repo() -> InMemoryAccessTokenRepository:
    return InMemoryAccessTokenRepository()


@pytest.fixture
def recorder() -> RecordingUsageRecorder:
    return RecordingUsageRecorder()


@pytest.fixture
def signer() -> JWTTokenSigner:
    return JWTTokenSigner()


# ============================================
# Service fixtures
# ============================================


@pytest.fixture
def revocation(token_repo: InMemoryAccessTokenRepository) -> RevocationService:
    return RevocationService(token_repo)


@pytest.fixture
async def api_key_service(
    key_repo: InMemoryApiKeyRepository,
    users: InMemoryUserDirectory,
    recorder: RecordingUsageRecorder,
    revocation: RevocationService,
) -> AsyncGenerator[ApiKeyService, None]:
    yield ApiKeyService(
        repository=key_repo,
        user_directory=users,
        usage_recorder=recorder,
        token_revoker=revocation,
    )
    await drain_pending()


@pytest.fixture
def minter(
    token_repo: InMemoryAccessTokenRepository, signer: JWTTokenSigner
) -> TokenMinter:
    return TokenMinter(repository=token_repo, signer=signer)


@pytest.fixture
def exchange_handler(
    api_key_service: ApiKeyService, minter: TokenMinter
) -> ExchangeTokenHandler:
    return ExchangeTokenHandler(api_key_service=api_key_service, minter=minter)


@pytest.fixture
def refresh_handler(
    api_key_service: ApiKeyService,
    token_repo: InMemoryAccessTokenRepository,
    minter: TokenMinter,
) -> RefreshTokenHandler:
    return RefreshTokenHandler(
        api_key_service=api_key_service, repository=token_repo, minter=minter
    )


@pytest.fixture
async def token_verifier(
    token_repo: InMemoryAccessTokenRepository,
    users: InMemoryUserDirectory,
    signer: JWTTokenSigner,
    recorder: RecordingUsageRecorder,
) -> AsyncGenerator[TokenVerifier, None]:
    yield TokenVerifier(
        repository=token_repo,
        user_directory=users,
        signer=signer,
        usage_recorder=recorder,
    )
    await drain_pending()


@pytest.fixture
def credential_verifier(api_key_service: ApiKeyService) -> CredentialVerifier:
    return CredentialVerifier(api_key_service)


# ============================================
# HTTP client fixtures
# ============================================


@pytest.fixture
async def http(
    users: InMemoryUserDirectory,
    key_repo: InMemoryApiKeyRepository,
    token_repo: InMemoryAccessTokenRepository,
    recorder: RecordingUsageRecorder,
) -> AsyncGenerator[HttpHarness, None]:
    """Async HTTP client against the real app with in-memory persistence."""
    from main import app

    from credgate.core.application import dependencies as core_app_deps
    from credgate.modules.api_keys.application import dependencies as api_keys_app_deps
    from credgate.modules.tokens.application import dependencies as tokens_app_deps
    from credgate.modules.users.application import dependencies as users_app_deps

    saved_overrides = dict(app.dependency_overrides)
    app.dependency_overrides[users_app_deps.get_user_directory] = lambda: users
    app.dependency_overrides[api_keys_app_deps.get_api_key_repository] = lambda: key_repo
    app.dependency_overrides[tokens_app_deps.get_access_token_repository] = (
        lambda: token_repo
    )
    app.dependency_overrides[core_app_deps.get_usage_recorder] = lambda: recorder

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as client:
            yield HttpHarness(
                client=client,
                users=users,
                key_repo=key_repo,
                token_repo=token_repo,
                recorder=recorder,
            )
        await drain_pending()
    finally:
        app.dependency_overrides.clear()
        app.dependency_overrides.update(saved_overrides)
