"""OAuth-style token API routes."""

from fastapi import APIRouter, Depends, Header, Query, Request

from credgate.core.application.security import AuthContext, get_current_auth
from credgate.core.config import settings
from credgate.core.domain.exceptions import MissingAuthError
from credgate.core.infrastructure.security.dispatcher import (
    extract_bearer_token,
    get_client_ip,
)
from credgate.core.interfaces.http.response import ApiResponse, PaginatedResponse
from credgate.modules.tokens.application.commands import (
    ExchangeTokenCommand,
    RefreshTokenCommand,
    RevokeTokenCommand,
)
from credgate.modules.tokens.application.dependencies import (
    get_exchange_token_handler,
    get_refresh_token_handler,
    get_revocation_service,
    get_token_query_service,
)
from credgate.modules.tokens.application.handlers import (
    ExchangeTokenHandler,
    RefreshTokenHandler,
)
from credgate.modules.tokens.application.models import TokenPair
from credgate.modules.tokens.application.query_service import TokenQueryService
from credgate.modules.tokens.application.revocation import RevocationService
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.tokens.interfaces.schemas import (
    RefreshRequest,
    RevokeRequest,
    TokenInfoResponse,
    TokenRequest,
    TokenResponse,
    TokenSummaryResponse,
)

router = APIRouter(prefix="/oauth", tags=["oauth"])


def _to_token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
        expires_at=pair.expires_at,
        refresh_token=pair.refresh_token,
        scope=pair.scope,
    )


def _to_summary(token: AccessToken) -> TokenSummaryResponse:
    return TokenSummaryResponse(
        id=token.id,
        api_key_id=token.api_key_id,
        scopes=token.scopes,
        is_active=token.is_active,
        expires_at=token.expires_at,
        refresh_token_expires_at=token.refresh_token_expires_at,
        last_used_at=token.last_used_at,
        last_used_ip=token.last_used_ip,
        metadata=token.labels,
        created_at=token.created_at,
    )


@router.post(
    "/token",
    response_model=TokenResponse,
    summary="Exchange API key for tokens",
    description=(
        "Client-credentials exchange. Credentials come from the X-API-Key / "
        "X-API-Secret headers (or Api-Key / Api-Secret), else from "
        "client_id / client_secret in the body."
    ),
)
async def exchange_token(
    request: Request,
    body: TokenRequest | None = None,
    x_api_key: str | None = Header(default=None),
    api_key: str | None = Header(default=None),
    x_api_secret: str | None = Header(default=None),
    api_secret: str | None = Header(default=None),
    handler: ExchangeTokenHandler = Depends(get_exchange_token_handler),
) -> TokenResponse:
    body = body or TokenRequest()
    pair = await handler.handle(
        ExchangeTokenCommand(
            grant_type=body.grant_type,
            access_key=x_api_key or api_key or body.client_id,
            secret_key=x_api_secret or api_secret or body.client_secret,
            scope=body.scope,
            expires_in=body.expires_in,
            ip_address=get_client_ip(request),
        )
    )
    return _to_token_response(pair)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Rotate a refresh token",
    description="Revokes the presented pair and issues a new one.",
)
async def refresh_token(
    request: Request,
    body: RefreshRequest | None = None,
    handler: RefreshTokenHandler = Depends(get_refresh_token_handler),
) -> TokenResponse:
    body = body or RefreshRequest()
    pair = await handler.handle(
        RefreshTokenCommand(
            refresh_token=body.refresh_token,
            scope=body.scope,
            expires_in=body.expires_in,
            ip_address=get_client_ip(request),
        )
    )
    return _to_token_response(pair)


@router.post(
    "/revoke",
    response_model=ApiResponse[None],
    summary="Revoke a token",
    description="Always succeeds for unknown or already revoked tokens.",
)
async def revoke_token(
    body: RevokeRequest | None = None,
    service: RevocationService = Depends(get_revocation_service),
) -> ApiResponse[None]:
    body = body or RevokeRequest()
    await service.revoke(
        RevokeTokenCommand(token=body.token, token_type_hint=body.token_type_hint)
    )
    return ApiResponse.success(message="Token revoked successfully")


@router.get(
    "/token-info",
    response_model=ApiResponse[TokenInfoResponse],
    summary="Inspect the presented bearer token",
)
async def token_info(
    request: Request,
    service: TokenQueryService = Depends(get_token_query_service),
) -> ApiResponse[TokenInfoResponse]:
    token = extract_bearer_token(request.headers)
    if not token:
        raise MissingAuthError()

    record = await service.get_token_info(token)
    return ApiResponse.success(
        data=TokenInfoResponse(
            scopes=record.scopes,
            expires_at=record.expires_at,
            created_at=record.created_at,
            last_used_at=record.last_used_at,
        )
    )


@router.get(
    "/tokens",
    response_model=PaginatedResponse[TokenSummaryResponse],
    summary="List the caller's tokens",
)
async def list_tokens(
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.TOKEN_LIST_PAGE_SIZE, ge=1, le=settings.TOKEN_LIST_MAX_PAGE_SIZE
    ),
    auth: AuthContext = Depends(get_current_auth),
    service: TokenQueryService = Depends(get_token_query_service),
) -> PaginatedResponse[TokenSummaryResponse]:
    tokens, total = await service.list_tokens(
        auth.principal_id, page=page, page_size=page_size
    )
    return PaginatedResponse.create(
        items=[_to_summary(t) for t in tokens],
        total=total,
        page=page,
        page_size=page_size,
    )
