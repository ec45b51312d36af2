"""API Key management routes.

Management requires an account session token: API keys and the tokens
minted from them get 403 SESSION_REQUIRED, so a key cannot widen its own
grant. Holders of an override scope may manage any user's keys.
"""

from fastapi import APIRouter, Depends, Query, status

from credgate.core.application.security import (
    AuthContext,
    get_current_session_auth,
    get_scope_guard,
)
from credgate.core.domain.scopes import ScopeGuard
from credgate.core.interfaces.http.response import ApiResponse, PaginatedResponse
from credgate.modules.api_keys.application.dependencies import get_api_key_service
from credgate.modules.api_keys.application.models import ApiKeyChanges, IssuedCredential
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.api_keys.domain.entities import ApiKey
from credgate.modules.api_keys.interfaces.schemas import (
    ApiKeyCreatedResponse,
    ApiKeyResponse,
    ApiKeyStatsResponse,
    CreateApiKeyRequest,
    UpdateApiKeyRequest,
)

router = APIRouter(prefix="/api-keys", tags=["api-keys"])


def _to_response(api_key: ApiKey) -> ApiKeyResponse:
    """Convert domain entity to response schema."""
    return ApiKeyResponse(
        id=api_key.id,
        name=api_key.name,
        description=api_key.description,
        access_key=api_key.access_key,
        scopes=api_key.scopes,
        allowed_ips=api_key.allowed_ips,
        rate_limit=api_key.rate_limit,
        is_active=api_key.is_active,
        expires_at=api_key.expires_at,
        last_used_at=api_key.last_used_at,
        last_used_ip=api_key.last_used_ip,
        metadata=api_key.labels,
        created_at=api_key.created_at,
        updated_at=api_key.updated_at,
    )


def _to_created(issued: IssuedCredential) -> ApiKeyCreatedResponse:
    return ApiKeyCreatedResponse(
        key=_to_response(issued.api_key), secret_key=issued.secret_key
    )


@router.post(
    "",
    response_model=ApiResponse[ApiKeyCreatedResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create API key",
    description="The returned secret_key is shown only once.",
)
async def create_api_key(
    request: CreateApiKeyRequest,
    auth: AuthContext = Depends(get_current_session_auth),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiResponse[ApiKeyCreatedResponse]:
    issued = await service.create_key(
        user_id=auth.principal_id,
        name=request.name,
        description=request.description,
        scopes=request.scopes,
        allowed_ips=request.allowed_ips,
        rate_limit=request.rate_limit,
        expires_at=request.expires_at,
        labels=request.metadata,
    )
    return ApiResponse.success(
        data=_to_created(issued),
        message="API key created successfully",
        code=status.HTTP_201_CREATED,
    )


@router.get(
    "",
    response_model=PaginatedResponse[ApiKeyResponse],
    summary="List API keys",
)
async def list_api_keys(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    is_active: bool | None = Query(None),
    auth: AuthContext = Depends(get_current_session_auth),
    service: ApiKeyService = Depends(get_api_key_service),
) -> PaginatedResponse[ApiKeyResponse]:
    keys, total = await service.list_keys(
        auth.principal_id, page=page, page_size=page_size, is_active=is_active
    )
    return PaginatedResponse.create(
        items=[_to_response(k) for k in keys],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/stats",
    response_model=ApiResponse[ApiKeyStatsResponse],
    summary="API key statistics",
)
async def get_api_key_stats(
    auth: AuthContext = Depends(get_current_session_auth),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiResponse[ApiKeyStatsResponse]:
    stats = await service.get_stats(auth.principal_id)
    return ApiResponse.success(
        data=ApiKeyStatsResponse(
            total=stats.total,
            active=stats.active,
            inactive=stats.inactive,
            expired=stats.expired,
            last_used_at=stats.last_used_at,
        )
    )


@router.get(
    "/{key_id}",
    response_model=ApiResponse[ApiKeyResponse],
    summary="Get API key",
)
async def get_api_key(
    key_id: str,
    auth: AuthContext = Depends(get_current_session_auth),
    guard: ScopeGuard = Depends(get_scope_guard),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiResponse[ApiKeyResponse]:
    api_key = await service.get_key(
        auth.principal_id, key_id, as_admin=guard.is_overridden(auth.scopes)
    )
    return ApiResponse.success(data=_to_response(api_key))


@router.patch(
    "/{key_id}",
    response_model=ApiResponse[ApiKeyResponse],
    summary="Update API key policy",
)
async def update_api_key(
    key_id: str,
    request: UpdateApiKeyRequest,
    auth: AuthContext = Depends(get_current_session_auth),
    guard: ScopeGuard = Depends(get_scope_guard),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiResponse[ApiKeyResponse]:
    provided = request.model_fields_set
    changes = ApiKeyChanges(
        name=request.name,
        description=request.description,
        is_active=request.is_active,
        rate_limit=request.rate_limit,
        allowed_ips=request.allowed_ips,
        scopes=request.scopes,
        labels=request.metadata,
        expires_at=request.expires_at,
        clear_expiry="expires_at" in provided and request.expires_at is None,
    )
    updated = await service.update_key(
        auth.principal_id,
        key_id,
        changes,
        as_admin=guard.is_overridden(auth.scopes),
    )
    return ApiResponse.success(
        data=_to_response(updated), message="API key updated successfully"
    )


@router.post(
    "/{key_id}/regenerate-secret",
    response_model=ApiResponse[ApiKeyCreatedResponse],
    summary="Regenerate API secret",
    description="The previous secret stops working immediately.",
)
async def regenerate_api_key_secret(
    key_id: str,
    auth: AuthContext = Depends(get_current_session_auth),
    guard: ScopeGuard = Depends(get_scope_guard),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiResponse[ApiKeyCreatedResponse]:
    issued = await service.regenerate_secret(
        auth.principal_id, key_id, as_admin=guard.is_overridden(auth.scopes)
    )
    return ApiResponse.success(
        data=_to_created(issued), message="API secret regenerated successfully"
    )


@router.delete(
    "/{key_id}",
    response_model=ApiResponse[ApiKeyResponse],
    summary="Deactivate API key",
    description="Deactivates the key and revokes every live token minted from it.",
)
async def deactivate_api_key(
    key_id: str,
    auth: AuthContext = Depends(get_current_session_auth),
    guard: ScopeGuard = Depends(get_scope_guard),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiResponse[ApiKeyResponse]:
    deactivated = await service.deactivate_key(
        auth.principal_id, key_id, as_admin=guard.is_overridden(auth.scopes)
    )
    return ApiResponse.success(
        data=_to_response(deactivated), message="API key deactivated successfully"
    )
