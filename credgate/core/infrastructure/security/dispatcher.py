"""Authentication dispatcher.

Provides the single ``get_current_auth`` dependency that inspects a request
and hands it to exactly one verifier:

  1. ``X-API-Key`` + ``X-API-Secret`` headers (or ``api_key`` +
     ``api_secret`` query parameters) -> credential verifier
  2. ``Authorization: Bearer <token>`` -> token verifier

Selection is pure routing; a failure in the chosen verifier is final and
never falls back to the other scheme.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from fastapi import Depends, Request

from credgate.core.application.security import AuthContext
from credgate.core.config import settings
from credgate.core.domain.exceptions import MissingAuthError
from credgate.core.infrastructure.logging import BusinessEvents
from credgate.modules.api_keys.application.dependencies import get_credential_verifier
from credgate.modules.api_keys.application.verifier import CredentialVerifier
from credgate.modules.tokens.application.dependencies import get_token_verifier
from credgate.modules.tokens.application.verifier import TokenVerifier

BEARER_PREFIX = "bearer "


class AuthScheme(StrEnum):
    CREDENTIALS = "credentials"
    BEARER = "bearer"


@dataclass(frozen=True)
class AuthSelection:
    scheme: AuthScheme
    access_key: str | None = None
    secret_key: str | None = None
    token: str | None = None


def select_auth_scheme(
    headers: Mapping[str, str], query_params: Mapping[str, str]
) -> AuthSelection:
    """Pick the verification strategy for a request.

    Raises:
        MissingAuthError: Neither a credential pair nor a bearer token is present.
    """
    # 请求头优先于查询参数
    access_key = headers.get("x-api-key")
    secret_key = headers.get("x-api-secret")
    if access_key and secret_key:
        return AuthSelection(AuthScheme.CREDENTIALS, access_key=access_key, secret_key=secret_key)

    access_key = query_params.get("api_key")
    secret_key = query_params.get("api_secret")
    if access_key and secret_key:
        return AuthSelection(AuthScheme.CREDENTIALS, access_key=access_key, secret_key=secret_key)

    token = extract_bearer_token(headers)
    if token:
        return AuthSelection(AuthScheme.BEARER, token=token)

    raise MissingAuthError()


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """从 Authorization 头提取 Bearer 令牌，前缀不区分大小写。"""
    auth_header = headers.get("authorization")
    if auth_header and auth_header.lower().startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip() or None
    return None


def get_client_ip(request: Request) -> str | None:
    """Client IP used for allow-list checks.

    代理头只有在 ``TRUST_PROXY_HEADERS`` 开启时才读取，默认使用 socket 地址。
    """
    if settings.TRUST_PROXY_HEADERS:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # 取第一跳，即原始客户端
            return forwarded_for.split(",")[0].strip() or None
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip
    if not request.client:
        return None
    return request.client.host


async def get_current_auth(
    request: Request,
    credential_verifier: CredentialVerifier = Depends(get_credential_verifier),
    token_verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthContext:
    """Unified auth dependency: credential pair first, then bearer token."""
    try:
        selection = select_auth_scheme(request.headers, request.query_params)
    except MissingAuthError:
        BusinessEvents.auth_failed(reason="missing_auth", auth_type="none")
        raise

    # 选定方案后失败即终止，不回退到另一种方案
    client_ip = get_client_ip(request)
    if selection.scheme is AuthScheme.CREDENTIALS:
        return await credential_verifier.verify(
            selection.access_key, selection.secret_key, client_ip
        )
    return await token_verifier.verify(selection.token, client_ip)
